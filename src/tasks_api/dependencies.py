from typing import Annotated

from fastapi import Depends, Request

from tasks_api.repository import TaskRepository
from tasks_api.shipper import RemoteLogShipper


def get_repository(request: Request) -> TaskRepository:
    return request.app.state.repository


def get_shipper(request: Request) -> RemoteLogShipper:
    return request.app.state.shipper


RepositoryDep = Annotated[TaskRepository, Depends(get_repository)]
ShipperDep = Annotated[RemoteLogShipper, Depends(get_shipper)]
