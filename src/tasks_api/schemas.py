from typing import Any

from pydantic import BaseModel, ConfigDict


# Request fields are deliberately untyped: values are forwarded to storage
# as received and the column types decide what is acceptable.


class TaskCreate(BaseModel):
    # Presence of title is left to the NOT NULL column
    title: Any = None
    description: Any = None


class TaskUpdate(BaseModel):
    """Full overwrite: every omitted field is written as NULL."""

    title: Any = None
    description: Any = None
    completed: Any = None


class Task(BaseModel):
    # SQLite keeps whatever type was bound, so numbers read back from text columns
    model_config = ConfigDict(from_attributes=True, coerce_numbers_to_str=True)

    id: int
    title: str
    description: str | None = None
    completed: bool | None = None


class ErrorResponse(BaseModel):
    error: str
    trace_id: str | None = None
