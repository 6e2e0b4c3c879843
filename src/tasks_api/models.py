from sqlalchemy import Boolean, Integer, String, false
from sqlalchemy.orm import Mapped, mapped_column

from tasks_api.database import Base


class Task(Base):
    __tablename__ = "tasks"
    # Without AUTOINCREMENT SQLite hands out a deleted max id again
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    completed: Mapped[bool | None] = mapped_column(Boolean, nullable=True, server_default=false())


tasks_table = Task.__table__
