from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ErrorEnvelope(BaseModel):
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
    requestId: Optional[str] = None


class Health(BaseModel):
    status: str = "ok"


class Message(BaseModel):
    message: str


class TrimmedIn(BaseModel):
    """Request body whose strings are stripped before length checks."""

    model_config = ConfigDict(str_strip_whitespace=True)


# === Users ===


class RegisterIn(BaseModel):
    name: str = Field(min_length=1, max_length=140)
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1, max_length=72)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("email must contain '@'")
        return value


class LoginIn(BaseModel):
    email: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class RefreshIn(BaseModel):
    refreshToken: str = Field(min_length=1)


class RegisterOut(Message):
    userId: str


class TokenPair(Message):
    token: str
    refreshToken: str


# === Boards ===


class BoardIn(TrimmedIn):
    name: str = Field(min_length=1, max_length=140)


class BoardPatch(TrimmedIn):
    name: Optional[str] = Field(default=None, min_length=1, max_length=140)


class BoardOut(BaseModel):
    id: str
    name: str
    userId: str
    tasks: list[str]
    createdAt: datetime
    updatedAt: datetime


class BoardEnvelope(Message):
    board: BoardOut


class BoardsEnvelope(Message):
    boards: list[BoardOut]


# === Tasks ===


class TaskIn(TrimmedIn):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=8000)
    status: str = Field(min_length=1, max_length=60)
    # Accepted for compatibility with older clients; subtasks link through /subtask.
    subtaskId: Optional[str] = None


class TaskPatch(TrimmedIn):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=8000)
    status: Optional[str] = Field(default=None, min_length=1, max_length=60)


class TaskOut(BaseModel):
    id: str
    title: str
    description: Optional[str]
    status: str
    boardId: str
    subtasks: list[str]
    createdAt: datetime
    updatedAt: datetime


class TaskEnvelope(Message):
    task: TaskOut


class TasksEnvelope(Message):
    tasks: list[TaskOut]


# === Subtasks ===


class SubtaskIn(TrimmedIn):
    title: str = Field(min_length=1, max_length=200)
    isCompleted: bool = False


class SubtaskPatch(TrimmedIn):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    isCompleted: Optional[bool] = None


class SubtaskOut(BaseModel):
    id: str
    title: str
    isCompleted: bool
    taskId: str
    createdAt: datetime
    updatedAt: datetime


class SubtaskEnvelope(Message):
    subtask: SubtaskOut


class SubtasksEnvelope(Message):
    subtasks: list[SubtaskOut]


# === Board detail ===


class TaskView(BaseModel):
    id: str
    title: str
    description: Optional[str]
    status: str
    boardId: str
    subtasks: list[SubtaskOut]
    createdAt: datetime
    updatedAt: datetime


class BoardView(BaseModel):
    id: str
    name: str
    userId: str
    tasks: list[TaskView]
    createdAt: datetime
    updatedAt: datetime
