"""Pydantic models for Kanban request and response bodies."""

from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


Priority = Literal["baja", "media", "alta"]
Status = Literal["pendiente", "en progreso", "completada", "bloqueada"]


class ReorderRequest(BaseModel):
    ordered_ids: List[str]


class MoveTaskRequest(BaseModel):
    target_column_id: str = Field(min_length=1)
    target_index: int


class CreateColumnRequest(BaseModel):
    project_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    position: Optional[int] = None


class UpdateColumnRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    position: Optional[int] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("name may be omitted but not null")
        return v


class CreateTaskRequest(BaseModel):
    column_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    priority: Priority = "media"
    status: Status = "pendiente"
    due_date: Optional[date] = None
    assignee_id: Optional[str] = None
    position: Optional[int] = None


class UpdateTaskRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    due_date: Optional[date] = None
    assignee_id: Optional[str] = None
    column_id: Optional[str] = None
    position: Optional[int] = None

    # Stored columns are NOT NULL: omit the key to keep the value
    @field_validator("title", "priority", "status")
    @classmethod
    def required_fields_not_null(cls, v):  # type: ignore[no-untyped-def]
        if v is None:
            raise ValueError("field may be omitted but not null")
        return v


class Task(BaseModel):
    id: str
    column_id: str
    title: str
    description: Optional[str] = None
    priority: str
    status: str
    due_date: Optional[str] = None
    assignee_id: Optional[str] = None
    position: int


class Column(BaseModel):
    id: str
    project_id: str
    name: str
    position: int
    tasks: List[Task] = Field(default_factory=list)


class PlacementOut(BaseModel):
    id: str
    parent_id: str
    position: int


class ReorderResult(BaseModel):
    success: bool = True
    ordered_ids: List[str]


__all__ = [
    "ReorderRequest",
    "MoveTaskRequest",
    "CreateColumnRequest",
    "UpdateColumnRequest",
    "CreateTaskRequest",
    "UpdateTaskRequest",
    "Task",
    "Column",
    "PlacementOut",
    "ReorderResult",
]
