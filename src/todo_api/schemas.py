from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

from .models import MAX_PRIORITY, MIN_PRIORITY

T = TypeVar("T")

DUE_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _require_text(value: Any, message: str) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValueError(message)
    return value.strip()


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.

    due_date is a calendar date (YYYY-MM-DD). The service rejects dates before
    today and attaches the submission time-of-day, both from a single clock read.
    priority is strict: JSON booleans are not coerced to 0/1.
    """

    model_config = ConfigDict(
        validate_default=True,
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "due_date": "2099-02-01",
                "priority": 3,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Detailed description")
    due_date: Optional[date] = Field(default=None, description="Due date in YYYY-MM-DD format")
    priority: Optional[StrictInt] = Field(default=None, description="Priority from 1 (lowest) to 5 (highest)")

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> str:
        return _require_text(v, "Title is mandatory")

    @field_validator("description", mode="before")
    @classmethod
    def validate_description(cls, v: Any) -> str:
        return _require_text(v, "Description is mandatory")

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Any) -> date:
        """
        Accept only strict YYYY-MM-DD strings (or date objects from Python callers).
        """
        if isinstance(v, datetime):
            v = v.date()
        if not isinstance(v, date):
            if v is None or (isinstance(v, str) and not v.strip()):
                raise ValueError("Due date is mandatory")
            if not isinstance(v, str) or not DUE_DATE_PATTERN.match(v.strip()):
                raise ValueError("Due date must be in the format YYYY-MM-DD")
            try:
                v = date.fromisoformat(v.strip())
            except ValueError as e:
                raise ValueError("Due date must be in the format YYYY-MM-DD") from e
        return v

    @field_validator("priority", mode="before")
    @classmethod
    def validate_priority(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Priority is mandatory")
        return v

    @field_validator("priority")
    @classmethod
    def check_priority_range(cls, v: int) -> int:
        if v < MIN_PRIORITY:
            raise ValueError(f"Priority must be at least {MIN_PRIORITY}")
        if v > MAX_PRIORITY:
            raise ValueError(f"Priority must be at most {MAX_PRIORITY}")
        return v


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.

    All fields are optional; `model_fields_set` records which ones the client
    supplied, so `completed: false` is distinguishable from an omitted field.
    Range and date checks happen in the service so they can be reported as
    single-message 400 responses.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "description": "Milk, eggs, bread, and paper towels",
                "due_date": "2099-02-02",
                "priority": 4,
                "completed": True,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Detailed description")
    due_date: Optional[str] = Field(default=None, description="Due date in YYYY-MM-DD format")
    priority: Optional[StrictInt] = Field(default=None, description="Priority from 1 to 5")
    completed: Optional[bool] = Field(default=None, description="Completion status override")


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 123,
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "due_date": "2099-02-01T10:15:30.123456",
                "priority": 3,
                "completed": False,
                "created_at": "2025-01-25T10:15:30.123456",
                "updated_at": "2025-01-26T09:00:00.000001",
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    description: str = Field(..., description="Detailed description")
    due_date: Optional[datetime] = Field(default=None, description="Due date/time as an ISO8601 datetime")
    priority: int = Field(..., description="Priority from 1 to 5")
    completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


# PUBLIC_INTERFACE
class ApiResponse(BaseModel, Generic[T]):
    """
    Envelope wrapping every non-empty response: {statusCode, message, data}.
    Serialized with exclude_none so absent fields are omitted.
    """

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(..., alias="statusCode", description="HTTP status code")
    message: str = Field(..., description="Human-readable outcome")
    data: Optional[T] = Field(default=None, description="Payload")

    def to_content(self) -> dict:
        """Return the JSON-ready dict used by exception handlers."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
