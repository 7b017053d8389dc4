from __future__ import annotations

from datetime import datetime
from typing import Optional, TypedDict


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A lightweight domain model representing a Todo item as held by the
    storage backends.

    Fields:
    - id: Unique integer identifier, assigned by the store and never reused
    - title: Short non-blank title
    - description: Non-blank description
    - due_date: Due datetime; None only for records written outside the API
    - priority: Integer priority in 1..5
    - completed: Boolean completion flag
    - created_at: Local creation timestamp (datetime)
    - updated_at: Local last update timestamp, refreshed on every save
    """

    id: int
    title: str
    description: str
    due_date: Optional[datetime]
    priority: int
    completed: bool
    created_at: datetime
    updated_at: datetime


MIN_PRIORITY = 1
MAX_PRIORITY = 5
