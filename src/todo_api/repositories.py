from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from functools import lru_cache
from threading import RLock
from typing import Callable, List, Optional, Tuple

from .filters import TodoFilter
from .models import TodoEntity
from .settings import get_settings

SORTABLE_FIELDS = {"created_at", "updated_at"}


def parse_sort(sort: Optional[str]) -> Optional[Tuple[str, bool]]:
    """
    Parse a sort expression such as '-updated_at' into (field, descending).

    Returns None for an empty expression or an unsupported field.
    """
    if not sort:
        return None
    key = sort.strip().lower()
    descending = key.startswith("-")
    field = key[1:] if descending else key
    if field not in SORTABLE_FIELDS:
        return None
    return field, descending


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for todo storage backends."""

    @abstractmethod
    def insert(
        self,
        *,
        title: str,
        description: str,
        due_date: Optional[datetime],
        priority: int,
        completed: bool = False,
    ) -> TodoEntity:
        """Insert a new record; the store assigns id, created_at and updated_at."""

    @abstractmethod
    def find_by_id(self, todo_id: int) -> Optional[TodoEntity]:
        """Return a TodoEntity by id, or None if not found."""

    @abstractmethod
    def find_all(
        self, todo_filter: Optional[TodoFilter] = None, sort: Optional[str] = None
    ) -> List[TodoEntity]:
        """
        Return every TodoEntity matching the filter.
        - No filter matches everything
        - sort: created_at, -created_at, updated_at, -updated_at; None leaves store order
        """

    @abstractmethod
    def save(self, entity: TodoEntity) -> TodoEntity:
        """
        Persist a full record. Updates the existing row when the id is known,
        inserts otherwise. updated_at is refreshed; created_at is never changed.
        """

    @abstractmethod
    def delete_by_id(self, todo_id: int) -> bool:
        """Delete a TodoEntity by id. Return True if deleted, False if it did not exist."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._lock = RLock()
        self._items: dict[int, TodoEntity] = {}
        self._next_id = 1
        self._clock = clock or datetime.now

    def _now(self) -> datetime:
        return self._clock()

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def insert(
        self,
        *,
        title: str,
        description: str,
        due_date: Optional[datetime],
        priority: int,
        completed: bool = False,
    ) -> TodoEntity:
        now = self._now()
        entity: TodoEntity = {
            "id": self._allocate_id(),
            "title": title,
            "description": description,
            "due_date": due_date,
            "priority": priority,
            "completed": completed,
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            self._items[entity["id"]] = entity
            return entity.copy()

    def find_by_id(self, todo_id: int) -> Optional[TodoEntity]:
        with self._lock:
            item = self._items.get(todo_id)
            return None if item is None else item.copy()

    def find_all(
        self, todo_filter: Optional[TodoFilter] = None, sort: Optional[str] = None
    ) -> List[TodoEntity]:
        with self._lock:
            items = [t.copy() for t in self._items.values()]

        if todo_filter is not None:
            items = [t for t in items if todo_filter.matches(t)]

        order = parse_sort(sort)
        if order is not None:
            field, descending = order
            items.sort(key=lambda t: (t[field], t["id"]), reverse=descending)
        return items

    def save(self, entity: TodoEntity) -> TodoEntity:
        with self._lock:
            existing = self._items.get(entity.get("id"))  # type: ignore[arg-type]
            if existing is None:
                return self.insert(
                    title=entity["title"],
                    description=entity["description"],
                    due_date=entity["due_date"],
                    priority=entity["priority"],
                    completed=entity["completed"],
                )
            updated = entity.copy()
            updated["created_at"] = existing["created_at"]
            updated["updated_at"] = max(self._now(), existing["created_at"])
            self._items[updated["id"]] = updated
            return updated.copy()

    def delete_by_id(self, todo_id: int) -> bool:
        with self._lock:
            return self._items.pop(todo_id, None) is not None


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_repository() -> Repository:
    """
    Factory returning the process-wide repository configured by settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository backed by SQLITE_DB_PATH
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        return SQLiteRepository(settings.sqlite_db_path)
    return InMemoryRepository()
