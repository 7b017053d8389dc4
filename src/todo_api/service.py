from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, List, Optional

from .errors import NotFoundError, ValidationError
from .filters import build_filter
from .models import MAX_PRIORITY, MIN_PRIORITY, TodoEntity
from .repositories import Repository, get_repository
from .schemas import DUE_DATE_PATTERN, TodoCreate, TodoUpdate

logger = logging.getLogger(__name__)

LIST_SORT = "-updated_at"


def _parse_due_date(value: str) -> date:
    s = value.strip()
    if not DUE_DATE_PATTERN.match(s):
        raise ValidationError("Invalid due date format, expected yyyy-MM-dd")
    try:
        return date.fromisoformat(s)
    except ValueError as e:
        raise ValidationError("Invalid due date format, expected yyyy-MM-dd") from e


# PUBLIC_INTERFACE
class TodoService:
    """
    Stateless orchestration between the HTTP layer, the filter builder and
    the repository. All persistent state lives in the repository.
    """

    def __init__(self, repository: Repository, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._repo = repository
        self._clock = clock or datetime.now

    def list_todos(self, priority: Optional[int] = None, completed: Optional[bool] = None) -> List[TodoEntity]:
        """Return todos matching the optional filters, most recently updated first."""
        return self._repo.find_all(build_filter(priority=priority, completed=completed), sort=LIST_SORT)

    def list_all(self) -> List[TodoEntity]:
        """Return every todo, unfiltered and in store order."""
        return self._repo.find_all()

    def create(self, payload: TodoCreate) -> TodoEntity:
        """
        Persist a schema-validated TodoCreate. The due date must not be before
        today and gets the current time-of-day attached; both use one clock read.

        Raises:
            ValidationError: due date before today. Nothing is persisted.
        """
        now = self._clock()
        if payload.due_date < now.date():  # type: ignore[operator]
            raise ValidationError("Due date must be in the future or present")
        due_at = datetime.combine(payload.due_date, now.time())  # type: ignore[arg-type]
        created = self._repo.insert(
            title=payload.title,  # type: ignore[arg-type]
            description=payload.description,  # type: ignore[arg-type]
            due_date=due_at,
            priority=payload.priority,  # type: ignore[arg-type]
        )
        logger.info("Created task %s", created["id"])
        return created

    def get_by_id(self, todo_id: int) -> Optional[TodoEntity]:
        return self._repo.find_by_id(todo_id)

    def update(self, todo_id: int, patch: TodoUpdate) -> TodoEntity:
        """
        Apply the fields present in `patch` to an existing todo.

        Raises:
            NotFoundError: no todo with this id.
            ValidationError: malformed or past due date, priority outside 1..5.
                Nothing is persisted in that case.
        """
        existing = self._repo.find_by_id(todo_id)
        if existing is None:
            raise NotFoundError("Task not found")

        supplied = patch.model_fields_set
        updated = existing.copy()

        if "due_date" in supplied and patch.due_date:
            due = _parse_due_date(patch.due_date)
            now = self._clock()
            due_at = datetime.combine(due, now.time())
            if due_at < now:
                raise ValidationError("Due date must be in the future or present")
            updated["due_date"] = due_at

        if "priority" in supplied and patch.priority is not None:
            if not MIN_PRIORITY <= patch.priority <= MAX_PRIORITY:
                raise ValidationError(f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}")
            updated["priority"] = patch.priority

        if "title" in supplied and patch.title and patch.title.strip():
            updated["title"] = patch.title.strip()

        if "description" in supplied and patch.description and patch.description.strip():
            updated["description"] = patch.description.strip()

        if "completed" in supplied and patch.completed is not None:
            updated["completed"] = patch.completed

        saved = self._repo.save(updated)
        logger.info("Updated task %s fields=%s", todo_id, sorted(supplied))
        return saved

    def save(self, entity: TodoEntity) -> TodoEntity:
        """Persist a full record as-is (insert-or-update by id)."""
        return self._repo.save(entity)

    def delete(self, todo_id: int) -> None:
        """Delete by id. Unknown ids are a no-op."""
        if self._repo.delete_by_id(todo_id):
            logger.info("Deleted task %s", todo_id)
        else:
            logger.debug("Delete of unknown task %s ignored", todo_id)


# PUBLIC_INTERFACE
def get_todo_service() -> TodoService:
    """FastAPI dependency returning a service over the process-wide repository."""
    return TodoService(get_repository())
