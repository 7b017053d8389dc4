from __future__ import annotations


class TodoError(Exception):
    """Base class for errors raised by the todo service and its stores."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# PUBLIC_INTERFACE
class ValidationError(TodoError):
    """Input rejected before any mutation (bad format, out-of-range priority, past due date)."""


# PUBLIC_INTERFACE
class NotFoundError(TodoError):
    """The requested todo id does not exist."""


# PUBLIC_INTERFACE
class StoreError(TodoError):
    """I/O failure from the backing store."""
