from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class TodoFilter:
    """
    Optional equality filters over todo fields.

    A todo matches iff every supplied field equals the todo's value; fields
    left as None impose no constraint, so an empty filter matches everything.
    Ordering is not part of the filter.
    """

    priority: Optional[int] = None
    completed: Optional[bool] = None

    def constraints(self) -> List[Tuple[str, Any]]:
        """Return (field, value) pairs for the supplied filters, in a stable order."""
        out: List[Tuple[str, Any]] = []
        if self.priority is not None:
            out.append(("priority", self.priority))
        if self.completed is not None:
            out.append(("completed", self.completed))
        return out

    def matches(self, todo: Mapping[str, Any]) -> bool:
        return all(todo[name] == value for name, value in self.constraints())

    def to_sql(self) -> Tuple[str, List[Any]]:
        """
        Render the filter as a parameterized WHERE clause.

        Returns ("", []) when no filter is supplied. Booleans are stored as
        0/1 integers.
        """
        clauses: List[str] = []
        params: List[Any] = []
        for name, value in self.constraints():
            clauses.append(f"{name} = ?")
            params.append(int(value) if isinstance(value, bool) else value)
        if not clauses:
            return "", []
        return f"WHERE {' AND '.join(clauses)}", params


# PUBLIC_INTERFACE
def build_filter(priority: Optional[int] = None, completed: Optional[bool] = None) -> TodoFilter:
    """Build a TodoFilter from optional priority/completion criteria."""
    return TodoFilter(priority=priority, completed=completed)
