from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Generator, List, Optional

from .errors import StoreError
from .filters import TodoFilter
from .models import MAX_PRIORITY, MIN_PRIORITY, TodoEntity
from .repositories import Repository, parse_sort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "todos"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    due_date: str = "due_date"
    priority: str = "priority"
    completed: str = "completed"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_COLS = _Cols()


def _fmt_dt(value: Optional[datetime]) -> Optional[str]:
    # Fixed-width text: ORDER BY on these columns is chronological.
    return value.isoformat(timespec="microseconds") if value is not None else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.

    Every operation opens its own connection; sqlite3 errors surface as StoreError.
    """

    def __init__(self, db_path: str, clock: Optional[Callable[[], datetime]] = None) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._clock = clock or datetime.now
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise StoreError(f"cannot open database {self._db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(str(e)) from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.description} TEXT NOT NULL,
                    {_COLS.due_date} TEXT NULL,
                    {_COLS.priority} INTEGER NOT NULL
                        CHECK ({_COLS.priority} BETWEEN {MIN_PRIORITY} AND {MAX_PRIORITY}),
                    {_COLS.completed} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_priority ON {_COLS.table}({_COLS.priority})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_completed ON {_COLS.table}({_COLS.completed})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_updated_at ON {_COLS.table}({_COLS.updated_at})"
            )
        logger.debug("SQLite store ready at %s", self._db_path)

    def _row_to_entity(self, row: sqlite3.Row) -> TodoEntity:
        return {
            "id": int(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "description": str(row[_COLS.description]),
            "due_date": _parse_dt(row[_COLS.due_date]),
            "priority": int(row[_COLS.priority]),
            "completed": bool(row[_COLS.completed]),
            "created_at": _parse_dt(row[_COLS.created_at]),  # type: ignore
            "updated_at": _parse_dt(row[_COLS.updated_at]),  # type: ignore
        }

    def _fetch_one(self, conn: sqlite3.Connection, todo_id: int) -> Optional[TodoEntity]:
        row = conn.execute(f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (todo_id,)).fetchone()
        return self._row_to_entity(row) if row else None

    def insert(
        self,
        *,
        title: str,
        description: str,
        due_date: Optional[datetime],
        priority: int,
        completed: bool = False,
    ) -> TodoEntity:
        now = _fmt_dt(self._clock())
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.title}, {_COLS.description}, {_COLS.due_date},
                    {_COLS.priority}, {_COLS.completed}, {_COLS.created_at}, {_COLS.updated_at})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (title, description, _fmt_dt(due_date), priority, 1 if completed else 0, now, now),
            )
            created = self._fetch_one(conn, int(cur.lastrowid))
            assert created is not None
            return created

    def find_by_id(self, todo_id: int) -> Optional[TodoEntity]:
        with self._conn() as conn:
            return self._fetch_one(conn, todo_id)

    def find_all(
        self, todo_filter: Optional[TodoFilter] = None, sort: Optional[str] = None
    ) -> List[TodoEntity]:
        where_sql, params = todo_filter.to_sql() if todo_filter is not None else ("", [])

        order = parse_sort(sort)
        order_sql = ""
        if order is not None:
            field, descending = order
            direction = "DESC" if descending else "ASC"
            order_sql = f"ORDER BY {field} {direction}, {_COLS.id} {direction}"

        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_COLS.table} {where_sql} {order_sql}", params
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def save(self, entity: TodoEntity) -> TodoEntity:
        todo_id = entity.get("id")
        with self._conn() as conn:
            current = self._fetch_one(conn, todo_id) if todo_id is not None else None
            if current is None:
                now = _fmt_dt(self._clock())
                cur = conn.execute(
                    f"""
                    INSERT INTO {_COLS.table} ({_COLS.title}, {_COLS.description}, {_COLS.due_date},
                        {_COLS.priority}, {_COLS.completed}, {_COLS.created_at}, {_COLS.updated_at})
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entity["title"],
                        entity["description"],
                        _fmt_dt(entity["due_date"]),
                        entity["priority"],
                        1 if entity["completed"] else 0,
                        now,
                        now,
                    ),
                )
                saved = self._fetch_one(conn, int(cur.lastrowid))
            else:
                updated_at = max(self._clock(), current["created_at"])
                conn.execute(
                    f"""
                    UPDATE {_COLS.table}
                    SET {_COLS.title} = ?, {_COLS.description} = ?, {_COLS.due_date} = ?,
                        {_COLS.priority} = ?, {_COLS.completed} = ?, {_COLS.updated_at} = ?
                    WHERE {_COLS.id} = ?
                    """,
                    (
                        entity["title"],
                        entity["description"],
                        _fmt_dt(entity["due_date"]),
                        entity["priority"],
                        1 if entity["completed"] else 0,
                        _fmt_dt(updated_at),
                        todo_id,
                    ),
                )
                saved = self._fetch_one(conn, todo_id)  # type: ignore[arg-type]
            assert saved is not None
            return saved

    def delete_by_id(self, todo_id: int) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (todo_id,))
            return cur.rowcount > 0
