"""
Todo records and their storage.

Todos are owned by the `sub` of the user who created them. The repository
interface is what the HTTP layer talks to; MemoryTodoRepository is the
implementation used by default and in tests.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Protocol
from uuid import uuid4

import msgspec


class Todo(msgspec.Struct, rename="camel", kw_only=True):
    """A todo item, serialized with camelCase keys (isCompleted, userId, ...)."""

    id: str
    title: str
    description: str | None = None
    is_completed: bool = False
    created_at: datetime
    user_id: str

    @classmethod
    def create(
        cls,
        title: str,
        user_id: str,
        description: str | None = None,
        created_at: datetime | None = None,
    ) -> Todo:
        """Create a new Todo with a random id."""
        return cls(
            id=str(uuid4()),
            title=title,
            description=description,
            created_at=created_at or datetime.now(UTC),
            user_id=user_id,
        )


class TodoRepository(Protocol):
    def create(self, todo: Todo) -> Todo: ...

    def find_all(self, user_id: str) -> list[Todo]: ...

    def find_by_id(self, todo_id: str) -> Todo | None: ...

    def update(self, todo_id: str, **changes) -> Todo | None: ...

    def delete(self, todo_id: str) -> bool: ...


# Fields a client may change after creation
UPDATABLE = frozenset({"title", "description", "is_completed"})


class MemoryTodoRepository:
    """In-process todo storage."""

    def __init__(self):
        self._todos: dict[str, Todo] = {}
        self._lock = threading.Lock()

    def create(self, todo: Todo) -> Todo:
        with self._lock:
            self._todos[todo.id] = todo
        return todo

    def find_all(self, user_id: str) -> list[Todo]:
        """The user's todos, newest first."""
        with self._lock:
            todos = [t for t in self._todos.values() if t.user_id == user_id]
        todos.sort(key=lambda t: t.created_at, reverse=True)
        return todos

    def find_by_id(self, todo_id: str) -> Todo | None:
        return self._todos.get(todo_id)

    def update(self, todo_id: str, **changes) -> Todo | None:
        unknown = set(changes) - UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        with self._lock:
            todo = self._todos.get(todo_id)
            if todo is None:
                return None
            todo = msgspec.structs.replace(todo, **changes)
            self._todos[todo_id] = todo
        return todo

    def delete(self, todo_id: str) -> bool:
        with self._lock:
            return self._todos.pop(todo_id, None) is not None
