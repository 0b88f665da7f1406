"""Process-wide instances, created in each worker by the app lifespan."""

from typing import Generic, TypeVar

import httpx

from oidctodo.authsession import SessionStore
from oidctodo.config import OidcConfig
from oidctodo.oidc.discovery import OidcClient
from oidctodo.pending import PendingLoginStore
from oidctodo.todos import MemoryTodoRepository, TodoRepository

T = TypeVar("T")


class Manager(Generic[T]):
    """Holds one shared instance, failing loudly when used before init()."""

    def __init__(self, name: str):
        self.name = name
        self._instance: T | None = None

    @property
    def initialized(self) -> bool:
        return self._instance is not None

    @property
    def instance(self) -> T:
        if self._instance is None:
            raise RuntimeError(f"{self.name} used before globals.init()")
        return self._instance

    @instance.setter
    def instance(self, value: T) -> None:
        self._instance = value

    def reset(self) -> None:
        self._instance = None


async def init(
    config: OidcConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    repository: TodoRepository | None = None,
) -> None:
    """Create the OIDC client, the in-memory stores and the todo repository."""
    client.instance = OidcClient(config, transport=transport)
    pending.instance = PendingLoginStore()
    sessions.instance = SessionStore()
    todos.instance = repository or MemoryTodoRepository()


async def close() -> None:
    """Close the provider HTTP client and drop every instance."""
    if client.initialized:
        await client.instance.aclose()
    for manager in (client, pending, sessions, todos):
        manager.reset()


client = Manager[OidcClient]("OIDC client")
pending = Manager[PendingLoginStore]("Pending login store")
sessions = Manager[SessionStore]("Session store")
todos = Manager[TodoRepository]("Todo repository")
