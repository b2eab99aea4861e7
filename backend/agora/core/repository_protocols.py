"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Repository.save rejects a stale version with ConflictError and returns the
      entity carrying its new version
    - Repository.get / delete raise ResourceNotFoundError for absent ids
    - Repository.list_all returns every entity of one kind, in no set order
    - Infrastructure failures surface as DependencyFailureError

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but core pure functions that USE these protocols are never async themselves —
      the shell orchestrates the async calls around the pure logic
"""

from datetime import datetime
from typing import Any, Protocol, TypeVar

from agora.core.domain_types import EntityKind

E = TypeVar("E")


class Repository(Protocol):
    """Load/save/delete by (kind, id) plus a scan of one kind. The only durable truth."""
    async def get(self, kind: EntityKind, entity_id: str) -> Any: ...
    async def save(self, entity: E) -> E: ...
    async def delete(self, kind: EntityKind, entity_id: str) -> None: ...
    async def list_all(self, kind: EntityKind) -> list[Any]: ...


class NotificationSink(Protocol):
    """Fire-and-forget event delivery (email, push, realtime; all external)."""
    async def notify(self, user_id: str, event_kind: str, payload: dict) -> None: ...


class Clock(Protocol):
    def __call__(self) -> datetime: ...
