"""Handler Context — the collaborators and policy every handler shares.

Invariants:
    - Built once at startup; holds no entity state between requests
    - ConflictError is retried at most policy.conflict_max_retries extra times,
      without backoff, then re-raised unchanged
    - Notification failures are logged and swallowed; they never fail a request
    - CancelledError is never caught here

Design Decisions:
    - One dataclass injected into every handler class, in place of the DB
      session + state pair handlers would otherwise each take
    - Clock, id and code factories are injectable so tests control time and ids
"""

import logging
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, TypeVar

from agora.core.domain_types import (
    DenialReason,
    EntityKind,
    NotificationEvent,
    StandingStatus,
)
from agora.core.enforce_moderation import effective_standing
from agora.core.errors import (
    AuthorizationDeniedError,
    ConflictError,
    ResourceNotFoundError,
)
from agora.core.repository_protocols import NotificationSink, Repository
from agora.services.key_locks import KeyedLocks

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def numeric_code(length: int) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


@dataclass(frozen=True)
class CorePolicy:
    """Tunables for the state machines, usually built from Settings."""
    conflict_max_retries: int = 3
    login_lockout_threshold: int = 5
    login_lockout_duration: timedelta = timedelta(minutes=15)
    otp_ttl: timedelta = timedelta(minutes=5)
    otp_length: int = 6
    otp_max_attempts: int = 5
    member_suspension: timedelta = timedelta(days=7)
    account_suspension: timedelta = timedelta(days=7)
    messages_page_size_max: int = 200


@dataclass
class HandlerContext:
    repository: Repository
    notifications: NotificationSink
    policy: CorePolicy = field(default_factory=CorePolicy)
    clock: Callable[[], datetime] = utc_now
    id_factory: Callable[[], str] = new_id
    code_factory: Callable[[int], str] = numeric_code
    locks: KeyedLocks = field(default_factory=KeyedLocks)

    async def find(self, kind: EntityKind, entity_id: str) -> Any | None:
        """Repository get that maps NotFound to None."""
        try:
            return await self.repository.get(kind, entity_id)
        except ResourceNotFoundError:
            return None

    async def retry_on_conflict(
        self, operation: Callable[[], Awaitable[T]], label: str,
    ) -> T:
        """Run load-compute-save until it commits or retries run out."""
        attempt = 0
        while True:
            try:
                return await operation()
            except ConflictError as e:
                if attempt >= self.policy.conflict_max_retries:
                    logger.warning(
                        f"{label}: conflict retries exhausted",
                        extra={"attempt": attempt, "entity_id": e.context.entity_id},
                    )
                    raise
                attempt += 1
                logger.info(
                    f"{label}: version conflict, retrying",
                    extra={"attempt": attempt, "entity_id": e.context.entity_id},
                )

    async def notify(
        self, user_id: str, event: NotificationEvent, payload: dict,
    ) -> None:
        """Best-effort delivery: failures are logged, never raised."""
        try:
            await self.notifications.notify(user_id, event.value, payload)
        except Exception as e:
            logger.warning(
                f"Notification '{event.value}' to {user_id} failed: {e}",
                extra={"user_id": user_id, "error_code": getattr(e, "code", None)},
            )

    async def require_good_standing(self, user_id: str) -> None:
        """Suspended or banned accounts may not create content or join anything."""
        standing = await self.find(EntityKind.STANDING, user_id)
        status = effective_standing(standing, self.clock())
        if status == StandingStatus.BANNED:
            raise AuthorizationDeniedError(DenialReason.BANNED)
        if status == StandingStatus.SUSPENDED:
            raise AuthorizationDeniedError(
                DenialReason.SUSPENDED,
                f"Account suspended until {standing.suspended_until.isoformat()}",
            )


def lock_key(kind: EntityKind, entity_id: str) -> str:
    return f"{kind.value}:{entity_id}"
