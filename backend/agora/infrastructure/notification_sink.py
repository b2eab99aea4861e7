"""Notification Sinks — where state machines hand off user-facing events.

Invariants:
    - Delivery is best-effort; HandlerContext.notify logs and drops failures
    - One-time codes are never written to logs

Design Decisions:
    - LoggingNotificationSink is the default: actual delivery (email, push,
      realtime) lives in other services that consume these events
"""

import logging

logger = logging.getLogger(__name__)

# Payload keys that carry secrets
_REDACTED = frozenset({"code"})


class LoggingNotificationSink:
    """Writes each event to the log with secrets redacted."""

    async def notify(self, user_id: str, event_kind: str, payload: dict) -> None:
        safe = {k: ("***" if k in _REDACTED else v) for k, v in payload.items()}
        logger.info(
            f"Notify {event_kind}: {safe}",
            extra={"user_id": user_id},
        )


class RecordingNotificationSink:
    """Keeps events in memory. Used by tests and local tooling."""

    def __init__(self):
        self.events: list[tuple[str, str, dict]] = []

    async def notify(self, user_id: str, event_kind: str, payload: dict) -> None:
        self.events.append((user_id, event_kind, payload))

    def of_kind(self, event_kind: str) -> list[tuple[str, dict]]:
        return [(u, p) for u, k, p in self.events if k == event_kind]
