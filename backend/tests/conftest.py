"""Root conftest — shared fixtures for core, service and API tests.

Invariants:
    - Every test gets a fresh InMemoryRepository and recording sink
    - Time, ids and OTP codes are deterministic (FixedClock, sequential ids, OTP_CODE)
"""

import itertools
import os

import pytest

# Ensure tests never reach a real database by accident
os.environ.setdefault("REPOSITORY_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")

from agora.infrastructure.memory_repository import InMemoryRepository  # noqa: E402
from agora.infrastructure.notification_sink import RecordingNotificationSink  # noqa: E402
from agora.services.handler_context import CorePolicy, HandlerContext  # noqa: E402
from agora.services.request_dispatch import build_dispatch  # noqa: E402
from tests.support import OTP_CODE, FixedClock  # noqa: E402


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def sink():
    return RecordingNotificationSink()


@pytest.fixture
def ctx(repository, sink, clock):
    counter = itertools.count(1)
    return HandlerContext(
        repository=repository,
        notifications=sink,
        policy=CorePolicy(),
        clock=clock,
        id_factory=lambda: f"id{next(counter)}",
        code_factory=lambda length: OTP_CODE[:length],
    )


@pytest.fixture
def dispatch(ctx):
    return build_dispatch(ctx)
