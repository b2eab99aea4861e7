"""Test support — deterministic clock and principal builders shared by all suites."""

from datetime import datetime, timedelta, timezone

from agora.core.domain_types import PlatformRole, UserId
from agora.core.entities import Principal

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
OTP_CODE = "123456"


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def user(user_id: str) -> Principal:
    return Principal(user_id=UserId(user_id))


def moderator(user_id: str = "mod") -> Principal:
    return Principal(
        user_id=UserId(user_id),
        roles=frozenset({PlatformRole.USER, PlatformRole.MODERATOR}),
    )


def admin(user_id: str = "root") -> Principal:
    return Principal(
        user_id=UserId(user_id),
        roles=frozenset({PlatformRole.USER, PlatformRole.ADMINISTRATOR}),
    )


async def run(dispatch, principal: Principal, **payload):
    """Parse a raw payload and send it through the dispatcher."""
    from agora.schemas.requests import parse_request
    return await dispatch.dispatch(parse_request(payload), principal)
