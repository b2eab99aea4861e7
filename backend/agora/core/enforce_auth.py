"""Authentication State Machine — lockout, one-time codes and 2FA bookkeeping.

Invariants:
    - Locked is derived (now < lockout_until); no stored flag can drift
    - A locked account rejects login attempts without touching failed_attempts
    - At most one challenge per purpose: issuing replaces the previous one
    - A code satisfies exactly one verification; a replay is OTP_ALREADY_USED,
      an expired or exhausted code is OTP_EXPIRED, anything else OTP_INVALID
    - Every verification path performs one constant-time digest comparison
    - Only digests are stored, never codes

Design Decisions:
    - Verification returns OtpCheck (next state + error) instead of raising, so
      the caller can persist the attempt counter before surfacing the error
    - Code generation is injected by the caller; this module has no randomness
"""

import hashlib
import hmac
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from agora.core.domain_types import DenialReason, OtpPurpose
from agora.core.entities import AuthAccountState, OtpChallenge
from agora.core.errors import (
    AgoraError,
    AuthorizationDeniedError,
    InvalidTransitionError,
    OtpAlreadyUsedError,
    OtpExpiredError,
    OtpInvalidError,
)

DEFAULT_LOCKOUT_THRESHOLD: int = 5

# Compared against when no challenge exists, keeping the work per call constant
_NO_CHALLENGE_DIGEST = hashlib.sha256(b"agora:no-challenge").hexdigest()


@dataclass(frozen=True)
class LoginOutcome:
    account: AuthAccountState
    succeeded: bool
    requires_second_factor: bool = False

    @property
    def locked(self) -> bool:
        return self.account.lockout_until is not None and not self.succeeded


@dataclass(frozen=True)
class OtpCheck:
    account: AuthAccountState
    error: AgoraError | None = None

    @property
    def verified(self) -> bool:
        return self.error is None


def otp_digest(user_id: str, purpose: OtpPurpose, code: str) -> str:
    return hashlib.sha256(f"{user_id}:{purpose.value}:{code}".encode()).hexdigest()


# ─── Login / lockout ────────────────────────────────────────────

def record_login_attempt(
    account: AuthAccountState,
    succeeded: bool,
    now: datetime,
    threshold: int,
    lockout: timedelta,
) -> LoginOutcome:
    """Apply one credential check result. Raises while the account is locked."""
    if account.is_locked(now):
        raise AuthorizationDeniedError(
            DenialReason.LOCKED,
            f"Account locked until {account.lockout_until.isoformat()}",
        )
    if account.lockout_until is not None:
        # Lockout elapsed: start a fresh window
        account = replace(account, lockout_until=None, failed_attempts=0)

    if succeeded:
        return LoginOutcome(
            account=replace(account, failed_attempts=0, last_login_at=now),
            succeeded=True,
            requires_second_factor=account.two_factor_enabled,
        )

    failed = account.failed_attempts + 1
    lockout_until = now + lockout if failed >= threshold else None
    return LoginOutcome(
        account=replace(account, failed_attempts=failed, lockout_until=lockout_until),
        succeeded=False,
    )


def unlock(account: AuthAccountState) -> AuthAccountState:
    return replace(account, failed_attempts=0, lockout_until=None)


# ─── One-time codes ─────────────────────────────────────────────

def issue_otp(
    account: AuthAccountState,
    purpose: OtpPurpose,
    code: str,
    now: datetime,
    ttl: timedelta,
) -> AuthAccountState:
    """Store a fresh challenge for purpose, replacing any earlier one."""
    pending = dict(account.pending_otps)
    pending[purpose.value] = OtpChallenge(
        purpose=purpose,
        code_digest=otp_digest(account.user_id, purpose, code),
        issued_at=now,
        expires_at=now + ttl,
    )
    return replace(account, pending_otps=pending)


def verify_otp(
    account: AuthAccountState,
    purpose: OtpPurpose,
    code: str,
    now: datetime,
    max_attempts: int,
) -> OtpCheck:
    """Consume the challenge for purpose if code matches. Pure."""
    candidate = otp_digest(account.user_id, purpose, code)
    challenge = account.pending_otps.get(purpose.value)
    expected = challenge.code_digest if challenge else _NO_CHALLENGE_DIGEST
    matches = hmac.compare_digest(candidate, expected)

    if challenge is None:
        return OtpCheck(account=account, error=OtpInvalidError())
    if challenge.consumed_at is not None:
        error = OtpAlreadyUsedError() if matches else OtpInvalidError()
        return OtpCheck(account=account, error=error)
    if now >= challenge.expires_at or challenge.attempts >= max_attempts:
        return OtpCheck(account=account, error=OtpExpiredError())

    pending = dict(account.pending_otps)
    if matches:
        pending[purpose.value] = replace(challenge, consumed_at=now)
        return OtpCheck(account=replace(account, pending_otps=pending))
    pending[purpose.value] = replace(challenge, attempts=challenge.attempts + 1)
    return OtpCheck(account=replace(account, pending_otps=pending), error=OtpInvalidError())


# ─── Account-level flags (mutated only after a verified code) ───

def set_two_factor(account: AuthAccountState, enabled: bool) -> AuthAccountState:
    if account.two_factor_enabled == enabled:
        current = "enabled" if enabled else "disabled"
        raise InvalidTransitionError("two_factor", current, "enable" if enabled else "disable")
    return replace(account, two_factor_enabled=enabled)


def link_login(
    account: AuthAccountState, provider: str, provider_user_id: str,
) -> AuthAccountState:
    provider = provider.lower()
    existing = account.linked_logins.get(provider)
    if existing is not None:
        raise InvalidTransitionError("social_login", "linked", "link")
    linked = dict(account.linked_logins)
    linked[provider] = provider_user_id
    return replace(account, linked_logins=linked)


def unlink_login(account: AuthAccountState, provider: str) -> AuthAccountState:
    provider = provider.lower()
    if provider not in account.linked_logins:
        raise InvalidTransitionError("social_login", "unlinked", "unlink")
    linked = {k: v for k, v in account.linked_logins.items() if k != provider}
    return replace(account, linked_logins=linked)
