"""Auth Handlers — lockout, one-time codes, 2FA and linked logins (9 methods).

Invariants:
    - Every request acts on one user's account and passes the
      MANAGE_OWN_ACCOUNT guard (that user, or an administrator)
    - A verification attempt is persisted before its error is raised, so
      wrong guesses count even though the request fails
    - Codes leave the service only through the notification sink; results
      carry the expiry, never the code
    - Account flags (2FA, linked logins) change only together with a verified
      code, in the same write that consumes it; a refused change spends no code

Design Decisions:
    - A missing AuthAccountState is created lazily on first touch; there is
      no separate registration step in this service
"""

import logging

from agora.core.domain_types import (
    DenialReason,
    EntityKind,
    GuardedAction,
    NotificationEvent,
    OtpPurpose,
    StandingStatus,
    UserId,
)
from agora.core.enforce_auth import (
    issue_otp,
    link_login,
    record_login_attempt,
    set_two_factor,
    unlink_login,
    unlock,
    verify_otp,
)
from agora.core.enforce_authorization import AuthorizationTarget, authorize, require
from agora.core.enforce_moderation import effective_standing
from agora.core.entities import AuthAccountState, Principal
from agora.core.errors import AuthorizationDeniedError
from agora.schemas.requests import (
    DisableTwoFactor,
    EnableTwoFactor,
    GetAuthStatus,
    IssueOtp,
    LinkSocialLogin,
    RecordLoginAttempt,
    UnlinkSocialLogin,
    UnlockAccount,
    VerifyOtp,
)
from agora.schemas.results import (
    AuthStatusResult,
    LoginResult,
    OtpIssuedResult,
    OtpVerifiedResult,
)
from agora.services.handler_context import HandlerContext, lock_key

logger = logging.getLogger(__name__)


def _status(account: AuthAccountState, now) -> AuthStatusResult:
    return AuthStatusResult(
        user_id=account.user_id,
        locked=account.is_locked(now),
        locked_until=account.lockout_until if account.is_locked(now) else None,
        failed_attempts=account.failed_attempts,
        two_factor_enabled=account.two_factor_enabled,
        linked_providers=sorted(account.linked_logins),
        pending_otp_purposes=[
            challenge.purpose for challenge in account.pending_otps.values()
            if challenge.consumed_at is None and challenge.expires_at > now
        ],
    )


class AuthHandlers:
    """Authentication State Machine shell."""

    def __init__(self, ctx: HandlerContext):
        self.ctx = ctx

    async def record_login_attempt(
        self, request: RecordLoginAttempt, principal: Principal,
    ) -> LoginResult:
        self._guard(principal, request.user_id)
        policy = self.ctx.policy
        if request.succeeded:
            standing = await self.ctx.find(EntityKind.STANDING, request.user_id)
            if effective_standing(standing, self.ctx.clock()) == StandingStatus.BANNED:
                raise AuthorizationDeniedError(DenialReason.BANNED)

        async def attempt():
            account = await self._account(request.user_id)
            outcome = record_login_attempt(
                account, request.succeeded, self.ctx.clock(),
                policy.login_lockout_threshold, policy.login_lockout_duration,
            )
            saved = await self.ctx.repository.save(outcome.account)
            return outcome, saved

        outcome, saved = await self._mutate(request.user_id, attempt, "record_login_attempt")

        if outcome.locked:
            logger.warning(
                f"Account {request.user_id} locked after {saved.failed_attempts} failed attempts",
                extra={"user_id": request.user_id, "attempt": saved.failed_attempts},
            )
            await self.ctx.notify(request.user_id, NotificationEvent.ACCOUNT_LOCKED, {
                "locked_until": saved.lockout_until.isoformat(),
            })
        return LoginResult(
            user_id=request.user_id,
            succeeded=outcome.succeeded,
            failed_attempts=saved.failed_attempts,
            locked_until=saved.lockout_until,
            requires_second_factor=outcome.requires_second_factor,
        )

    async def issue_otp(self, request: IssueOtp, principal: Principal) -> OtpIssuedResult:
        self._guard(principal, request.user_id)
        return await self._issue(request.user_id, request.purpose)

    async def verify_otp(self, request: VerifyOtp, principal: Principal) -> OtpVerifiedResult:
        self._guard(principal, request.user_id)
        await self._verified(request.user_id, request.purpose, request.code)
        return OtpVerifiedResult(user_id=request.user_id, purpose=request.purpose)

    async def enable_two_factor(
        self, request: EnableTwoFactor, principal: Principal,
    ) -> AuthStatusResult:
        return await self._change_after_code(
            principal, OtpPurpose.TWO_FACTOR_SETUP, request.code,
            lambda account: set_two_factor(account, True), "enable_two_factor",
        )

    async def disable_two_factor(
        self, request: DisableTwoFactor, principal: Principal,
    ) -> AuthStatusResult:
        return await self._change_after_code(
            principal, OtpPurpose.LOGIN, request.code,
            lambda account: set_two_factor(account, False), "disable_two_factor",
        )

    async def link_social_login(
        self, request: LinkSocialLogin, principal: Principal,
    ) -> AuthStatusResult:
        return await self._change_after_code(
            principal, OtpPurpose.DEVICE_VERIFICATION, request.code,
            lambda account: link_login(account, request.provider, request.provider_user_id),
            "link_social_login",
        )

    async def unlink_social_login(
        self, request: UnlinkSocialLogin, principal: Principal,
    ) -> AuthStatusResult:
        async def attempt() -> AuthAccountState:
            account = await self._account(principal.user_id)
            return await self.ctx.repository.save(unlink_login(account, request.provider))

        saved = await self._mutate(principal.user_id, attempt, "unlink_social_login")
        return _status(saved, self.ctx.clock())

    async def unlock_account(
        self, request: UnlockAccount, principal: Principal,
    ) -> AuthStatusResult:
        if not principal.is_admin:
            raise AuthorizationDeniedError(DenialReason.INSUFFICIENT_ROLE)

        async def attempt() -> AuthAccountState:
            account = await self._account(request.user_id)
            return await self.ctx.repository.save(unlock(account))

        saved = await self._mutate(request.user_id, attempt, "unlock_account")
        logger.info(
            f"Account {request.user_id} unlocked by {principal.user_id}",
            extra={"user_id": principal.user_id, "entity_id": request.user_id},
        )
        return _status(saved, self.ctx.clock())

    async def get_auth_status(
        self, request: GetAuthStatus, principal: Principal,
    ) -> AuthStatusResult:
        self._guard(principal, request.user_id)
        return _status(await self._account(request.user_id), self.ctx.clock())

    # ─── Internals ──────────────────────────────────────────────

    @staticmethod
    def _guard(principal: Principal, user_id: str) -> None:
        require(authorize(
            principal, GuardedAction.MANAGE_OWN_ACCOUNT,
            AuthorizationTarget(owner_id=user_id),
        ))

    async def _account(self, user_id: str) -> AuthAccountState:
        account = await self.ctx.find(EntityKind.AUTH_ACCOUNT, user_id)
        return account or AuthAccountState(user_id=UserId(user_id))

    async def _mutate(self, user_id: str, attempt, label: str):
        async with self.ctx.locks.hold(lock_key(EntityKind.AUTH_ACCOUNT, user_id)):
            return await self.ctx.retry_on_conflict(attempt, label)

    async def _issue(self, user_id: str, purpose: OtpPurpose) -> OtpIssuedResult:
        policy = self.ctx.policy
        code = self.ctx.code_factory(policy.otp_length)

        async def attempt() -> AuthAccountState:
            account = await self._account(user_id)
            return await self.ctx.repository.save(
                issue_otp(account, purpose, code, self.ctx.clock(), policy.otp_ttl),
            )

        saved = await self._mutate(user_id, attempt, "issue_otp")
        challenge = saved.pending_otps[purpose.value]
        logger.info(
            f"OTP issued for {purpose.value}",
            extra={"user_id": user_id, "entity_id": user_id},
        )
        await self.ctx.notify(user_id, NotificationEvent.OTP_ISSUED, {
            "purpose": purpose.value,
            "code": code,
            "expires_at": challenge.expires_at.isoformat(),
        })
        return OtpIssuedResult(
            user_id=user_id, purpose=purpose, expires_at=challenge.expires_at,
        )

    async def _verified(self, user_id: str, purpose: OtpPurpose, code: str) -> None:
        """Consume the code or raise its OTP error after saving the attempt."""
        async def attempt():
            account = await self._account(user_id)
            check = verify_otp(
                account, purpose, code, self.ctx.clock(), self.ctx.policy.otp_max_attempts,
            )
            if check.account is not account:
                await self.ctx.repository.save(check.account)
            return check

        check = await self._mutate(user_id, attempt, "verify_otp")
        if check.error is not None:
            logger.info(
                f"OTP verification for {purpose.value} failed: {check.error.code}",
                extra={"user_id": user_id, "error_code": check.error.code},
            )
            raise check.error

    async def _change_after_code(
        self, principal: Principal, purpose: OtpPurpose, code: str, change, label: str,
    ) -> AuthStatusResult:
        """Verify the code and apply change in one versioned write.

        change runs on the loaded account before the code is checked, so a
        rejected change leaves the code unspent.
        """
        user_id = principal.user_id

        async def attempt():
            account = await self._account(user_id)
            change(account)
            check = verify_otp(
                account, purpose, code, self.ctx.clock(), self.ctx.policy.otp_max_attempts,
            )
            if check.error is not None:
                if check.account is not account:
                    await self.ctx.repository.save(check.account)
                return check, None
            return check, await self.ctx.repository.save(change(check.account))

        check, saved = await self._mutate(user_id, attempt, label)
        if check.error is not None:
            logger.info(
                f"{label} refused: {check.error.code}",
                extra={"user_id": user_id, "error_code": check.error.code},
            )
            raise check.error
        logger.info(f"{label} completed", extra={"user_id": user_id, "entity_id": user_id})
        return _status(saved, self.ctx.clock())
