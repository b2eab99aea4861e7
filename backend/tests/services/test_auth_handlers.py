"""Auth Handlers — lockout, OTP lifecycle, 2FA and linked logins."""

import pytest

from agora.core.domain_types import DenialReason, EntityKind, StandingStatus
from agora.core.entities import AccountStanding
from agora.core.errors import (
    AuthorizationDeniedError,
    InvalidTransitionError,
    OtpAlreadyUsedError,
    OtpExpiredError,
    OtpInvalidError,
)
from tests.support import OTP_CODE, admin, run, user


async def _login(dispatch, succeeded, who="alice"):
    return await run(dispatch, user(who), kind="record_login_attempt", user_id=who, succeeded=succeeded)


async def test_lockout_after_threshold(ctx, dispatch, sink, clock):
    for _ in range(ctx.policy.login_lockout_threshold):
        result = await _login(dispatch, False)
    assert result.locked_until == clock.now + ctx.policy.login_lockout_duration
    assert sink.of_kind("account_locked")[0][0] == "alice"

    with pytest.raises(AuthorizationDeniedError) as exc:
        await _login(dispatch, True)
    assert exc.value.reason == DenialReason.LOCKED

    clock.now += ctx.policy.login_lockout_duration
    assert (await _login(dispatch, True)).succeeded


async def test_admin_unlocks(ctx, dispatch):
    for _ in range(ctx.policy.login_lockout_threshold):
        await _login(dispatch, False)
    with pytest.raises(AuthorizationDeniedError):
        await run(dispatch, user("alice"), kind="unlock_account", user_id="alice")
    status = await run(dispatch, admin(), kind="unlock_account", user_id="alice")
    assert not status.locked
    assert (await _login(dispatch, True)).succeeded


async def test_cannot_act_on_other_accounts(dispatch):
    with pytest.raises(AuthorizationDeniedError) as exc:
        await run(dispatch, user("bob"), kind="record_login_attempt", user_id="alice", succeeded=False)
    assert exc.value.reason == DenialReason.NOT_OWNER


async def test_otp_is_delivered_not_returned(dispatch, sink, repository):
    issued = await run(dispatch, user("alice"), kind="issue_otp", user_id="alice", purpose="login")
    assert "code" not in issued.model_dump()
    [(recipient, payload)] = sink.of_kind("otp_issued")
    assert (recipient, payload["code"]) == ("alice", OTP_CODE)
    stored = await repository.get(EntityKind.AUTH_ACCOUNT, "alice")
    assert stored.pending_otps["login"].code_digest != OTP_CODE
    assert len(stored.pending_otps["login"].code_digest) == 64


async def test_otp_single_use(dispatch):
    await run(dispatch, user("alice"), kind="issue_otp", user_id="alice", purpose="login")
    verified = await run(dispatch, user("alice"), kind="verify_otp", user_id="alice", purpose="login", code=OTP_CODE)
    assert verified.verified
    with pytest.raises(OtpAlreadyUsedError):
        await run(dispatch, user("alice"), kind="verify_otp", user_id="alice", purpose="login", code=OTP_CODE)


async def test_wrong_guesses_are_persisted(ctx, dispatch, repository):
    await run(dispatch, user("alice"), kind="issue_otp", user_id="alice", purpose="login")
    for _ in range(ctx.policy.otp_max_attempts):
        with pytest.raises(OtpInvalidError):
            await run(dispatch, user("alice"), kind="verify_otp", user_id="alice", purpose="login", code="999999")
    stored = await repository.get(EntityKind.AUTH_ACCOUNT, "alice")
    assert stored.pending_otps["login"].attempts == ctx.policy.otp_max_attempts
    with pytest.raises(OtpExpiredError):
        await run(dispatch, user("alice"), kind="verify_otp", user_id="alice", purpose="login", code=OTP_CODE)


async def test_otp_expires(ctx, dispatch, clock):
    await run(dispatch, user("alice"), kind="issue_otp", user_id="alice", purpose="password_reset")
    clock.now += ctx.policy.otp_ttl
    with pytest.raises(OtpExpiredError):
        await run(dispatch, user("alice"), kind="verify_otp", user_id="alice", purpose="password_reset", code=OTP_CODE)


async def test_enable_two_factor_then_login_requires_it(dispatch):
    await run(dispatch, user("alice"), kind="issue_otp", user_id="alice", purpose="two_factor_setup")
    status = await run(dispatch, user("alice"), kind="enable_two_factor", code=OTP_CODE)
    assert status.two_factor_enabled
    assert (await _login(dispatch, True)).requires_second_factor


async def test_enable_two_factor_with_wrong_code_changes_nothing(dispatch):
    await run(dispatch, user("alice"), kind="issue_otp", user_id="alice", purpose="two_factor_setup")
    with pytest.raises(OtpInvalidError):
        await run(dispatch, user("alice"), kind="enable_two_factor", code="000000")
    status = await run(dispatch, user("alice"), kind="get_auth_status", user_id="alice")
    assert not status.two_factor_enabled


async def test_link_and_unlink_social_login(dispatch):
    await run(dispatch, user("alice"), kind="issue_otp", user_id="alice", purpose="device_verification")
    linked = await run(
        dispatch, user("alice"), kind="link_social_login",
        provider="github", provider_user_id="gh-42", code=OTP_CODE,
    )
    assert linked.linked_providers == ["github"]
    unlinked = await run(dispatch, user("alice"), kind="unlink_social_login", provider="github")
    assert unlinked.linked_providers == []


async def test_banned_account_cannot_log_in(dispatch, repository):
    await repository.save(AccountStanding(user_id="alice", status=StandingStatus.BANNED))
    with pytest.raises(AuthorizationDeniedError) as exc:
        await _login(dispatch, True)
    assert exc.value.reason == DenialReason.BANNED


async def test_refused_enable_keeps_the_code(dispatch):
    await run(dispatch, user("alice"), kind="issue_otp", user_id="alice", purpose="two_factor_setup")
    await run(dispatch, user("alice"), kind="enable_two_factor", code=OTP_CODE)

    await run(dispatch, user("alice"), kind="issue_otp", user_id="alice", purpose="two_factor_setup")
    with pytest.raises(InvalidTransitionError):
        await run(dispatch, user("alice"), kind="enable_two_factor", code=OTP_CODE)
    status = await run(dispatch, user("alice"), kind="get_auth_status", user_id="alice")
    assert status.pending_otp_purposes == ["two_factor_setup"]
    verified = await run(
        dispatch, user("alice"), kind="verify_otp",
        user_id="alice", purpose="two_factor_setup", code=OTP_CODE,
    )
    assert verified.verified


async def test_refused_link_keeps_the_code(dispatch):
    link = dict(kind="link_social_login", provider="github", provider_user_id="gh-42", code=OTP_CODE)
    await run(dispatch, user("alice"), kind="issue_otp", user_id="alice", purpose="device_verification")
    await run(dispatch, user("alice"), **link)

    await run(dispatch, user("alice"), kind="issue_otp", user_id="alice", purpose="device_verification")
    with pytest.raises(InvalidTransitionError):
        await run(dispatch, user("alice"), **link)
    status = await run(dispatch, user("alice"), kind="get_auth_status", user_id="alice")
    assert status.pending_otp_purposes == ["device_verification"]
    assert status.linked_providers == ["github"]
