"""Moderation Handlers — report scenario, sanctions and partial success.

Tests cover:
    - Submit, claim, resolve with a ban; banned user can no longer publish
    - Content removal resolves and soft-deletes the post
    - A failed follow-up effect leaves the report resolved and returns PartialSuccess
    - Report and standing visibility
"""

import pytest

from agora.core.domain_types import DenialReason, EntityKind, ReportStatus, StandingStatus
from agora.core.errors import (
    AuthorizationDeniedError,
    InvalidTransitionError,
    ResourceNotFoundError,
)
from agora.schemas.results import PartialSuccess, ReportResult
from tests.support import admin, moderator, run, user


async def _post(dispatch, author="alice"):
    result = await run(dispatch, user(author), kind="publish_content", target_kind="post", body="buy now")
    return result.target_id


async def _claimed_report(dispatch, content_id, content_type="post", reported="alice"):
    report = await run(
        dispatch, user("bob"), kind="submit_report", content_type=content_type,
        content_id=content_id, reason="spam", reported_user_id=reported,
    )
    await run(dispatch, moderator(), kind="claim_report", report_id=report.report_id)
    return report.report_id


async def test_ban_scenario(dispatch, sink):
    post_id = await _post(dispatch)
    report_id = await _claimed_report(dispatch, post_id)

    result = await run(dispatch, moderator(), kind="resolve_report", report_id=report_id, action="user_banned")
    assert isinstance(result, ReportResult)
    assert result.status == ReportStatus.RESOLVED

    standing = await run(dispatch, moderator(), kind="get_account_standing", user_id="alice")
    assert standing.status == StandingStatus.BANNED
    assert sink.of_kind("report_resolved")[0][0] == "bob"
    assert sink.of_kind("account_sanctioned")[0][0] == "alice"

    with pytest.raises(AuthorizationDeniedError) as exc:
        await _post(dispatch, "alice")
    assert exc.value.reason == DenialReason.BANNED


async def test_suspension_lapses_after_policy_window(ctx, dispatch, clock):
    report_id = await _claimed_report(dispatch, await _post(dispatch))
    await run(dispatch, moderator(), kind="resolve_report", report_id=report_id, action="user_suspended")
    with pytest.raises(AuthorizationDeniedError):
        await _post(dispatch, "alice")
    clock.now += ctx.policy.account_suspension
    assert await _post(dispatch, "alice")


async def test_content_removed(dispatch, repository):
    post_id = await _post(dispatch)
    report_id = await _claimed_report(dispatch, post_id)
    await run(dispatch, moderator(), kind="resolve_report", report_id=report_id, action="content_removed")
    assert (await repository.get(EntityKind.TARGET, f"post:{post_id}")).is_removed


async def test_missing_content_gives_partial_success(dispatch, repository):
    report_id = await _claimed_report(dispatch, "missing")
    result = await run(dispatch, moderator(), kind="resolve_report", report_id=report_id, action="content_removed")
    assert isinstance(result, PartialSuccess)
    assert result.failed_effect == "content_removal"
    assert result.error_code == "RESOURCE_NOT_FOUND"
    stored = await repository.get(EntityKind.REPORT, report_id)
    assert stored.status == ReportStatus.RESOLVED


async def test_double_resolution_is_rejected(dispatch):
    report_id = await _claimed_report(dispatch, await _post(dispatch))
    await run(dispatch, moderator(), kind="resolve_report", report_id=report_id, action="warning")
    with pytest.raises(InvalidTransitionError):
        await run(dispatch, moderator(), kind="dismiss_report", report_id=report_id)


async def test_reporter_sees_report_outsider_does_not(dispatch):
    report = await run(
        dispatch, user("bob"), kind="submit_report", content_type="user",
        content_id="alice", reason="harassment",
    )
    seen = await run(dispatch, user("bob"), kind="get_report", report_id=report.report_id)
    assert seen.reported_user_id == "alice"
    with pytest.raises(ResourceNotFoundError):
        await run(dispatch, user("carol"), kind="get_report", report_id=report.report_id)


async def test_standing_is_private(dispatch):
    own = await run(dispatch, user("alice"), kind="get_account_standing", user_id="alice")
    assert own.status == StandingStatus.GOOD
    with pytest.raises(AuthorizationDeniedError):
        await run(dispatch, user("bob"), kind="get_account_standing", user_id="alice")
    assert (await run(dispatch, admin(), kind="get_account_standing", user_id="alice")).warnings == 0
