"""Moderation Workflow — report lifecycle and account sanctions."""

from datetime import timedelta

import pytest

from agora.core.domain_types import (
    ContentType,
    ModerationAction,
    ReportReason,
    ReportStatus,
    StandingStatus,
)
from agora.core.enforce_moderation import (
    apply_sanction,
    can_view_report,
    claim_report,
    dismiss_report,
    effective_standing,
    resolve_report,
    submit_report,
)
from agora.core.entities import AccountStanding
from agora.core.errors import (
    AuthorizationDeniedError,
    InputValidationError,
    InvalidTransitionError,
)
from tests.support import T0, admin, moderator, user

WEEK = timedelta(days=7)


def _report(content_type=ContentType.POST, content_id="p1", reported="alice"):
    return submit_report(
        "r1", "bob", content_type, content_id, ReportReason.SPAM, T0,
        reported_user_id=reported,
    )


def test_new_report_is_pending():
    report = _report()
    assert report.status == ReportStatus.PENDING
    assert report.action == ModerationAction.NONE


def test_user_report_defaults_reported_user():
    report = submit_report("r1", "bob", ContentType.USER, "alice", ReportReason.HARASSMENT, T0)
    assert report.reported_user_id == "alice"


def test_claim_requires_staff():
    with pytest.raises(AuthorizationDeniedError):
        claim_report(_report(), user("carol"))


def test_full_resolution_path():
    claimed = claim_report(_report(), moderator())
    assert claimed.status == ReportStatus.UNDER_REVIEW
    resolved = resolve_report(claimed, moderator(), ModerationAction.WARNING, T0, "first strike")
    assert resolved.status == ReportStatus.RESOLVED
    assert resolved.action == ModerationAction.WARNING
    assert resolved.resolved_at == T0


def test_cannot_resolve_pending_report():
    with pytest.raises(InvalidTransitionError):
        resolve_report(_report(), moderator(), ModerationAction.WARNING, T0)


def test_resolve_requires_action():
    claimed = claim_report(_report(), moderator())
    with pytest.raises(InputValidationError):
        resolve_report(claimed, moderator(), ModerationAction.NONE, T0)


def test_only_claimer_or_admin_closes():
    claimed = claim_report(_report(), moderator("mod1"))
    with pytest.raises(AuthorizationDeniedError):
        dismiss_report(claimed, moderator("mod2"), T0)
    assert dismiss_report(claimed, admin(), T0).status == ReportStatus.DISMISSED


def test_terminal_reports_stay_terminal():
    dismissed = dismiss_report(claim_report(_report(), moderator()), moderator(), T0)
    with pytest.raises(InvalidTransitionError):
        claim_report(dismissed, moderator())
    with pytest.raises(InvalidTransitionError):
        resolve_report(dismissed, moderator(), ModerationAction.WARNING, T0)


def test_content_removal_only_for_posts_and_comments():
    claimed = claim_report(_report(ContentType.GROUP, "g1"), moderator())
    with pytest.raises(InputValidationError):
        resolve_report(claimed, moderator(), ModerationAction.CONTENT_REMOVED, T0)


def test_sanction_needs_reported_user():
    claimed = claim_report(_report(reported=None), moderator())
    with pytest.raises(InputValidationError):
        resolve_report(claimed, moderator(), ModerationAction.USER_BANNED, T0)


def test_report_visibility():
    report = _report()
    assert can_view_report(report, user("bob"))
    assert can_view_report(report, moderator())
    assert not can_view_report(report, user("alice"))


def test_warning_counts_up():
    standing = apply_sanction(AccountStanding(user_id="alice"), ModerationAction.WARNING, T0, WEEK)
    assert standing.warnings == 1
    assert standing.status == StandingStatus.GOOD


def test_suspension_extends_never_shortens():
    first = apply_sanction(AccountStanding(user_id="alice"), ModerationAction.USER_SUSPENDED, T0, WEEK)
    assert first.suspended_until == T0 + WEEK
    shorter = apply_sanction(first, ModerationAction.USER_SUSPENDED, T0, timedelta(days=1))
    assert shorter.suspended_until == T0 + WEEK


def test_ban_is_terminal():
    banned = apply_sanction(AccountStanding(user_id="alice"), ModerationAction.USER_BANNED, T0, WEEK)
    assert apply_sanction(banned, ModerationAction.USER_SUSPENDED, T0, WEEK) is banned


def test_non_sanction_action_is_rejected():
    with pytest.raises(InvalidTransitionError):
        apply_sanction(AccountStanding(user_id="alice"), ModerationAction.CONTENT_REMOVED, T0, WEEK)


def test_suspension_lapses():
    suspended = apply_sanction(AccountStanding(user_id="alice"), ModerationAction.USER_SUSPENDED, T0, WEEK)
    assert effective_standing(suspended, T0) == StandingStatus.SUSPENDED
    assert effective_standing(suspended, T0 + WEEK) == StandingStatus.GOOD
    assert effective_standing(None, T0) == StandingStatus.GOOD
