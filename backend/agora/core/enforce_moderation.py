"""Moderation Workflow — report lifecycle and the sanctions it can produce.

Invariants:
    - Pending -> UnderReview -> {Resolved, Dismissed}; nothing leaves a terminal state
    - Only staff principals move a report; only the claiming moderator or an
      administrator may close it
    - Resolution requires an action other than NONE; dismissal keeps NONE
    - action is written once, at resolution
    - Sanctions are computed here but applied by the caller as a separate,
      explicitly invoked step (no implicit cascade)

Design Decisions:
    - REPORT_TRANSITIONS mirrors the membership table so every state machine
      reads the same way
    - Suspension length is an input to apply_sanction, not a constant here
"""

from dataclasses import replace
from datetime import datetime, timedelta

from agora.core.domain_types import (
    ContentType,
    DenialReason,
    GuardedAction,
    ModerationAction,
    ReportId,
    ReportReason,
    ReportStatus,
    StandingStatus,
    UserId,
)
from agora.core.enforce_authorization import AuthorizationTarget, authorize, require
from agora.core.entities import AccountStanding, ModerationReport, Principal
from agora.core.errors import (
    AuthorizationDeniedError,
    InputValidationError,
    InvalidTransitionError,
)

MAX_INFO_LENGTH: int = 2000

REPORT_TRANSITIONS: dict[tuple[ReportStatus, str], ReportStatus] = {
    (ReportStatus.PENDING, "claim"): ReportStatus.UNDER_REVIEW,
    (ReportStatus.UNDER_REVIEW, "resolve"): ReportStatus.RESOLVED,
    (ReportStatus.UNDER_REVIEW, "dismiss"): ReportStatus.DISMISSED,
}

# Actions that reach beyond the report into account standing
SANCTIONS = frozenset({
    ModerationAction.WARNING,
    ModerationAction.USER_SUSPENDED,
    ModerationAction.USER_BANNED,
})

REMOVABLE_CONTENT = frozenset({ContentType.POST, ContentType.COMMENT})


def _next(report: ModerationReport, event: str) -> ReportStatus:
    status = REPORT_TRANSITIONS.get((report.status, event))
    if status is None:
        raise InvalidTransitionError("report", report.status.value, event)
    return status


def submit_report(
    report_id: ReportId,
    reporter_id: UserId,
    content_type: ContentType,
    content_id: str,
    reason: ReportReason,
    now: datetime,
    reported_user_id: UserId | None = None,
    additional_info: str | None = None,
) -> ModerationReport:
    """Any principal may report anything. Duplicates are expected."""
    if not content_id.strip():
        raise InputValidationError("content_id is required", field="content_id")
    if additional_info and len(additional_info) > MAX_INFO_LENGTH:
        raise InputValidationError(
            f"additional_info exceeds {MAX_INFO_LENGTH} characters",
            field="additional_info",
        )
    if content_type == ContentType.USER and reported_user_id is None:
        reported_user_id = UserId(content_id)
    return ModerationReport(
        report_id=report_id,
        reporter_id=reporter_id,
        content_type=content_type,
        content_id=content_id,
        reason=reason,
        created_at=now,
        reported_user_id=reported_user_id,
        additional_info=additional_info,
    )


def claim_report(report: ModerationReport, principal: Principal) -> ModerationReport:
    """Pending -> UnderReview, recording the claiming moderator."""
    status = _next(report, "claim")
    require(authorize(principal, GuardedAction.REVIEW_REPORT, AuthorizationTarget()))
    return replace(report, status=status, moderator_id=principal.user_id)


def _check_closer(report: ModerationReport, principal: Principal) -> None:
    require(authorize(principal, GuardedAction.REVIEW_REPORT, AuthorizationTarget()))
    if report.moderator_id != principal.user_id and not principal.is_admin:
        raise AuthorizationDeniedError(
            DenialReason.NOT_OWNER, "Only the claiming moderator may close this report",
        )


def resolve_report(
    report: ModerationReport, principal: Principal, action: ModerationAction,
    now: datetime, notes: str | None = None,
) -> ModerationReport:
    status = _next(report, "resolve")
    _check_closer(report, principal)
    if action == ModerationAction.NONE:
        raise InputValidationError("Resolving a report requires an action", field="action")
    if action in SANCTIONS and report.reported_user_id is None:
        raise InputValidationError(
            f"Action '{action.value}' needs a reported user", field="action",
        )
    if action == ModerationAction.CONTENT_REMOVED and report.content_type not in REMOVABLE_CONTENT:
        raise InputValidationError(
            f"Content of type '{report.content_type.value}' cannot be removed",
            field="action",
        )
    return replace(
        report, status=status, action=action, moderator_notes=notes,
        resolved_at=now, moderator_id=report.moderator_id or principal.user_id,
    )


def dismiss_report(
    report: ModerationReport, principal: Principal, now: datetime,
    notes: str | None = None,
) -> ModerationReport:
    status = _next(report, "dismiss")
    _check_closer(report, principal)
    return replace(
        report, status=status, action=ModerationAction.NONE,
        moderator_notes=notes, resolved_at=now,
    )


def can_view_report(report: ModerationReport, principal: Principal) -> bool:
    return principal.is_staff or report.reporter_id == principal.user_id


# ─── Account standing ───────────────────────────────────────────

def apply_sanction(
    standing: AccountStanding, action: ModerationAction, now: datetime,
    suspension: timedelta, reason: str | None = None,
) -> AccountStanding:
    """Apply a report's action to the reported user's standing. Pure.

    A ban is terminal: later warnings or suspensions leave it in place.
    """
    if action not in SANCTIONS:
        raise InvalidTransitionError("standing", standing.status.value, action.value)
    if action == ModerationAction.WARNING:
        return replace(standing, warnings=standing.warnings + 1)
    if standing.status == StandingStatus.BANNED:
        return standing
    if action == ModerationAction.USER_BANNED:
        return replace(
            standing, status=StandingStatus.BANNED, suspended_until=None, reason=reason,
        )
    until = now + suspension
    if standing.suspended_until and standing.suspended_until > until:
        until = standing.suspended_until
    return replace(
        standing, status=StandingStatus.SUSPENDED, suspended_until=until, reason=reason,
    )


def effective_standing(standing: AccountStanding | None, now: datetime) -> StandingStatus:
    """Suspensions lapse on their own; no job has to clear them."""
    if standing is None:
        return StandingStatus.GOOD
    if standing.status == StandingStatus.SUSPENDED:
        if standing.suspended_until is not None and now >= standing.suspended_until:
            return StandingStatus.GOOD
    return standing.status
