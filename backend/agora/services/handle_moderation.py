"""Moderation Handlers — report lifecycle and its follow-up sanctions (6 methods).

Invariants:
    - The report transition commits first; its follow-up effect (standing
      sanction or content removal) is a second, separate write
    - A failed follow-up never rolls back the report. It is logged as a
      reconciliation gap and surfaced as PartialSuccess
    - Reports are visible to staff and to their reporter only
"""

import logging

from agora.core.domain_types import (
    EntityKind,
    GuardedAction,
    ModerationAction,
    NotificationEvent,
    ReportId,
    TargetKind,
    UserId,
)
from agora.core.enforce_authorization import AuthorizationTarget, authorize, require
from agora.core.enforce_content import remove
from agora.core.enforce_moderation import (
    SANCTIONS,
    apply_sanction,
    can_view_report,
    claim_report,
    dismiss_report,
    effective_standing,
    resolve_report,
    submit_report,
)
from agora.core.entities import AccountStanding, ModerationReport, Principal, target_key
from agora.core.errors import AgoraError, ResourceNotFoundError
from agora.schemas.requests import (
    ClaimReport,
    DismissReport,
    GetAccountStanding,
    GetReport,
    ResolveReport,
    SubmitReport,
)
from agora.schemas.results import PartialSuccess, ReportResult, StandingResult
from agora.services.handler_context import HandlerContext, lock_key

logger = logging.getLogger(__name__)


class ModerationHandlers:
    """Moderation Workflow shell."""

    def __init__(self, ctx: HandlerContext):
        self.ctx = ctx

    async def submit_report(self, request: SubmitReport, principal: Principal) -> ReportResult:
        report = submit_report(
            ReportId(self.ctx.id_factory()),
            principal.user_id,
            request.content_type,
            request.content_id,
            request.reason,
            self.ctx.clock(),
            reported_user_id=request.reported_user_id,
            additional_info=request.additional_info,
        )
        saved = await self.ctx.repository.save(report)
        logger.info(
            f"Report {saved.report_id} filed against {saved.content_type.value} {saved.content_id}",
            extra={"user_id": principal.user_id, "entity_id": saved.report_id},
        )
        return ReportResult.from_entity(saved)

    async def claim_report(self, request: ClaimReport, principal: Principal) -> ReportResult:
        saved = await self._mutate(
            request.report_id, "claim_report",
            lambda report: claim_report(report, principal),
        )
        return ReportResult.from_entity(saved)

    async def resolve_report(
        self, request: ResolveReport, principal: Principal,
    ) -> ReportResult | PartialSuccess:
        now = self.ctx.clock()
        saved = await self._mutate(
            request.report_id, "resolve_report",
            lambda report: resolve_report(report, principal, request.action, now, request.notes),
        )
        result = ReportResult.from_entity(saved)
        await self._tell_reporter(saved)

        effect = "account_sanction" if saved.action in SANCTIONS else "content_removal"
        try:
            if saved.action in SANCTIONS:
                await self._sanction(saved, principal)
            elif saved.action == ModerationAction.CONTENT_REMOVED:
                await self._remove_content(saved)
        except AgoraError as e:
            logger.error(
                f"Report {saved.report_id} resolved but {effect} failed: {e.message}",
                extra={"error_code": e.code, "entity_id": saved.report_id},
            )
            return PartialSuccess(
                result=result, failed_effect=effect,
                error_code=e.code, message=e.message,
            )
        return result

    async def dismiss_report(self, request: DismissReport, principal: Principal) -> ReportResult:
        now = self.ctx.clock()
        saved = await self._mutate(
            request.report_id, "dismiss_report",
            lambda report: dismiss_report(report, principal, now, request.notes),
        )
        await self._tell_reporter(saved)
        return ReportResult.from_entity(saved)

    async def get_report(self, request: GetReport, principal: Principal) -> ReportResult:
        report = await self.ctx.repository.get(EntityKind.REPORT, request.report_id)
        if not can_view_report(report, principal):
            # Existence is not disclosed to outsiders
            raise ResourceNotFoundError("report", request.report_id)
        return ReportResult.from_entity(report)

    async def get_account_standing(
        self, request: GetAccountStanding, principal: Principal,
    ) -> StandingResult:
        if not principal.is_staff:
            require(authorize(
                principal, GuardedAction.MANAGE_OWN_ACCOUNT,
                AuthorizationTarget(owner_id=request.user_id),
            ))
        standing = await self.ctx.find(EntityKind.STANDING, request.user_id)
        if standing is None:
            standing = AccountStanding(user_id=UserId(request.user_id))
        return StandingResult.from_entity(
            standing, effective_standing(standing, self.ctx.clock()),
        )

    # ─── Internals ──────────────────────────────────────────────

    async def _mutate(self, report_id: str, label: str, transition) -> ModerationReport:
        async def attempt() -> ModerationReport:
            report = await self.ctx.repository.get(EntityKind.REPORT, report_id)
            return await self.ctx.repository.save(transition(report))

        async with self.ctx.locks.hold(lock_key(EntityKind.REPORT, report_id)):
            saved = await self.ctx.retry_on_conflict(attempt, label)
        logger.info(
            f"Report {report_id} is now {saved.status.value}",
            extra={"entity_id": report_id},
        )
        return saved

    async def _sanction(self, report: ModerationReport, principal: Principal) -> AccountStanding:
        require(authorize(principal, GuardedAction.SANCTION_USER, AuthorizationTarget()))
        user_id = report.reported_user_id

        async def attempt() -> AccountStanding:
            standing = await self.ctx.find(EntityKind.STANDING, user_id)
            if standing is None:
                standing = AccountStanding(user_id=user_id)
            updated = apply_sanction(
                standing, report.action, self.ctx.clock(),
                self.ctx.policy.account_suspension,
                reason=f"report:{report.report_id}",
            )
            if updated is standing:
                return standing
            return await self.ctx.repository.save(updated)

        async with self.ctx.locks.hold(lock_key(EntityKind.STANDING, user_id)):
            standing = await self.ctx.retry_on_conflict(attempt, "apply_sanction")
        logger.info(
            f"Sanction {report.action.value} applied to {user_id}",
            extra={"user_id": principal.user_id, "entity_id": user_id},
        )
        await self.ctx.notify(user_id, NotificationEvent.ACCOUNT_SANCTIONED, {
            "action": report.action.value,
            "suspended_until": standing.suspended_until.isoformat()
            if standing.suspended_until else None,
        })
        return standing

    async def _remove_content(self, report: ModerationReport) -> None:
        key = target_key(TargetKind(report.content_type.value), report.content_id)

        async def attempt() -> None:
            target = await self.ctx.repository.get(EntityKind.TARGET, key)
            if not target.is_removed:
                await self.ctx.repository.save(remove(target))

        async with self.ctx.locks.hold(lock_key(EntityKind.TARGET, key)):
            await self.ctx.retry_on_conflict(attempt, "remove_reported_content")
        logger.info(f"Reported content {key} removed", extra={"entity_id": key})

    async def _tell_reporter(self, report: ModerationReport) -> None:
        await self.ctx.notify(report.reporter_id, NotificationEvent.REPORT_RESOLVED, {
            "report_id": report.report_id,
            "status": report.status.value,
            "action": report.action.value,
        })
