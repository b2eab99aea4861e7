"""Reputation Handlers — badges, reputation queries and point credits (4 methods).

Invariants:
    - Reputation changes only through credit(): one write under the user's
      reputation key lock, retried on conflict
    - Badges are awarded by staff only, once per user, from BADGE_CATALOG
    - A user with no record reads as zero points at the lowest level
    - Voting and content handlers call credit() after their own write has
      committed and report its failure as PartialSuccess
"""

import logging
from typing import Callable

from agora.core.domain_types import EntityKind, GuardedAction, NotificationEvent, UserId
from agora.core.enforce_authorization import AuthorizationTarget, authorize, require
from agora.core.enforce_reputation import (
    BADGE_CATALOG,
    award_badge,
    empty_record,
    find_badge,
    level_for,
    rank,
)
from agora.core.entities import Principal, ReputationRecord
from agora.schemas.requests import (
    AwardBadge,
    GetReputationLeaderboard,
    GetUserReputation,
    ListBadges,
)
from agora.schemas.results import (
    BadgeCatalogResult,
    BadgeResult,
    LeaderboardEntry,
    LeaderboardResult,
    ReputationResult,
)
from agora.services.handler_context import HandlerContext, lock_key

logger = logging.getLogger(__name__)


class ReputationHandlers:
    """Reputation ledger shell: load record, apply pure change, save."""

    def __init__(self, ctx: HandlerContext):
        self.ctx = ctx

    async def award_badge(self, request: AwardBadge, principal: Principal) -> ReputationResult:
        require(authorize(principal, GuardedAction.AWARD_BADGE, AuthorizationTarget()))
        badge = find_badge(request.badge_id)
        now = self.ctx.clock()
        record = await self.credit(
            request.user_id,
            lambda r: award_badge(r, badge, principal.user_id, now, request.reason),
            "award_badge",
        )
        logger.info(
            f"Badge '{badge.badge_id}' awarded to {request.user_id}",
            extra={"user_id": principal.user_id, "entity_id": request.user_id},
        )
        await self.ctx.notify(request.user_id, NotificationEvent.BADGE_AWARDED, {
            "badge_id": badge.badge_id,
            "name": badge.name,
            "awarded_by": principal.user_id,
        })
        return self._result(record)

    async def get_user_reputation(
        self, request: GetUserReputation, principal: Principal,
    ) -> ReputationResult:
        record = await self.ctx.find(EntityKind.REPUTATION, request.user_id)
        return self._result(record or empty_record(UserId(request.user_id)))

    async def get_reputation_leaderboard(
        self, request: GetReputationLeaderboard, principal: Principal,
    ) -> LeaderboardResult:
        records = await self.ctx.repository.list_all(EntityKind.REPUTATION)
        return LeaderboardResult(entries=[
            LeaderboardEntry(
                rank=position,
                user_id=record.user_id,
                total_score=record.total,
                level=level_for(record.total)[0],
                badge_count=len(record.badges),
            )
            for position, record in enumerate(rank(records, request.limit), start=1)
        ])

    async def list_badges(self, request: ListBadges, principal: Principal) -> BadgeCatalogResult:
        return BadgeCatalogResult(badges=[
            BadgeResult(
                badge_id=badge.badge_id,
                name=badge.name,
                description=badge.description,
                rarity=badge.rarity,
                points=badge.points,
            )
            for badge in BADGE_CATALOG.values()
        ])

    async def credit(
        self, user_id: str,
        change: Callable[[ReputationRecord], ReputationRecord],
        label: str,
    ) -> ReputationRecord:
        """Apply `change` to user_id's record (created on first use) and save it."""
        async def attempt() -> ReputationRecord:
            record = await self.ctx.find(EntityKind.REPUTATION, user_id)
            return await self.ctx.repository.save(
                change(record or empty_record(UserId(user_id))),
            )

        async with self.ctx.locks.hold(lock_key(EntityKind.REPUTATION, user_id)):
            return await self.ctx.retry_on_conflict(attempt, label)

    @staticmethod
    def _result(record: ReputationRecord) -> ReputationResult:
        level, next_threshold = level_for(record.total)
        return ReputationResult.from_entity(record, level, next_threshold)
