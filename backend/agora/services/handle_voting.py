"""Voting Handlers — cast and retract votes (2 methods).

Invariants:
    - Vote record and score are one entity, saved in one versioned write
    - Per-target key lock + conflict retry: concurrent voters never lose updates
    - No-op votes (repeat or retract-nothing) never touch the Repository
    - The owner is notified only for a committed change by someone else
    - The owner's reputation moves only for a committed change by someone else,
      in a second write after the vote; its failure is a PartialSuccess
"""

import logging
from dataclasses import replace

from agora.core.domain_types import EntityKind, NotificationEvent, TargetKind
from agora.core.enforce_reputation import add_vote_points, vote_points
from agora.core.enforce_voting import VoteOutcome, cast_vote, retract_vote
from agora.core.entities import Principal, target_key
from agora.core.errors import AgoraError
from agora.schemas.requests import CastVote, RetractVote
from agora.schemas.results import PartialSuccess, VoteResult
from agora.services.handle_reputation import ReputationHandlers
from agora.services.handler_context import HandlerContext, lock_key

logger = logging.getLogger(__name__)


class VotingHandlers:
    """Voting Engine shell: load target, apply pure vote transition, save."""

    def __init__(self, ctx: HandlerContext):
        self.ctx = ctx
        self.reputation = ReputationHandlers(ctx)

    async def cast_vote(
        self, request: CastVote, principal: Principal,
    ) -> VoteResult | PartialSuccess:
        await self.ctx.require_good_standing(principal.user_id)
        outcome = await self._apply(
            request.target_kind, request.target_id, "cast_vote",
            lambda target: cast_vote(target, principal.user_id, request.value),
        )
        if outcome.changed and outcome.target.owner_id != principal.user_id:
            await self.ctx.notify(outcome.target.owner_id, NotificationEvent.VOTE_CAST, {
                "target_kind": request.target_kind.value,
                "target_id": request.target_id,
                "value": request.value.value,
                "score": outcome.score,
            })
        return await self._credit_owner(outcome, principal)

    async def retract_vote(
        self, request: RetractVote, principal: Principal,
    ) -> VoteResult | PartialSuccess:
        outcome = await self._apply(
            request.target_kind, request.target_id, "retract_vote",
            lambda target: retract_vote(target, principal.user_id),
        )
        return await self._credit_owner(outcome, principal)

    async def _apply(self, target_kind: TargetKind, target_id: str, label: str, transition) -> VoteOutcome:
        key = target_key(target_kind, target_id)

        async def attempt() -> VoteOutcome:
            target = await self.ctx.repository.get(EntityKind.TARGET, key)
            outcome = transition(target)
            if not outcome.changed:
                return outcome
            saved = await self.ctx.repository.save(outcome.target)
            return replace(outcome, target=saved)

        async with self.ctx.locks.hold(lock_key(EntityKind.TARGET, key)):
            outcome = await self.ctx.retry_on_conflict(attempt, label)
        if outcome.changed:
            logger.info(
                f"{label}: {key} score={outcome.score}",
                extra={"entity_id": key},
            )
        return outcome

    @staticmethod
    def _result(outcome: VoteOutcome) -> VoteResult:
        return VoteResult(
            target_kind=outcome.target.target_kind,
            target_id=outcome.target.target_id,
            score=outcome.score,
            vote=outcome.current,
            changed=outcome.changed,
        )

    async def _credit_owner(
        self, outcome: VoteOutcome, principal: Principal,
    ) -> VoteResult | PartialSuccess:
        result = self._result(outcome)
        owner_id = outcome.target.owner_id
        if not outcome.changed or owner_id == principal.user_id:
            return result
        delta = vote_points(outcome.previous, outcome.current)
        try:
            await self.reputation.credit(
                owner_id, lambda record: add_vote_points(record, delta), "reputation_update",
            )
        except AgoraError as e:
            logger.error(
                f"Vote on {outcome.target.entity_id} committed but reputation update failed: {e.message}",
                extra={"error_code": e.code, "user_id": owner_id, "entity_id": outcome.target.entity_id},
            )
            return PartialSuccess(
                result=result, failed_effect="reputation_update",
                error_code=e.code, message=e.message,
            )
        return result
