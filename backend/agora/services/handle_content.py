"""Content Handlers — posts, comments and accepted answers (6 methods).

Invariants:
    - Authors must be in good standing to publish
    - Edit is owner-only; delete is owner or staff; lock/pin is staff-only
    - Deletion is a soft remove: the target keeps its votes and score
    - Every mutation runs under the target's key lock and retries on conflict
    - Only the post author accepts an answer. The answerer is credited after
      the post is saved, and a failed credit is a PartialSuccess
"""

import logging

from agora.core.domain_types import (
    EntityKind,
    GuardedAction,
    NotificationEvent,
    TargetId,
    TargetKind,
)
from agora.core.enforce_authorization import AuthorizationTarget, authorize, require
from agora.core.enforce_content import (
    accept_answer,
    check_accepts_replies,
    edit_body,
    new_target,
    remove,
    set_flags,
)
from agora.core.enforce_reputation import add_answer_points
from agora.core.entities import Principal, VotableTarget, target_key
from agora.core.errors import AgoraError, InputValidationError
from agora.schemas.requests import (
    AcceptAnswer,
    DeleteContent,
    EditContent,
    GetTarget,
    PublishContent,
    SetContentFlags,
)
from agora.schemas.results import PartialSuccess, TargetResult
from agora.services.handle_reputation import ReputationHandlers
from agora.services.handler_context import HandlerContext, lock_key

logger = logging.getLogger(__name__)


class ContentHandlers:
    """Publish, edit, remove, lock and pin votable content; accept answers."""

    def __init__(self, ctx: HandlerContext):
        self.ctx = ctx
        self.reputation = ReputationHandlers(ctx)

    async def publish_content(
        self, request: PublishContent, principal: Principal,
    ) -> TargetResult:
        await self.ctx.require_good_standing(principal.user_id)
        now = self.ctx.clock()
        parent = None
        if request.target_kind == TargetKind.COMMENT and request.parent_id:
            parent = await self.ctx.repository.get(
                EntityKind.TARGET, target_key(TargetKind.POST, request.parent_id),
            )
            check_accepts_replies(parent)

        target = new_target(
            request.target_kind, TargetId(self.ctx.id_factory()), principal.user_id,
            request.body, now, parent_id=request.parent_id,
        )
        saved = await self.ctx.repository.save(target)
        logger.info(
            f"Published {saved.target_kind.value} {saved.target_id}",
            extra={"user_id": principal.user_id, "entity_id": saved.entity_id},
        )
        if parent is not None and parent.owner_id != principal.user_id:
            await self.ctx.notify(parent.owner_id, NotificationEvent.COMMENT_ADDED, {
                "post_id": parent.target_id,
                "comment_id": saved.target_id,
                "author_id": principal.user_id,
            })
        return TargetResult.from_entity(saved)

    async def edit_content(
        self, request: EditContent, principal: Principal,
    ) -> TargetResult:
        async def attempt() -> VotableTarget:
            target = await self._load(request.target_kind, request.target_id)
            require(authorize(
                principal, GuardedAction.EDIT_OWN_CONTENT,
                AuthorizationTarget(owner_id=target.owner_id),
            ))
            return await self.ctx.repository.save(
                edit_body(target, request.body, self.ctx.clock()),
            )

        saved = await self._mutate(request.target_kind, request.target_id, attempt, "edit_content")
        return TargetResult.from_entity(saved)

    async def delete_content(
        self, request: DeleteContent, principal: Principal,
    ) -> TargetResult:
        async def attempt() -> VotableTarget:
            target = await self._load(request.target_kind, request.target_id)
            require(authorize(
                principal, GuardedAction.DELETE_CONTENT,
                AuthorizationTarget(owner_id=target.owner_id),
            ))
            return await self.ctx.repository.save(remove(target))

        saved = await self._mutate(request.target_kind, request.target_id, attempt, "delete_content")
        logger.info(
            f"Removed {saved.target_kind.value} {saved.target_id}",
            extra={"user_id": principal.user_id, "entity_id": saved.entity_id},
        )
        return TargetResult.from_entity(saved)

    async def set_content_flags(
        self, request: SetContentFlags, principal: Principal,
    ) -> TargetResult:
        require(authorize(principal, GuardedAction.MODERATE_CONTENT, AuthorizationTarget()))
        if request.locked is None and request.pinned is None:
            raise InputValidationError("Nothing to change: set locked or pinned")

        async def attempt() -> VotableTarget:
            target = await self._load(request.target_kind, request.target_id)
            return await self.ctx.repository.save(
                set_flags(target, locked=request.locked, pinned=request.pinned),
            )

        saved = await self._mutate(request.target_kind, request.target_id, attempt, "set_content_flags")
        return TargetResult.from_entity(saved)

    async def accept_answer(
        self, request: AcceptAnswer, principal: Principal,
    ) -> TargetResult | PartialSuccess:
        async def attempt() -> tuple[VotableTarget, VotableTarget, bool]:
            post = await self._load(TargetKind.POST, request.post_id)
            require(authorize(
                principal, GuardedAction.EDIT_OWN_CONTENT,
                AuthorizationTarget(owner_id=post.owner_id),
            ))
            comment = await self._load(TargetKind.COMMENT, request.comment_id)
            accepted = accept_answer(post, comment)
            if accepted.accepted_answer_id == post.accepted_answer_id:
                return post, comment, False
            return await self.ctx.repository.save(accepted), comment, True

        post, comment, changed = await self._mutate(
            TargetKind.POST, request.post_id, attempt, "accept_answer",
        )
        result = TargetResult.from_entity(post)
        if not changed:
            return result
        logger.info(
            f"Post {post.target_id} accepted comment {comment.target_id}",
            extra={"user_id": principal.user_id, "entity_id": post.entity_id},
        )
        if comment.owner_id == principal.user_id:
            return result

        await self.ctx.notify(comment.owner_id, NotificationEvent.ANSWER_ACCEPTED, {
            "post_id": post.target_id,
            "comment_id": comment.target_id,
        })
        try:
            await self.reputation.credit(comment.owner_id, add_answer_points, "reputation_update")
        except AgoraError as e:
            logger.error(
                f"Answer accepted on {post.target_id} but reputation update failed: {e.message}",
                extra={"error_code": e.code, "user_id": comment.owner_id, "entity_id": post.entity_id},
            )
            return PartialSuccess(
                result=result, failed_effect="reputation_update",
                error_code=e.code, message=e.message,
            )
        return result

    async def get_target(self, request: GetTarget, principal: Principal) -> TargetResult:
        return TargetResult.from_entity(
            await self._load(request.target_kind, request.target_id),
        )

    async def _load(self, target_kind: TargetKind, target_id: str) -> VotableTarget:
        return await self.ctx.repository.get(
            EntityKind.TARGET, target_key(target_kind, target_id),
        )

    async def _mutate(self, target_kind, target_id, attempt, label):
        key = lock_key(EntityKind.TARGET, target_key(target_kind, target_id))
        async with self.ctx.locks.hold(key):
            return await self.ctx.retry_on_conflict(attempt, label)
