"""Content Rules — publish, edit, remove, lock, pin and answer posts and comments.

Invariants:
    - All functions are PURE: they return the next VotableTarget
    - A removed target cannot be edited, locked, pinned or removed again
    - A comment always names its parent; a post never does
    - Body is stripped and bounded (MAX_BODY_LENGTH)
    - A post accepts at most one answer, and only a live comment of its own;
      re-accepting the same comment changes nothing

Design Decisions:
    - Ownership and staff checks live in the Authorization Guard; this module
      only knows about the target's own state
"""

from dataclasses import replace
from datetime import datetime

from agora.core.domain_types import TargetId, TargetKind, UserId
from agora.core.entities import VotableTarget
from agora.core.errors import InputValidationError, InvalidTransitionError

MAX_BODY_LENGTH: int = 20_000


def _clean_body(body: str) -> str:
    body = body.strip()
    if not body:
        raise InputValidationError("Content body cannot be empty", field="body")
    if len(body) > MAX_BODY_LENGTH:
        raise InputValidationError(
            f"Content body exceeds {MAX_BODY_LENGTH} characters", field="body",
        )
    return body


def new_target(
    target_kind: TargetKind, target_id: TargetId, owner_id: UserId,
    body: str, now: datetime, parent_id: TargetId | None = None,
) -> VotableTarget:
    """Build a fresh post or comment."""
    if target_kind == TargetKind.COMMENT and not parent_id:
        raise InputValidationError("A comment requires a parent post", field="parent_id")
    if target_kind == TargetKind.POST and parent_id:
        raise InputValidationError("A post cannot have a parent", field="parent_id")
    return VotableTarget(
        target_kind=target_kind,
        target_id=target_id,
        owner_id=owner_id,
        body=_clean_body(body),
        created_at=now,
        parent_id=parent_id,
    )


def check_accepts_replies(parent: VotableTarget) -> None:
    """Comments may only be added under a live, unlocked post."""
    if parent.is_removed:
        raise InvalidTransitionError(parent.target_kind.value, "removed", "comment")
    if parent.is_locked:
        raise InvalidTransitionError(parent.target_kind.value, "locked", "comment")


def edit_body(target: VotableTarget, body: str, now: datetime) -> VotableTarget:
    if target.is_removed:
        raise InvalidTransitionError(target.target_kind.value, "removed", "edit")
    if target.is_locked:
        raise InvalidTransitionError(target.target_kind.value, "locked", "edit")
    return replace(target, body=_clean_body(body), edited_at=now)


def remove(target: VotableTarget) -> VotableTarget:
    if target.is_removed:
        raise InvalidTransitionError(target.target_kind.value, "removed", "remove")
    return replace(target, is_removed=True, is_pinned=False)


def set_flags(
    target: VotableTarget, locked: bool | None = None, pinned: bool | None = None,
) -> VotableTarget:
    """Moderator lock / pin toggles. None leaves a flag unchanged."""
    if target.is_removed:
        raise InvalidTransitionError(target.target_kind.value, "removed", "set_flags")
    if pinned and target.target_kind != TargetKind.POST:
        raise InvalidTransitionError(target.target_kind.value, "active", "pin")
    return replace(
        target,
        is_locked=target.is_locked if locked is None else locked,
        is_pinned=target.is_pinned if pinned is None else pinned,
    )


def accept_answer(post: VotableTarget, comment: VotableTarget) -> VotableTarget:
    """Mark `comment` as the accepted answer of `post`."""
    if post.target_kind != TargetKind.POST:
        raise InputValidationError("Only a post can accept an answer", field="post_id")
    if comment.target_kind != TargetKind.COMMENT or comment.parent_id != post.target_id:
        raise InputValidationError(
            "The answer must be a comment on this post", field="comment_id",
        )
    if post.is_removed:
        raise InvalidTransitionError("post", "removed", "accept_answer")
    if comment.is_removed:
        raise InvalidTransitionError("comment", "removed", "accept_answer")
    if post.accepted_answer_id == comment.target_id:
        return post
    if post.accepted_answer_id is not None:
        raise InvalidTransitionError("post", "answered", "accept_answer")
    return replace(post, accepted_answer_id=comment.target_id)
