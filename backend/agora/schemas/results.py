"""Result Schemas — what handlers return through the dispatcher.

Invariants:
    - Results are public-facing: no digests, codes or vote maps of other users
    - PartialSuccess wraps a committed primary result whose follow-up effect failed

Design Decisions:
    - from_entity() constructors keep entity -> result mapping next to the shape
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from agora.core.domain_types import (
    BadgeRarity,
    ContentType,
    ConversationType,
    GroupPrivacy,
    MemberRole,
    MemberStatus,
    ModerationAction,
    OtpPurpose,
    ReportReason,
    ReportStatus,
    ReputationLevel,
    StandingStatus,
    TargetKind,
    VoteValue,
)
from agora.core.entities import (
    AccountStanding,
    AwardedBadge,
    GroupMembership,
    Message,
    ModerationReport,
    ReputationRecord,
    VotableTarget,
)


class TargetResult(BaseModel):
    target_kind: TargetKind
    target_id: str
    owner_id: str
    body: str
    parent_id: str | None = None
    score: int
    vote_count: int
    is_locked: bool
    is_pinned: bool
    is_removed: bool
    created_at: datetime
    edited_at: datetime | None = None
    accepted_answer_id: str | None = None

    @classmethod
    def from_entity(cls, target: VotableTarget) -> "TargetResult":
        return cls(
            target_kind=target.target_kind,
            target_id=target.target_id,
            owner_id=target.owner_id,
            body="" if target.is_removed else target.body,
            parent_id=target.parent_id,
            score=target.score,
            vote_count=len(target.votes),
            is_locked=target.is_locked,
            is_pinned=target.is_pinned,
            is_removed=target.is_removed,
            created_at=target.created_at,
            edited_at=target.edited_at,
            accepted_answer_id=target.accepted_answer_id,
        )


class VoteResult(BaseModel):
    target_kind: TargetKind
    target_id: str
    score: int
    vote: VoteValue | None = None
    changed: bool


class GroupResult(BaseModel):
    group_id: str
    name: str
    privacy: GroupPrivacy
    owner_id: str


class MembershipResult(BaseModel):
    group_id: str
    user_id: str
    role: MemberRole
    status: MemberStatus
    joined_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, membership: GroupMembership) -> "MembershipResult":
        return cls(
            group_id=membership.group_id,
            user_id=membership.user_id,
            role=membership.role,
            status=membership.status,
            joined_at=membership.joined_at,
            updated_at=membership.updated_at,
        )


class OwnershipResult(BaseModel):
    group_id: str
    owner_id: str
    previous_owner_id: str


class ReportResult(BaseModel):
    report_id: str
    reporter_id: str
    reported_user_id: str | None = None
    content_type: ContentType
    content_id: str
    reason: ReportReason
    status: ReportStatus
    moderator_id: str | None = None
    action: ModerationAction
    moderator_notes: str | None = None
    created_at: datetime
    resolved_at: datetime | None = None

    @classmethod
    def from_entity(cls, report: ModerationReport) -> "ReportResult":
        return cls(
            report_id=report.report_id,
            reporter_id=report.reporter_id,
            reported_user_id=report.reported_user_id,
            content_type=report.content_type,
            content_id=report.content_id,
            reason=report.reason,
            status=report.status,
            moderator_id=report.moderator_id,
            action=report.action,
            moderator_notes=report.moderator_notes,
            created_at=report.created_at,
            resolved_at=report.resolved_at,
        )


class StandingResult(BaseModel):
    user_id: str
    status: StandingStatus
    suspended_until: datetime | None = None
    warnings: int

    @classmethod
    def from_entity(cls, standing: AccountStanding, status: StandingStatus) -> "StandingResult":
        return cls(
            user_id=standing.user_id,
            status=status,
            suspended_until=standing.suspended_until,
            warnings=standing.warnings,
        )


class PartialSuccess(BaseModel):
    """The primary transition committed; a follow-up effect did not."""
    result: Any
    failed_effect: str
    error_code: str
    message: str


class ConversationResult(BaseModel):
    conversation_id: str
    conversation_type: ConversationType
    title: str
    participant_ids: list[str]
    last_sequence: int
    unread_count: int


class MessageResult(BaseModel):
    message_id: str
    conversation_id: str
    sequence: int
    sender_id: str
    content: str
    sent_at: datetime
    reply_to_sequence: int | None = None

    @classmethod
    def from_entity(cls, message: Message) -> "MessageResult":
        return cls(
            message_id=message.entity_id,
            conversation_id=message.conversation_id,
            sequence=message.sequence,
            sender_id=message.sender_id,
            content=message.content,
            sent_at=message.sent_at,
            reply_to_sequence=message.reply_to_sequence,
        )


class MessagePage(BaseModel):
    conversation_id: str
    messages: list[MessageResult]
    next_cursor: int | None = None


class LoginResult(BaseModel):
    user_id: str
    succeeded: bool
    failed_attempts: int
    locked_until: datetime | None = None
    requires_second_factor: bool = False


class OtpIssuedResult(BaseModel):
    user_id: str
    purpose: OtpPurpose
    expires_at: datetime


class OtpVerifiedResult(BaseModel):
    user_id: str
    purpose: OtpPurpose
    verified: bool = True


class AuthStatusResult(BaseModel):
    user_id: str
    locked: bool
    locked_until: datetime | None = None
    failed_attempts: int
    two_factor_enabled: bool
    linked_providers: list[str]
    pending_otp_purposes: list[OtpPurpose]


class AwardedBadgeResult(BaseModel):
    badge_id: str
    awarded_by: str
    awarded_at: datetime
    reason: str | None = None

    @classmethod
    def from_entity(cls, badge: AwardedBadge) -> "AwardedBadgeResult":
        return cls(
            badge_id=badge.badge_id,
            awarded_by=badge.awarded_by,
            awarded_at=badge.awarded_at,
            reason=badge.reason,
        )


class ReputationResult(BaseModel):
    user_id: str
    total_score: int
    votes_received_score: int
    answers_score: int
    badges_score: int
    level: ReputationLevel
    next_level_threshold: int | None = None
    badges: list[AwardedBadgeResult]

    @classmethod
    def from_entity(
        cls, record: ReputationRecord, level: ReputationLevel, next_threshold: int | None,
    ) -> "ReputationResult":
        return cls(
            user_id=record.user_id,
            total_score=record.total,
            votes_received_score=record.votes_received_score,
            answers_score=record.answers_score,
            badges_score=record.badges_score,
            level=level,
            next_level_threshold=next_threshold,
            badges=[
                AwardedBadgeResult.from_entity(b)
                for b in sorted(record.badges.values(), key=lambda b: b.awarded_at)
            ],
        )


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    total_score: int
    level: ReputationLevel
    badge_count: int


class LeaderboardResult(BaseModel):
    entries: list[LeaderboardEntry]


class BadgeResult(BaseModel):
    badge_id: str
    name: str
    description: str
    rarity: BadgeRarity
    points: int


class BadgeCatalogResult(BaseModel):
    badges: list[BadgeResult]
