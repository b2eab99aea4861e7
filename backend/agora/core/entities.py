"""Entities — the aggregates each state machine owns, as plain dataclasses.

Invariants:
    - Every persisted entity exposes KIND (repository namespace) and entity_id
    - version is the optimistic-concurrency token: 0 means never saved,
      the Repository bumps it on every successful save
    - Relations are identifiers only — no entity holds another entity
    - VotableTarget.score is derived from votes, recomputed on every mutation
    - A post names at most one accepted answer (one of its own comments)
    - ReputationRecord.total is derived from its score buckets, never stored
    - AuthAccountState has no "locked" flag; lockout is derived from lockout_until

Design Decisions:
    - Dataclasses, not ORM models: core stays free of persistence concerns and
      the entity codec (infrastructure/entity_codec.py) owns the JSON shape
    - Principal is frozen: built once per request from the identity assertion
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar

from agora.core.domain_types import (
    ConversationId,
    ConversationType,
    ContentType,
    EntityKind,
    GroupId,
    GroupPrivacy,
    MemberRole,
    MemberStatus,
    ModerationAction,
    OtpPurpose,
    PlatformRole,
    ReportId,
    ReportReason,
    ReportStatus,
    StandingStatus,
    TargetId,
    TargetKind,
    UserId,
    VoteValue,
)


# ─── Principal ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Principal:
    """Authenticated identity plus platform roles. Never persisted."""
    user_id: UserId
    roles: frozenset[PlatformRole] = frozenset({PlatformRole.USER})

    @property
    def is_staff(self) -> bool:
        return bool(self.roles & {PlatformRole.MODERATOR, PlatformRole.ADMINISTRATOR})

    @property
    def is_admin(self) -> bool:
        return PlatformRole.ADMINISTRATOR in self.roles


# ─── Content / Voting ───────────────────────────────────────────

@dataclass
class VotableTarget:
    """A post or comment — the unit the Voting Engine serializes on."""
    KIND: ClassVar[EntityKind] = EntityKind.TARGET

    target_kind: TargetKind
    target_id: TargetId
    owner_id: UserId
    body: str
    created_at: datetime
    parent_id: TargetId | None = None
    votes: dict[str, VoteValue] = field(default_factory=dict)
    score: int = 0
    is_locked: bool = False
    is_pinned: bool = False
    is_removed: bool = False
    edited_at: datetime | None = None
    accepted_answer_id: TargetId | None = None
    version: int = 0

    @property
    def entity_id(self) -> str:
        return target_key(self.target_kind, self.target_id)


def target_key(target_kind: TargetKind, target_id: str) -> str:
    """Repository id for a target — posts and comments share one namespace."""
    return f"{target_kind.value}:{target_id}"


# ─── Groups ─────────────────────────────────────────────────────

@dataclass
class Group:
    """Group aggregate. owner_id is the single authoritative owner pointer."""
    KIND: ClassVar[EntityKind] = EntityKind.GROUP

    group_id: GroupId
    name: str
    privacy: GroupPrivacy
    owner_id: UserId
    created_at: datetime
    description: str = ""
    version: int = 0

    @property
    def entity_id(self) -> str:
        return self.group_id


@dataclass
class GroupMembership:
    """One user's relationship to one group. Absence means never joined."""
    KIND: ClassVar[EntityKind] = EntityKind.MEMBERSHIP

    group_id: GroupId
    user_id: UserId
    role: MemberRole
    status: MemberStatus
    joined_at: datetime
    updated_at: datetime
    version: int = 0

    @property
    def entity_id(self) -> str:
        return membership_key(self.group_id, self.user_id)


def membership_key(group_id: str, user_id: str) -> str:
    return f"{group_id}:{user_id}"


# ─── Moderation ─────────────────────────────────────────────────

@dataclass
class ModerationReport:
    KIND: ClassVar[EntityKind] = EntityKind.REPORT

    report_id: ReportId
    reporter_id: UserId
    content_type: ContentType
    content_id: str
    reason: ReportReason
    created_at: datetime
    reported_user_id: UserId | None = None
    additional_info: str | None = None
    status: ReportStatus = ReportStatus.PENDING
    moderator_id: UserId | None = None
    action: ModerationAction = ModerationAction.NONE
    moderator_notes: str | None = None
    resolved_at: datetime | None = None
    version: int = 0

    @property
    def entity_id(self) -> str:
        return self.report_id


@dataclass
class AccountStanding:
    """Platform-wide standing of a user, changed only by moderation sanctions."""
    KIND: ClassVar[EntityKind] = EntityKind.STANDING

    user_id: UserId
    status: StandingStatus = StandingStatus.GOOD
    suspended_until: datetime | None = None
    reason: str | None = None
    warnings: int = 0
    version: int = 0

    @property
    def entity_id(self) -> str:
        return self.user_id


# ─── Conversations ──────────────────────────────────────────────

@dataclass
class Conversation:
    """Conversation header. participants maps user_id -> last read sequence."""
    KIND: ClassVar[EntityKind] = EntityKind.CONVERSATION

    conversation_id: ConversationId
    conversation_type: ConversationType
    creator_id: UserId
    created_at: datetime
    title: str = ""
    participants: dict[str, int] = field(default_factory=dict)
    last_sequence: int = 0
    last_sent_at: datetime | None = None
    version: int = 0

    @property
    def entity_id(self) -> str:
        return self.conversation_id


@dataclass
class Message:
    """Append-only. Identity is (conversation_id, sequence)."""
    KIND: ClassVar[EntityKind] = EntityKind.MESSAGE

    conversation_id: ConversationId
    sequence: int
    sender_id: UserId
    content: str
    sent_at: datetime
    reply_to_sequence: int | None = None
    version: int = 0

    @property
    def entity_id(self) -> str:
        return message_key(self.conversation_id, self.sequence)


def message_key(conversation_id: str, sequence: int) -> str:
    return f"{conversation_id}:{sequence}"


# ─── Authentication ─────────────────────────────────────────────

@dataclass
class OtpChallenge:
    """One pending (or just-consumed) code. Only the digest is stored."""
    purpose: OtpPurpose
    code_digest: str
    issued_at: datetime
    expires_at: datetime
    attempts: int = 0
    consumed_at: datetime | None = None


@dataclass
class AuthAccountState:
    KIND: ClassVar[EntityKind] = EntityKind.AUTH_ACCOUNT

    user_id: UserId
    failed_attempts: int = 0
    lockout_until: datetime | None = None
    two_factor_enabled: bool = False
    pending_otps: dict[str, OtpChallenge] = field(default_factory=dict)
    linked_logins: dict[str, str] = field(default_factory=dict)
    last_login_at: datetime | None = None
    version: int = 0

    @property
    def entity_id(self) -> str:
        return self.user_id

    def is_locked(self, now: datetime) -> bool:
        return self.lockout_until is not None and now < self.lockout_until


# ─── Reputation ─────────────────────────────────────────────────

@dataclass
class AwardedBadge:
    badge_id: str
    awarded_by: UserId
    awarded_at: datetime
    reason: str | None = None


@dataclass
class ReputationRecord:
    """Points a user has earned. Absence means zero everywhere."""
    KIND: ClassVar[EntityKind] = EntityKind.REPUTATION

    user_id: UserId
    votes_received_score: int = 0
    answers_score: int = 0
    badges_score: int = 0
    badges: dict[str, AwardedBadge] = field(default_factory=dict)
    version: int = 0

    @property
    def entity_id(self) -> str:
        return self.user_id

    @property
    def total(self) -> int:
        return self.votes_received_score + self.answers_score + self.badges_score
