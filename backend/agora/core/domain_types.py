"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - UserId, GroupId, TargetId, ReportId, ConversationId wrap str — never use
      bare strings for identifiers in domain logic
    - All valid states encoded as closed Enums — no raw string matching
    - VoteValue carries its numeric weight (+1 / -1) so scores are summed, not mapped

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (entity payloads are JSON)
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", str)
GroupId = NewType("GroupId", str)
TargetId = NewType("TargetId", str)
ReportId = NewType("ReportId", str)
ConversationId = NewType("ConversationId", str)
MessageId = NewType("MessageId", str)


# ─── Entity kinds (repository namespaces) ───────────────────────

class EntityKind(str, Enum):
    """Namespaces understood by the Repository — one per aggregate type."""
    TARGET = "target"
    GROUP = "group"
    MEMBERSHIP = "membership"
    REPORT = "report"
    STANDING = "standing"
    CONVERSATION = "conversation"
    MESSAGE = "message"
    AUTH_ACCOUNT = "auth_account"
    REPUTATION = "reputation"


# ─── Principal ──────────────────────────────────────────────────

class PlatformRole(str, Enum):
    """Site-wide roles carried by the Principal."""
    USER = "user"
    MODERATOR = "moderator"
    ADMINISTRATOR = "administrator"


# ─── Voting ─────────────────────────────────────────────────────

class TargetKind(str, Enum):
    """Content that can be voted on."""
    POST = "post"
    COMMENT = "comment"


class VoteValue(str, Enum):
    """A single vote. `weight` is what the score sums."""
    UP = "up"
    DOWN = "down"

    @property
    def weight(self) -> int:
        return 1 if self is VoteValue.UP else -1


# ─── Groups ─────────────────────────────────────────────────────

class GroupPrivacy(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class MemberRole(str, Enum):
    """Role inside one group. Exactly one OWNER per group."""
    OWNER = "owner"
    ADMIN = "admin"
    MODERATOR = "moderator"
    MEMBER = "member"


class MemberStatus(str, Enum):
    """Membership lifecycle states — see TRANSITIONS in enforce_membership."""
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"
    LEFT = "left"


class MembershipEvent(str, Enum):
    JOIN = "join"
    APPROVE = "approve"
    REJECT = "reject"
    LEAVE = "leave"
    SUSPEND = "suspend"
    BAN = "ban"
    REINSTATE = "reinstate"


# ─── Moderation ─────────────────────────────────────────────────

class ContentType(str, Enum):
    """What a moderation report points at."""
    POST = "post"
    COMMENT = "comment"
    MESSAGE = "message"
    USER = "user"
    GROUP = "group"


class ReportReason(str, Enum):
    SPAM = "spam"
    HARASSMENT = "harassment"
    INAPPROPRIATE = "inappropriate"
    COPYRIGHT = "copyright"
    OTHER = "other"


class ReportStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ModerationAction(str, Enum):
    NONE = "none"
    WARNING = "warning"
    CONTENT_REMOVED = "content_removed"
    USER_SUSPENDED = "user_suspended"
    USER_BANNED = "user_banned"


class StandingStatus(str, Enum):
    """Account-level standing — the target of moderation sanctions."""
    GOOD = "good"
    SUSPENDED = "suspended"
    BANNED = "banned"


# ─── Conversations ──────────────────────────────────────────────

class ConversationType(str, Enum):
    DIRECT = "direct"
    GROUP = "group"


# ─── Reputation ─────────────────────────────────────────────────

class ReputationLevel(str, Enum):
    """Derived from total reputation; see LEVEL_THRESHOLDS in enforce_reputation."""
    NEWCOMER = "newcomer"
    CONTRIBUTOR = "contributor"
    TRUSTED = "trusted"
    EXPERT = "expert"
    LEGEND = "legend"


class BadgeRarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


# ─── Authentication ─────────────────────────────────────────────

class OtpPurpose(str, Enum):
    LOGIN = "login"
    PASSWORD_RESET = "password_reset"
    DEVICE_VERIFICATION = "device_verification"
    TWO_FACTOR_SETUP = "two_factor_setup"


# ─── Authorization ──────────────────────────────────────────────

class GuardedAction(str, Enum):
    """Action kinds the Authorization Guard has a rule for."""
    EDIT_OWN_CONTENT = "edit_own_content"
    DELETE_CONTENT = "delete_content"
    MODERATE_CONTENT = "moderate_content"
    REVIEW_REPORT = "review_report"
    SANCTION_USER = "sanction_user"
    MANAGE_OWN_ACCOUNT = "manage_own_account"
    MANAGE_GROUP_MEMBERS = "manage_group_members"
    MODERATE_GROUP_MEMBERS = "moderate_group_members"
    TRANSFER_GROUP_OWNERSHIP = "transfer_group_ownership"
    AWARD_BADGE = "award_badge"


class DenialReason(str, Enum):
    """Why the guard (or the auth state machine) refused. Never a bare bool."""
    NOT_OWNER = "not_owner"
    INSUFFICIENT_ROLE = "insufficient_role"
    NOT_MEMBER = "not_member"
    NOT_PARTICIPANT = "not_participant"
    LOCKED = "locked"
    BANNED = "banned"
    SUSPENDED = "suspended"


# ─── Notification events ────────────────────────────────────────

class NotificationEvent(str, Enum):
    VOTE_CAST = "vote_cast"
    COMMENT_ADDED = "comment_added"
    JOIN_REQUESTED = "join_requested"
    MEMBERSHIP_APPROVED = "membership_approved"
    MEMBERSHIP_REJECTED = "membership_rejected"
    MEMBERSHIP_SUSPENDED = "membership_suspended"
    MEMBERSHIP_BANNED = "membership_banned"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"
    REPORT_RESOLVED = "report_resolved"
    ACCOUNT_SANCTIONED = "account_sanctioned"
    MESSAGE_RECEIVED = "message_received"
    OTP_ISSUED = "otp_issued"
    ANSWER_ACCEPTED = "answer_accepted"
    BADGE_AWARDED = "badge_awarded"
    ACCOUNT_LOCKED = "account_locked"
