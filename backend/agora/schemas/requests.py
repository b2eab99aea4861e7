"""Request Schemas — every command and query the dispatcher routes, as pydantic models.

Invariants:
    - Each request carries a `kind` literal; AnyRequest is the discriminated union
    - Field-level validation happens here, before any handler runs; pydantic
      failures are converted to InputValidationError by parse_request()
    - Requests are frozen and reject unknown fields
    - No request carries the acting user — the Principal travels beside it

Design Decisions:
    - Literal `kind` over a str enum: pydantic resolves the union natively and the
      dispatcher keys on the class, not the tag
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from agora.core.domain_types import (
    ContentType,
    ConversationType,
    GroupPrivacy,
    MemberRole,
    ModerationAction,
    OtpPurpose,
    ReportReason,
    TargetKind,
    VoteValue,
)
from agora.core.errors import InputValidationError

Identifier = Annotated[str, Field(min_length=1, max_length=128)]


class AgoraRequest(BaseModel):
    """Base for all requests."""
    model_config = ConfigDict(frozen=True, extra="forbid")


# ─── Content ────────────────────────────────────────────────────

class PublishContent(AgoraRequest):
    kind: Literal["publish_content"] = "publish_content"
    target_kind: TargetKind
    body: str = Field(min_length=1, max_length=20_000)
    parent_id: Identifier | None = None


class EditContent(AgoraRequest):
    kind: Literal["edit_content"] = "edit_content"
    target_kind: TargetKind
    target_id: Identifier
    body: str = Field(min_length=1, max_length=20_000)


class DeleteContent(AgoraRequest):
    kind: Literal["delete_content"] = "delete_content"
    target_kind: TargetKind
    target_id: Identifier


class SetContentFlags(AgoraRequest):
    """Moderator lock / pin."""
    kind: Literal["set_content_flags"] = "set_content_flags"
    target_kind: TargetKind
    target_id: Identifier
    locked: bool | None = None
    pinned: bool | None = None


class GetTarget(AgoraRequest):
    kind: Literal["get_target"] = "get_target"
    target_kind: TargetKind
    target_id: Identifier


class AcceptAnswer(AgoraRequest):
    """Post author marks one comment as the answer."""
    kind: Literal["accept_answer"] = "accept_answer"
    post_id: Identifier
    comment_id: Identifier


# ─── Voting ─────────────────────────────────────────────────────

class CastVote(AgoraRequest):
    kind: Literal["cast_vote"] = "cast_vote"
    target_kind: TargetKind
    target_id: Identifier
    value: VoteValue


class RetractVote(AgoraRequest):
    kind: Literal["retract_vote"] = "retract_vote"
    target_kind: TargetKind
    target_id: Identifier


# ─── Groups ─────────────────────────────────────────────────────

class CreateGroup(AgoraRequest):
    kind: Literal["create_group"] = "create_group"
    name: str = Field(min_length=1, max_length=120)
    privacy: GroupPrivacy = GroupPrivacy.PUBLIC
    description: str = Field("", max_length=2000)


class JoinGroup(AgoraRequest):
    kind: Literal["join_group"] = "join_group"
    group_id: Identifier


class LeaveGroup(AgoraRequest):
    kind: Literal["leave_group"] = "leave_group"
    group_id: Identifier


class ApproveMember(AgoraRequest):
    kind: Literal["approve_member"] = "approve_member"
    group_id: Identifier
    user_id: Identifier


class RejectMember(AgoraRequest):
    kind: Literal["reject_member"] = "reject_member"
    group_id: Identifier
    user_id: Identifier


class SuspendMember(AgoraRequest):
    kind: Literal["suspend_member"] = "suspend_member"
    group_id: Identifier
    user_id: Identifier


class BanMember(AgoraRequest):
    kind: Literal["ban_member"] = "ban_member"
    group_id: Identifier
    user_id: Identifier


class ReinstateMember(AgoraRequest):
    kind: Literal["reinstate_member"] = "reinstate_member"
    group_id: Identifier
    user_id: Identifier


class ChangeMemberRole(AgoraRequest):
    kind: Literal["change_member_role"] = "change_member_role"
    group_id: Identifier
    user_id: Identifier
    role: MemberRole


class TransferOwnership(AgoraRequest):
    kind: Literal["transfer_ownership"] = "transfer_ownership"
    group_id: Identifier
    new_owner_id: Identifier


class GetMembership(AgoraRequest):
    kind: Literal["get_membership"] = "get_membership"
    group_id: Identifier
    user_id: Identifier


# ─── Moderation ─────────────────────────────────────────────────

class SubmitReport(AgoraRequest):
    kind: Literal["submit_report"] = "submit_report"
    content_type: ContentType
    content_id: Identifier
    reason: ReportReason
    reported_user_id: Identifier | None = None
    additional_info: str | None = Field(None, max_length=2000)


class ClaimReport(AgoraRequest):
    kind: Literal["claim_report"] = "claim_report"
    report_id: Identifier


class ResolveReport(AgoraRequest):
    kind: Literal["resolve_report"] = "resolve_report"
    report_id: Identifier
    action: ModerationAction
    notes: str | None = Field(None, max_length=2000)


class DismissReport(AgoraRequest):
    kind: Literal["dismiss_report"] = "dismiss_report"
    report_id: Identifier
    notes: str | None = Field(None, max_length=2000)


class GetReport(AgoraRequest):
    kind: Literal["get_report"] = "get_report"
    report_id: Identifier


class GetAccountStanding(AgoraRequest):
    kind: Literal["get_account_standing"] = "get_account_standing"
    user_id: Identifier


# ─── Reputation ─────────────────────────────────────────────────

class AwardBadge(AgoraRequest):
    kind: Literal["award_badge"] = "award_badge"
    user_id: Identifier
    badge_id: Identifier
    reason: str | None = Field(None, max_length=500)


class GetUserReputation(AgoraRequest):
    kind: Literal["get_user_reputation"] = "get_user_reputation"
    user_id: Identifier


class GetReputationLeaderboard(AgoraRequest):
    kind: Literal["get_reputation_leaderboard"] = "get_reputation_leaderboard"
    limit: int = Field(50, ge=1, le=100)


class ListBadges(AgoraRequest):
    kind: Literal["list_badges"] = "list_badges"


# ─── Conversations ──────────────────────────────────────────────

class CreateConversation(AgoraRequest):
    kind: Literal["create_conversation"] = "create_conversation"
    participant_ids: list[Identifier] = Field(min_length=1, max_length=100)
    conversation_type: ConversationType = ConversationType.DIRECT
    title: str = Field("", max_length=200)


class SendMessage(AgoraRequest):
    kind: Literal["send_message"] = "send_message"
    conversation_id: Identifier
    content: str = Field(min_length=1, max_length=4000)
    reply_to_sequence: int | None = Field(None, ge=1)


class GetMessages(AgoraRequest):
    kind: Literal["get_messages"] = "get_messages"
    conversation_id: Identifier
    before_sequence: int | None = Field(None, ge=1)
    limit: int = Field(50, ge=1, le=200)


class MarkConversationRead(AgoraRequest):
    kind: Literal["mark_conversation_read"] = "mark_conversation_read"
    conversation_id: Identifier
    up_to_sequence: int | None = Field(None, ge=0)


class GetConversation(AgoraRequest):
    kind: Literal["get_conversation"] = "get_conversation"
    conversation_id: Identifier


# ─── Authentication ─────────────────────────────────────────────

OtpCode = Annotated[str, Field(pattern=r"^\d{4,10}$")]


class RecordLoginAttempt(AgoraRequest):
    """Outcome of a credential check performed by the identity provider."""
    kind: Literal["record_login_attempt"] = "record_login_attempt"
    user_id: Identifier
    succeeded: bool


class IssueOtp(AgoraRequest):
    kind: Literal["issue_otp"] = "issue_otp"
    user_id: Identifier
    purpose: OtpPurpose


class VerifyOtp(AgoraRequest):
    kind: Literal["verify_otp"] = "verify_otp"
    user_id: Identifier
    purpose: OtpPurpose
    code: OtpCode


class EnableTwoFactor(AgoraRequest):
    kind: Literal["enable_two_factor"] = "enable_two_factor"
    code: OtpCode


class DisableTwoFactor(AgoraRequest):
    kind: Literal["disable_two_factor"] = "disable_two_factor"
    code: OtpCode


class LinkSocialLogin(AgoraRequest):
    kind: Literal["link_social_login"] = "link_social_login"
    provider: str = Field(pattern=r"^(google|facebook|twitter|github)$")
    provider_user_id: Identifier
    code: OtpCode


class UnlinkSocialLogin(AgoraRequest):
    kind: Literal["unlink_social_login"] = "unlink_social_login"
    provider: str = Field(pattern=r"^(google|facebook|twitter|github)$")


class UnlockAccount(AgoraRequest):
    kind: Literal["unlock_account"] = "unlock_account"
    user_id: Identifier


class GetAuthStatus(AgoraRequest):
    kind: Literal["get_auth_status"] = "get_auth_status"
    user_id: Identifier


AnyRequest = Annotated[
    Union[
        PublishContent, EditContent, DeleteContent, SetContentFlags, GetTarget,
        AcceptAnswer,
        CastVote, RetractVote,
        CreateGroup, JoinGroup, LeaveGroup, ApproveMember, RejectMember,
        SuspendMember, BanMember, ReinstateMember, ChangeMemberRole,
        TransferOwnership, GetMembership,
        SubmitReport, ClaimReport, ResolveReport, DismissReport, GetReport,
        GetAccountStanding,
        AwardBadge, GetUserReputation, GetReputationLeaderboard, ListBadges,
        CreateConversation, SendMessage, GetMessages, MarkConversationRead,
        GetConversation,
        RecordLoginAttempt, IssueOtp, VerifyOtp, EnableTwoFactor,
        DisableTwoFactor, LinkSocialLogin, UnlinkSocialLogin, UnlockAccount,
        GetAuthStatus,
    ],
    Field(discriminator="kind"),
]

_request_adapter: TypeAdapter = TypeAdapter(AnyRequest)


def parse_request(payload: dict) -> AgoraRequest:
    """Build the typed request for a raw payload, or raise InputValidationError."""
    try:
        return _request_adapter.validate_python(payload)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(loc) for loc in first["loc"]) or None
        raise InputValidationError(f"Invalid request: {first['msg']}", field=field)
