"""Request Dispatch — explicit routing from request type to handler method.

Invariants:
    - Every request->handler mapping is visible in build_dispatch(); no getattr
      magic, no auto-discovery
    - Registering a second handler for one request type is a startup error
      (DispatchConfigurationError), as is an AnyRequest member with no handler
    - Unknown request types raise UnknownRequestError
    - Handler results and AgoraErrors pass through unchanged; the dispatcher
      only fills in context.request_kind and context.user_id
    - Cancellation is never caught: CancelledError is a BaseException and
      propagates straight through dispatch()

Design Decisions:
    - Keyed by request class, not by the "kind" string: parse_request has
      already resolved the tag to a class
    - Handlers split by state machine: one handler class per concern
"""

import logging
import time
from typing import Any, Awaitable, Callable, get_args

from agora.core.entities import Principal
from agora.core.errors import AgoraError, DispatchConfigurationError, UnknownRequestError
from agora.schemas import requests as rq
from agora.services.handle_auth import AuthHandlers
from agora.services.handle_content import ContentHandlers
from agora.services.handle_conversations import ConversationHandlers
from agora.services.handle_membership import MembershipHandlers
from agora.services.handle_moderation import ModerationHandlers
from agora.services.handle_reputation import ReputationHandlers
from agora.services.handle_voting import VotingHandlers
from agora.services.handler_context import HandlerContext

logger = logging.getLogger(__name__)

Handler = Callable[[Any, Principal], Awaitable[Any]]


def _request_kind(request_type: type) -> str:
    return request_type.model_fields["kind"].default


class RequestDispatch:
    """Routes request type -> handler. Owns no domain state."""

    def __init__(self):
        self._handlers: dict[type, Handler] = {}

    def register(self, request_type: type, handler: Handler) -> None:
        if request_type in self._handlers:
            raise DispatchConfigurationError(
                f"Request '{_request_kind(request_type)}' already has a handler",
            )
        self._handlers[request_type] = handler

    def verify_complete(self) -> None:
        """Every AnyRequest member must be routable. Called once at startup."""
        union = get_args(rq.AnyRequest)[0]
        missing = [
            _request_kind(t) for t in get_args(union) if t not in self._handlers
        ]
        if missing:
            raise DispatchConfigurationError(
                f"No handler registered for: {', '.join(sorted(missing))}",
            )

    @property
    def request_kinds(self) -> list[str]:
        return sorted(_request_kind(t) for t in self._handlers)

    async def dispatch(self, request: rq.AgoraRequest, principal: Principal) -> Any:
        """Route request to its handler. Returns its result or raises its error."""
        handler = self._handlers.get(type(request))
        kind = getattr(request, "kind", type(request).__name__)
        if handler is None:
            raise UnknownRequestError(kind)

        started = time.monotonic()
        try:
            result = await handler(request, principal)
        except AgoraError as e:
            e.context.request_kind = e.context.request_kind or kind
            e.context.user_id = e.context.user_id or principal.user_id
            logger.info(
                f"Request '{kind}' failed: {e.code}",
                extra={
                    "request_kind": kind,
                    "user_id": principal.user_id,
                    "error_code": e.code,
                    "elapsed_ms": round((time.monotonic() - started) * 1000, 2),
                },
            )
            raise
        logger.info(
            f"Request '{kind}' handled",
            extra={
                "request_kind": kind,
                "user_id": principal.user_id,
                "elapsed_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )
        return result


def build_dispatch(ctx: HandlerContext) -> RequestDispatch:
    """Wire every request type to its handler. Adding a request means editing this."""
    content = ContentHandlers(ctx)
    voting = VotingHandlers(ctx)
    membership = MembershipHandlers(ctx)
    moderation = ModerationHandlers(ctx)
    conversations = ConversationHandlers(ctx)
    auth = AuthHandlers(ctx)
    reputation = ReputationHandlers(ctx)

    dispatch = RequestDispatch()
    registrations: list[tuple[type, Handler]] = [
        # Content (6)
        (rq.PublishContent, content.publish_content),
        (rq.EditContent, content.edit_content),
        (rq.DeleteContent, content.delete_content),
        (rq.SetContentFlags, content.set_content_flags),
        (rq.GetTarget, content.get_target),
        (rq.AcceptAnswer, content.accept_answer),

        # Voting (2)
        (rq.CastVote, voting.cast_vote),
        (rq.RetractVote, voting.retract_vote),

        # Groups (11)
        (rq.CreateGroup, membership.create_group),
        (rq.JoinGroup, membership.join_group),
        (rq.LeaveGroup, membership.leave_group),
        (rq.ApproveMember, membership.approve_member),
        (rq.RejectMember, membership.reject_member),
        (rq.SuspendMember, membership.suspend_member),
        (rq.BanMember, membership.ban_member),
        (rq.ReinstateMember, membership.reinstate_member),
        (rq.ChangeMemberRole, membership.change_member_role),
        (rq.TransferOwnership, membership.transfer_ownership),
        (rq.GetMembership, membership.get_membership),

        # Moderation (6)
        (rq.SubmitReport, moderation.submit_report),
        (rq.ClaimReport, moderation.claim_report),
        (rq.ResolveReport, moderation.resolve_report),
        (rq.DismissReport, moderation.dismiss_report),
        (rq.GetReport, moderation.get_report),
        (rq.GetAccountStanding, moderation.get_account_standing),

        # Reputation (4)
        (rq.AwardBadge, reputation.award_badge),
        (rq.GetUserReputation, reputation.get_user_reputation),
        (rq.GetReputationLeaderboard, reputation.get_reputation_leaderboard),
        (rq.ListBadges, reputation.list_badges),

        # Conversations (5)
        (rq.CreateConversation, conversations.create_conversation),
        (rq.SendMessage, conversations.send_message),
        (rq.GetMessages, conversations.get_messages),
        (rq.MarkConversationRead, conversations.mark_conversation_read),
        (rq.GetConversation, conversations.get_conversation),

        # Authentication (9)
        (rq.RecordLoginAttempt, auth.record_login_attempt),
        (rq.IssueOtp, auth.issue_otp),
        (rq.VerifyOtp, auth.verify_otp),
        (rq.EnableTwoFactor, auth.enable_two_factor),
        (rq.DisableTwoFactor, auth.disable_two_factor),
        (rq.LinkSocialLogin, auth.link_social_login),
        (rq.UnlinkSocialLogin, auth.unlink_social_login),
        (rq.UnlockAccount, auth.unlock_account),
        (rq.GetAuthStatus, auth.get_auth_status),
    ]
    for request_type, handler in registrations:
        dispatch.register(request_type, handler)
    dispatch.verify_complete()
    logger.info(f"Dispatch ready with {len(registrations)} request types")
    return dispatch
