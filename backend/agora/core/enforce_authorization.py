"""Authorization Guard — decides whether a principal may act on a target.

Invariants:
    - authorize() is PURE: no IO, no mutation, same inputs give the same decision
    - A denial always carries a DenialReason — never a bare boolean
    - Rules are declared per GuardedAction in one table (_RULES)

Design Decisions:
    - Group-role checks receive the actor's membership already loaded, so the
      guard never needs a repository
    - require() is the single place a denial becomes an exception
"""

from dataclasses import dataclass
from typing import Callable

from agora.core.domain_types import DenialReason, GuardedAction, MemberRole, MemberStatus
from agora.core.entities import GroupMembership, Principal
from agora.core.errors import AuthorizationDeniedError


@dataclass(frozen=True)
class AuthorizationTarget:
    """What the action applies to, reduced to the facts the rules need."""
    owner_id: str | None = None
    actor_membership: GroupMembership | None = None


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: DenialReason | None = None


ALLOW = AuthorizationDecision(allowed=True)

GROUP_MANAGERS = frozenset({MemberRole.OWNER, MemberRole.ADMIN})
GROUP_MODERATORS = frozenset({MemberRole.OWNER, MemberRole.ADMIN, MemberRole.MODERATOR})


def _deny(reason: DenialReason) -> AuthorizationDecision:
    return AuthorizationDecision(allowed=False, reason=reason)


def _owner_only(principal: Principal, target: AuthorizationTarget) -> AuthorizationDecision:
    if target.owner_id is not None and principal.user_id == target.owner_id:
        return ALLOW
    return _deny(DenialReason.NOT_OWNER)


def _owner_or_staff(principal: Principal, target: AuthorizationTarget) -> AuthorizationDecision:
    if principal.is_staff:
        return ALLOW
    return _owner_only(principal, target)


def _owner_or_admin(principal: Principal, target: AuthorizationTarget) -> AuthorizationDecision:
    if principal.is_admin:
        return ALLOW
    return _owner_only(principal, target)


def _staff_only(principal: Principal, target: AuthorizationTarget) -> AuthorizationDecision:
    if principal.is_staff:
        return ALLOW
    return _deny(DenialReason.INSUFFICIENT_ROLE)


def _group_role_in(roles: frozenset[MemberRole]) -> Callable[
    [Principal, AuthorizationTarget], AuthorizationDecision,
]:
    def rule(principal: Principal, target: AuthorizationTarget) -> AuthorizationDecision:
        membership = target.actor_membership
        if (
            membership is None
            or membership.user_id != principal.user_id
            or membership.status != MemberStatus.ACTIVE
        ):
            return _deny(DenialReason.NOT_MEMBER)
        if membership.role not in roles:
            return _deny(DenialReason.INSUFFICIENT_ROLE)
        return ALLOW
    return rule


def _group_owner(principal: Principal, target: AuthorizationTarget) -> AuthorizationDecision:
    decision = _group_role_in(frozenset({MemberRole.OWNER}))(principal, target)
    if not decision.allowed and decision.reason == DenialReason.INSUFFICIENT_ROLE:
        return _deny(DenialReason.NOT_OWNER)
    return decision


# Every action kind has exactly one rule
_RULES: dict[GuardedAction, Callable[[Principal, AuthorizationTarget], AuthorizationDecision]] = {
    GuardedAction.EDIT_OWN_CONTENT: _owner_only,
    GuardedAction.DELETE_CONTENT: _owner_or_staff,
    GuardedAction.MODERATE_CONTENT: _staff_only,
    GuardedAction.REVIEW_REPORT: _staff_only,
    GuardedAction.SANCTION_USER: _staff_only,
    GuardedAction.MANAGE_OWN_ACCOUNT: _owner_or_admin,
    GuardedAction.MANAGE_GROUP_MEMBERS: _group_role_in(GROUP_MANAGERS),
    GuardedAction.MODERATE_GROUP_MEMBERS: _group_role_in(GROUP_MODERATORS),
    GuardedAction.TRANSFER_GROUP_OWNERSHIP: _group_owner,
    GuardedAction.AWARD_BADGE: _staff_only,
}


def authorize(
    principal: Principal, action: GuardedAction, target: AuthorizationTarget,
) -> AuthorizationDecision:
    """Return allow, or deny with a reason tag."""
    return _RULES[action](principal, target)


def require(decision: AuthorizationDecision) -> None:
    """Raise AuthorizationDeniedError for a denial, do nothing otherwise."""
    if not decision.allowed:
        raise AuthorizationDeniedError(decision.reason)
