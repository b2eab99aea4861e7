"""Membership State Machine — a user's role and status inside one group.

Invariants:
    - TRANSITIONS is the single source of truth for (status, event) -> status;
      a pair missing from it raises InvalidTransitionError before any role check
    - JOIN resolves through the group's privacy: Public -> Active, Private -> Pending
    - Exactly one Owner per group: Group.owner_id is authoritative and the owner's
      membership mirrors it. The owner cannot leave, be suspended or be banned;
      ownership moves only through transfer_ownership
    - Role changes are only permitted while the member is Active and never
      assign or remove OWNER

Design Decisions:
    - Guards reference GuardedAction so the Authorization Guard evaluates them;
      SELF marks events only the member themself may trigger
    - Functions return new dataclasses; the loaded membership is never mutated
"""

from dataclasses import replace
from datetime import datetime

from agora.core.domain_types import (
    DenialReason,
    GroupId,
    GroupPrivacy,
    GuardedAction,
    MemberRole,
    MemberStatus,
    MembershipEvent,
    UserId,
)
from agora.core.enforce_authorization import AuthorizationTarget, authorize, require
from agora.core.entities import Group, GroupMembership, Principal
from agora.core.errors import (
    AuthorizationDeniedError,
    InputValidationError,
    InvalidTransitionError,
)

SELF = "self"

# Sentinel target: "Active or Pending depending on group privacy"
BY_PRIVACY = "by_privacy"

TRANSITIONS: dict[tuple[MemberStatus | None, MembershipEvent], MemberStatus | str] = {
    (None, MembershipEvent.JOIN): BY_PRIVACY,
    (MemberStatus.LEFT, MembershipEvent.JOIN): BY_PRIVACY,
    (MemberStatus.BANNED, MembershipEvent.JOIN): BY_PRIVACY,
    (MemberStatus.PENDING, MembershipEvent.APPROVE): MemberStatus.ACTIVE,
    (MemberStatus.PENDING, MembershipEvent.REJECT): MemberStatus.LEFT,
    (MemberStatus.ACTIVE, MembershipEvent.LEAVE): MemberStatus.LEFT,
    (MemberStatus.ACTIVE, MembershipEvent.SUSPEND): MemberStatus.SUSPENDED,
    (MemberStatus.ACTIVE, MembershipEvent.BAN): MemberStatus.BANNED,
    (MemberStatus.SUSPENDED, MembershipEvent.BAN): MemberStatus.BANNED,
    (MemberStatus.SUSPENDED, MembershipEvent.REINSTATE): MemberStatus.ACTIVE,
}

EVENT_GUARDS: dict[MembershipEvent, GuardedAction | str] = {
    MembershipEvent.JOIN: SELF,
    MembershipEvent.LEAVE: SELF,
    MembershipEvent.APPROVE: GuardedAction.MANAGE_GROUP_MEMBERS,
    MembershipEvent.REJECT: GuardedAction.MANAGE_GROUP_MEMBERS,
    MembershipEvent.BAN: GuardedAction.MANAGE_GROUP_MEMBERS,
    MembershipEvent.REINSTATE: GuardedAction.MANAGE_GROUP_MEMBERS,
    MembershipEvent.SUSPEND: GuardedAction.MODERATE_GROUP_MEMBERS,
}

# Events the owner can never be the subject of
_OWNER_PROTECTED = frozenset({
    MembershipEvent.LEAVE, MembershipEvent.SUSPEND, MembershipEvent.BAN,
})

ASSIGNABLE_ROLES = frozenset({MemberRole.ADMIN, MemberRole.MODERATOR, MemberRole.MEMBER})


class OwnershipTransferRequiredError(InvalidTransitionError):
    """The owner tried to leave (or was targeted) without transferring ownership."""
    def __init__(self, event: str):
        super().__init__("membership", "owner", event)
        self.code = "OWNERSHIP_TRANSFER_REQUIRED"
        self.message = (
            f"The group owner cannot '{event}'. Transfer ownership first."
        )


def next_status(
    current: MemberStatus | None, event: MembershipEvent, privacy: GroupPrivacy,
) -> MemberStatus:
    """Look up the transition table. Raises InvalidTransitionError if absent."""
    target = TRANSITIONS.get((current, event))
    if target is None:
        raise InvalidTransitionError(
            "membership", current.value if current else None, event.value,
        )
    if target == BY_PRIVACY:
        return MemberStatus.ACTIVE if privacy == GroupPrivacy.PUBLIC else MemberStatus.PENDING
    return target


def _check_guard(
    event: MembershipEvent, principal: Principal, subject_id: str,
    actor_membership: GroupMembership | None,
) -> None:
    guard = EVENT_GUARDS[event]
    if guard == SELF:
        if principal.user_id != subject_id:
            raise AuthorizationDeniedError(DenialReason.NOT_OWNER)
        return
    require(authorize(
        principal, guard, AuthorizationTarget(actor_membership=actor_membership),
    ))


def apply_event(
    group: Group,
    membership: GroupMembership | None,
    subject_id: UserId,
    event: MembershipEvent,
    principal: Principal,
    actor_membership: GroupMembership | None,
    now: datetime,
) -> GroupMembership:
    """Advance subject_id's membership in group by event. Pure.

    Order: table lookup, then actor guard, then owner protection.
    """
    current = membership.status if membership else None
    status = next_status(current, event, group.privacy)
    _check_guard(event, principal, subject_id, actor_membership)

    if event in _OWNER_PROTECTED and group.owner_id == subject_id:
        raise OwnershipTransferRequiredError(event.value)

    if membership is None or event == MembershipEvent.JOIN:
        return GroupMembership(
            group_id=group.group_id,
            user_id=subject_id,
            role=MemberRole.MEMBER,
            status=status,
            joined_at=now,
            updated_at=now,
            version=membership.version if membership else 0,
        )
    return replace(membership, status=status, updated_at=now)


def founding_membership(group: Group, now: datetime) -> GroupMembership:
    """The creator's Active Owner record, saved before the group itself."""
    return GroupMembership(
        group_id=group.group_id,
        user_id=group.owner_id,
        role=MemberRole.OWNER,
        status=MemberStatus.ACTIVE,
        joined_at=now,
        updated_at=now,
    )


def change_role(
    group: Group, membership: GroupMembership, new_role: MemberRole, now: datetime,
) -> GroupMembership:
    """Promote or demote an Active member. OWNER moves only via transfer."""
    if new_role not in ASSIGNABLE_ROLES:
        raise InputValidationError(
            "Ownership can only change through an ownership transfer", field="role",
        )
    if group.owner_id == membership.user_id:
        raise OwnershipTransferRequiredError("change_role")
    if membership.status != MemberStatus.ACTIVE:
        raise InvalidTransitionError("membership", membership.status.value, "change_role")
    return replace(membership, role=new_role, updated_at=now)


def transfer_ownership(
    group: Group,
    current_owner: GroupMembership,
    new_owner: GroupMembership,
    now: datetime,
) -> tuple[Group, GroupMembership, GroupMembership]:
    """Move ownership to an Active member. The previous owner becomes ADMIN."""
    if current_owner.user_id != group.owner_id:
        raise AuthorizationDeniedError(DenialReason.NOT_OWNER)
    if new_owner.user_id == current_owner.user_id:
        raise InvalidTransitionError("membership", "owner", "transfer_ownership")
    if new_owner.status != MemberStatus.ACTIVE:
        raise InvalidTransitionError(
            "membership", new_owner.status.value, "transfer_ownership",
        )
    return (
        replace(group, owner_id=new_owner.user_id),
        replace(current_owner, role=MemberRole.ADMIN, updated_at=now),
        replace(new_owner, role=MemberRole.OWNER, updated_at=now),
    )


def new_group(
    group_id: GroupId, name: str, privacy: GroupPrivacy, owner_id: UserId,
    now: datetime, description: str = "",
) -> Group:
    name = name.strip()
    if not name:
        raise InputValidationError("Group name cannot be empty", field="name")
    return Group(
        group_id=group_id, name=name, privacy=privacy, owner_id=owner_id,
        created_at=now, description=description.strip(),
    )


def reconcile_role(group: Group, membership: GroupMembership | None) -> GroupMembership | None:
    """Read a membership through Group.owner_id, the authoritative owner pointer.

    Covers the window where a transfer committed on the group but the role
    mirror on one of the two memberships has not been written yet.
    """
    if membership is None:
        return None
    is_owner = group.owner_id == membership.user_id
    if is_owner and membership.role != MemberRole.OWNER:
        return replace(membership, role=MemberRole.OWNER)
    if not is_owner and membership.role == MemberRole.OWNER:
        return replace(membership, role=MemberRole.ADMIN)
    return membership
