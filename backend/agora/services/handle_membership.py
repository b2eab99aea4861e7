"""Membership Handlers — group creation, status transitions, roles, ownership (6 methods).

Invariants:
    - Every transition on (group_id, user_id) runs under that pair's key lock and
      an optimistic version check, so mutually exclusive moves never both commit
    - Memberships are read through reconcile_role: Group.owner_id decides who owns
    - Ownership transfer commits on the Group first; the two role mirrors follow.
      A mirror that fails to write is reported as PartialSuccess, not rolled back
    - Joining requires good account standing

Design Decisions:
    - One generic _transition() drives all seven table events; the public
      methods only name the event and the subject
"""

import logging

from agora.core.domain_types import (
    EntityKind,
    GroupId,
    GuardedAction,
    MembershipEvent,
    MemberStatus,
    NotificationEvent,
    UserId,
)
from agora.core.enforce_authorization import AuthorizationTarget, authorize, require
from agora.core.enforce_membership import (
    apply_event,
    change_role,
    founding_membership,
    new_group,
    reconcile_role,
    transfer_ownership,
)
from agora.core.entities import Group, GroupMembership, Principal, membership_key
from agora.core.errors import AgoraError
from agora.schemas.requests import (
    ApproveMember,
    BanMember,
    ChangeMemberRole,
    CreateGroup,
    GetMembership,
    JoinGroup,
    LeaveGroup,
    ReinstateMember,
    RejectMember,
    SuspendMember,
    TransferOwnership,
)
from agora.schemas.results import (
    GroupResult,
    MembershipResult,
    OwnershipResult,
    PartialSuccess,
)
from agora.services.handler_context import HandlerContext, lock_key

logger = logging.getLogger(__name__)

# Who hears about a committed transition: the subject, or the group owner
_SUBJECT_EVENTS: dict[MembershipEvent, NotificationEvent] = {
    MembershipEvent.APPROVE: NotificationEvent.MEMBERSHIP_APPROVED,
    MembershipEvent.REJECT: NotificationEvent.MEMBERSHIP_REJECTED,
    MembershipEvent.SUSPEND: NotificationEvent.MEMBERSHIP_SUSPENDED,
    MembershipEvent.BAN: NotificationEvent.MEMBERSHIP_BANNED,
}


class MembershipHandlers:
    """Membership State Machine shell."""

    def __init__(self, ctx: HandlerContext):
        self.ctx = ctx

    async def create_group(self, request: CreateGroup, principal: Principal) -> GroupResult:
        await self.ctx.require_good_standing(principal.user_id)
        now = self.ctx.clock()
        group = new_group(
            GroupId(self.ctx.id_factory()), request.name, request.privacy,
            principal.user_id, now, description=request.description,
        )
        # Owner record before the group: a saved group always has its Owner
        await self.ctx.repository.save(founding_membership(group, now))
        group = await self.ctx.repository.save(group)
        logger.info(
            f"Group {group.group_id} created ({group.privacy.value})",
            extra={"user_id": principal.user_id, "entity_id": group.group_id},
        )
        return GroupResult(
            group_id=group.group_id, name=group.name,
            privacy=group.privacy, owner_id=group.owner_id,
        )

    # ─── Status transitions ─────────────────────────────────────

    async def join_group(self, request: JoinGroup, principal: Principal) -> MembershipResult:
        await self.ctx.require_good_standing(principal.user_id)
        return await self._transition(
            request.group_id, principal.user_id, MembershipEvent.JOIN, principal,
        )

    async def leave_group(self, request: LeaveGroup, principal: Principal) -> MembershipResult:
        return await self._transition(
            request.group_id, principal.user_id, MembershipEvent.LEAVE, principal,
        )

    async def approve_member(self, request: ApproveMember, principal: Principal) -> MembershipResult:
        return await self._transition(
            request.group_id, request.user_id, MembershipEvent.APPROVE, principal,
        )

    async def reject_member(self, request: RejectMember, principal: Principal) -> MembershipResult:
        return await self._transition(
            request.group_id, request.user_id, MembershipEvent.REJECT, principal,
        )

    async def suspend_member(self, request: SuspendMember, principal: Principal) -> MembershipResult:
        return await self._transition(
            request.group_id, request.user_id, MembershipEvent.SUSPEND, principal,
        )

    async def ban_member(self, request: BanMember, principal: Principal) -> MembershipResult:
        return await self._transition(
            request.group_id, request.user_id, MembershipEvent.BAN, principal,
        )

    async def reinstate_member(self, request: ReinstateMember, principal: Principal) -> MembershipResult:
        return await self._transition(
            request.group_id, request.user_id, MembershipEvent.REINSTATE, principal,
        )

    # ─── Roles and ownership ────────────────────────────────────

    async def change_member_role(
        self, request: ChangeMemberRole, principal: Principal,
    ) -> MembershipResult:
        key = membership_key(request.group_id, request.user_id)

        async def attempt() -> GroupMembership:
            group = await self._group(request.group_id)
            actor = await self._membership(group, principal.user_id)
            require(authorize(
                principal, GuardedAction.MANAGE_GROUP_MEMBERS,
                AuthorizationTarget(actor_membership=actor),
            ))
            membership = reconcile_role(
                group, await self.ctx.repository.get(EntityKind.MEMBERSHIP, key),
            )
            return await self.ctx.repository.save(
                change_role(group, membership, request.role, self.ctx.clock()),
            )

        async with self.ctx.locks.hold(lock_key(EntityKind.MEMBERSHIP, key)):
            saved = await self.ctx.retry_on_conflict(attempt, "change_member_role")
        logger.info(
            f"Role of {request.user_id} in {request.group_id} set to {saved.role.value}",
            extra={"user_id": principal.user_id, "entity_id": key},
        )
        return MembershipResult.from_entity(saved)

    async def transfer_ownership(
        self, request: TransferOwnership, principal: Principal,
    ) -> OwnershipResult | PartialSuccess:
        group_lock = lock_key(EntityKind.GROUP, request.group_id)
        old_key = membership_key(request.group_id, principal.user_id)
        new_key = membership_key(request.group_id, request.new_owner_id)

        async def attempt() -> tuple[GroupMembership, GroupMembership]:
            group = await self._group(request.group_id)
            current = await self._membership(group, principal.user_id)
            require(authorize(
                principal, GuardedAction.TRANSFER_GROUP_OWNERSHIP,
                AuthorizationTarget(actor_membership=current),
            ))
            successor = reconcile_role(
                group, await self.ctx.repository.get(EntityKind.MEMBERSHIP, new_key),
            )
            next_group, demoted, promoted = transfer_ownership(
                group, current, successor, self.ctx.clock(),
            )
            await self.ctx.repository.save(next_group)
            return demoted, promoted

        async with self.ctx.locks.hold(
            group_lock,
            lock_key(EntityKind.MEMBERSHIP, old_key),
            lock_key(EntityKind.MEMBERSHIP, new_key),
        ):
            demoted, promoted = await self.ctx.retry_on_conflict(attempt, "transfer_ownership")
            logger.info(
                f"Ownership of {request.group_id} moved to {request.new_owner_id}",
                extra={"user_id": principal.user_id, "entity_id": request.group_id},
            )
            result = OwnershipResult(
                group_id=request.group_id,
                owner_id=request.new_owner_id,
                previous_owner_id=principal.user_id,
            )
            failure = await self._mirror_roles(demoted, promoted)

        await self.ctx.notify(request.new_owner_id, NotificationEvent.OWNERSHIP_TRANSFERRED, {
            "group_id": request.group_id, "previous_owner_id": principal.user_id,
        })
        if failure is not None:
            return PartialSuccess(
                result=result,
                failed_effect="membership_role_mirror",
                error_code=failure.code,
                message=failure.message,
            )
        return result

    async def get_membership(
        self, request: GetMembership, principal: Principal,
    ) -> MembershipResult:
        group = await self._group(request.group_id)
        membership = reconcile_role(
            group,
            await self.ctx.repository.get(
                EntityKind.MEMBERSHIP, membership_key(request.group_id, request.user_id),
            ),
        )
        return MembershipResult.from_entity(membership)

    # ─── Internals ──────────────────────────────────────────────

    async def _transition(
        self, group_id: str, subject_id: str, event: MembershipEvent, principal: Principal,
    ) -> MembershipResult:
        key = membership_key(group_id, subject_id)

        async def attempt() -> tuple[Group, GroupMembership]:
            group = await self._group(group_id)
            membership = await self._membership(group, subject_id)
            actor = (
                membership if principal.user_id == subject_id
                else await self._membership(group, principal.user_id)
            )
            updated = apply_event(
                group, membership, UserId(subject_id), event, principal, actor,
                self.ctx.clock(),
            )
            return group, await self.ctx.repository.save(updated)

        async with self.ctx.locks.hold(lock_key(EntityKind.MEMBERSHIP, key)):
            group, saved = await self.ctx.retry_on_conflict(attempt, f"membership_{event.value}")

        logger.info(
            f"Membership {key}: {event.value} -> {saved.status.value}",
            extra={"user_id": principal.user_id, "entity_id": key},
        )
        await self._announce(group, saved, event)
        return MembershipResult.from_entity(saved)

    async def _announce(
        self, group: Group, membership: GroupMembership, event: MembershipEvent,
    ) -> None:
        payload = {"group_id": group.group_id, "user_id": membership.user_id}
        if event == MembershipEvent.JOIN and membership.status == MemberStatus.PENDING:
            await self.ctx.notify(group.owner_id, NotificationEvent.JOIN_REQUESTED, payload)
        elif event in _SUBJECT_EVENTS:
            await self.ctx.notify(membership.user_id, _SUBJECT_EVENTS[event], payload)

    async def _group(self, group_id: str) -> Group:
        return await self.ctx.repository.get(EntityKind.GROUP, group_id)

    async def _membership(self, group: Group, user_id: str) -> GroupMembership | None:
        return reconcile_role(
            group,
            await self.ctx.find(EntityKind.MEMBERSHIP, membership_key(group.group_id, user_id)),
        )

    async def _mirror_roles(
        self, *memberships: GroupMembership,
    ) -> AgoraError | None:
        """Write the role mirrors after a committed transfer. First failure wins."""
        failure = None
        for membership in memberships:
            async def attempt(m: GroupMembership = membership) -> GroupMembership:
                stored = await self.ctx.repository.get(EntityKind.MEMBERSHIP, m.entity_id)
                if stored.role == m.role:
                    return stored
                stored.role = m.role
                stored.updated_at = m.updated_at
                return await self.ctx.repository.save(stored)

            try:
                await self.ctx.retry_on_conflict(attempt, "ownership_role_mirror")
            except AgoraError as e:
                logger.error(
                    f"Ownership role mirror failed for {membership.entity_id}: {e.message}",
                    extra={"error_code": e.code, "entity_id": membership.entity_id},
                )
                failure = failure or e
        return failure
