"""
Membership management service.

Join requests, approvals, leaving and member removal. Every mutation locks
the group row so concurrent operations on one group are serialized.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from django.db import IntegrityError, transaction

from apps.accounts.services import get_user_profile, get_user_profiles
from apps.groups import roles
from apps.groups.models import (
    Group,
    GroupJoinRequest,
    GroupMembership,
    GroupRole,
)
from apps.notifications.models import NotificationType

from .exceptions import (
    AlreadyMemberError,
    CannotRemoveOwnerError,
    CannotRemoveSelfError,
    DuplicateJoinRequestError,
    InsufficientPermissionsError,
    InvalidGroupDataError,
    JoinRequestNotFoundError,
    NoPendingRequestError,
    NotMemberError,
    OwnerCannotLeaveError,
)
from .lookups import load_group, require_user_id
from .side_channel import SideChannel, get_side_channel, run_best_effort

logger = logging.getLogger(__name__)


class JoinStatus:
    PENDING = 'pending'
    APPROVED = 'approved'


class JoinAction:
    APPROVE = 'approve'
    REJECT = 'reject'

    ALL = (APPROVE, REJECT)


@dataclass(frozen=True)
class JoinResult:
    status: str
    group: Group

    @property
    def message(self) -> str:
        if self.status == JoinStatus.PENDING:
            return "Join request sent"
        return "Joined group successfully"


ROLE_ORDER = {GroupRole.OWNER: 0, GroupRole.ADMIN: 1, GroupRole.MEMBER: 2}


def request_to_join(
    *,
    group_id,
    user_id,
    side_channel: Optional[SideChannel] = None,
) -> JoinResult:
    """
    Ask to join a group.

    Private groups and groups requiring approval record a pending request
    and notify the creator. Anyone else becomes a member straight away.

    Args:
        group_id: Group to join
        user_id: User asking to join

    Returns:
        JoinResult with status 'pending' or 'approved'

    Raises:
        GroupNotFoundError: If group doesn't exist
        AlreadyMemberError: If user is already a member
        DuplicateJoinRequestError: If a request is already pending
    """
    user_id = require_user_id(user_id)
    side_channel = side_channel or get_side_channel()

    with transaction.atomic():
        group = load_group(group_id, for_update=True)

        if roles.is_member(group, user_id):
            raise AlreadyMemberError("Already a member of this group")
        if roles.has_pending_request(group, user_id):
            raise DuplicateJoinRequestError("Join request already pending")

        needs_approval = group.is_private or group.effective_settings.require_approval

        try:
            if needs_approval:
                GroupJoinRequest.objects.create(group=group, user_id=user_id)
                status = JoinStatus.PENDING
            else:
                GroupMembership.objects.create(
                    group=group,
                    user_id=user_id,
                    role=GroupRole.MEMBER,
                )
                status = JoinStatus.APPROVED
        except IntegrityError:
            raise DuplicateJoinRequestError("Join request already pending")

        group.bump_version()

    logger.info("User %s join request for group %s: %s", user_id, group.id, status)

    if status == JoinStatus.PENDING:
        requester = get_user_profile(user_id)
        run_best_effort(
            "join request notification",
            side_channel.notify,
            notification_type=NotificationType.GROUP_JOIN_REQUEST,
            from_user_id=user_id,
            to_user_id=group.creator_id,
            message=f"{requester.name} wants to join {group.name}",
            group=group,
            from_user_name=requester.name,
            from_user_avatar=requester.avatar,
        )

    return JoinResult(status=status, group=load_group(group.id))


@transaction.atomic
def cancel_join_request(*, group_id, user_id) -> None:
    """
    Withdraw a pending join request.

    Raises:
        GroupNotFoundError: If group doesn't exist
        AlreadyMemberError: If user is already a member
        NoPendingRequestError: If there is nothing to cancel
    """
    user_id = require_user_id(user_id)
    group = load_group(group_id, for_update=True)

    if roles.is_member(group, user_id):
        raise AlreadyMemberError("Already a member of this group")

    join_request = roles.get_join_request(group, user_id)
    if join_request is None:
        raise NoPendingRequestError("No pending request found")

    join_request.delete()
    group.bump_version()

    logger.info("User %s cancelled join request for group %s", user_id, group.id)


def handle_join_request(
    *,
    group_id,
    user_id,
    admin_id,
    action: str,
    side_channel: Optional[SideChannel] = None,
) -> Group:
    """
    Approve or reject a pending join request (creator or admin only).

    Both actions remove the pending request; approval also adds the user as
    a plain member and notifies them.

    Args:
        group_id: Group the request belongs to
        user_id: User who asked to join
        admin_id: User handling the request
        action: 'approve' or 'reject'

    Returns:
        Updated Group

    Raises:
        InvalidGroupDataError: If action is not approve/reject
        GroupNotFoundError: If group doesn't exist
        InsufficientPermissionsError: If admin_id lacks authority
        JoinRequestNotFoundError: If user_id has no pending request
    """
    user_id = require_user_id(user_id)
    admin_id = require_user_id(admin_id, 'Admin ID')
    if action not in JoinAction.ALL:
        raise InvalidGroupDataError("Action must be 'approve' or 'reject'")
    side_channel = side_channel or get_side_channel()

    with transaction.atomic():
        group = load_group(group_id, for_update=True)

        if not roles.has_moderation_authority(group, admin_id):
            raise InsufficientPermissionsError("Only group admins can handle requests")

        join_request = roles.get_join_request(group, user_id)
        if join_request is None:
            raise JoinRequestNotFoundError("Request not found")

        join_request.delete()

        if action == JoinAction.APPROVE and not roles.is_member(group, user_id):
            GroupMembership.objects.create(
                group=group,
                user_id=user_id,
                role=GroupRole.MEMBER,
            )

        group.bump_version()

    logger.info("Join request of %s for group %s %sd by %s", user_id, group.id, action, admin_id)

    if action == JoinAction.APPROVE:
        admin = get_user_profile(admin_id)
        run_best_effort(
            "join approval notification",
            side_channel.notify,
            notification_type=NotificationType.GROUP_REQUEST_APPROVED,
            from_user_id=admin_id,
            to_user_id=user_id,
            message=f"Your request to join {group.name} was approved",
            group=group,
            from_user_name=admin.name,
            from_user_avatar=admin.avatar,
        )

    return load_group(group.id)


@transaction.atomic
def leave_group(*, group_id, user_id) -> None:
    """
    Leave a group.

    The creator cannot leave: there is no ownership transfer for groups.

    Raises:
        GroupNotFoundError: If group doesn't exist
        OwnerCannotLeaveError: If user is the creator
        NotMemberError: If user is not a member
    """
    user_id = require_user_id(user_id)
    group = load_group(group_id, for_update=True)

    if roles.is_creator(group, user_id):
        raise OwnerCannotLeaveError("Group creator cannot leave the group")

    membership = roles.get_membership(group, user_id)
    if membership is None:
        raise NotMemberError("Not a member of this group")

    membership.delete()
    group.bump_version()

    logger.info("User %s left group %s", user_id, group.id)


@transaction.atomic
def remove_member(*, group_id, member_user_id, admin_id) -> None:
    """
    Remove a member from a group (creator or admin only).

    The creator can never be removed, and admins leave instead of removing
    themselves.

    Raises:
        GroupNotFoundError: If group doesn't exist
        InsufficientPermissionsError: If admin_id lacks authority
        CannotRemoveOwnerError: If target is the creator
        CannotRemoveSelfError: If target is admin_id
        NotMemberError: If target is not a member
    """
    member_user_id = require_user_id(member_user_id, 'Member user ID')
    admin_id = require_user_id(admin_id, 'Admin ID')
    group = load_group(group_id, for_update=True)

    if not roles.has_moderation_authority(group, admin_id):
        raise InsufficientPermissionsError("Only group admins can remove members")

    membership = roles.get_membership(group, member_user_id)
    if roles.is_creator(group, member_user_id) or (
        membership is not None and membership.role == GroupRole.OWNER
    ):
        raise CannotRemoveOwnerError("Cannot remove the group creator")

    if member_user_id == admin_id:
        raise CannotRemoveSelfError("Use leave group instead")

    if membership is None:
        raise NotMemberError("User is not a member of this group")

    membership.delete()
    group.bump_version()

    logger.info("User %s removed from group %s by %s", member_user_id, group.id, admin_id)


def get_group_members(*, group_id) -> List[dict]:
    """
    List members with directory details.

    Sorted by role (owner, admin, member), then by join date.

    Raises:
        GroupNotFoundError: If group doesn't exist
    """
    group = load_group(group_id)
    memberships = sorted(
        group.memberships.all(),
        key=lambda m: (ROLE_ORDER.get(m.role, len(ROLE_ORDER)), m.joined_at),
    )
    profiles = get_user_profiles(m.user_id for m in memberships)

    members = []
    for membership in memberships:
        profile = profiles[str(membership.user_id)]
        members.append({
            'user_id': membership.user_id,
            'name': profile.name,
            'avatar': profile.avatar,
            'bio': profile.bio,
            'role': membership.role,
            'is_creator': roles.is_creator(group, membership.user_id),
            'joined_at': membership.joined_at,
        })
    return members
