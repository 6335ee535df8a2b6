"""
Role management service.

Handles member role updates with concurrency protection.
"""

import logging

from django.db import transaction

from apps.groups import roles
from apps.groups.models import GroupMembership, GroupRole

from .exceptions import (
    CannotChangeOwnerRoleError,
    InsufficientPermissionsError,
    InvalidGroupDataError,
    NotMemberError,
)
from .lookups import load_group, require_user_id

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = (GroupRole.ADMIN, GroupRole.MEMBER)


@transaction.atomic
def update_member_role(
    *,
    group_id,
    member_user_id,
    new_role: str,
    admin_id,
) -> GroupMembership:
    """
    Update a member's role (creator only).

    Locks the group row to prevent concurrent role changes.
    The creator's own role cannot be changed.

    Args:
        group_id: Group the member belongs to
        member_user_id: User whose role to update
        new_role: New role ('admin' or 'member')
        admin_id: User performing the update (must be the creator)

    Returns:
        Updated GroupMembership instance

    Raises:
        InvalidGroupDataError: If new_role is invalid
        GroupNotFoundError: If group doesn't exist
        InsufficientPermissionsError: If admin_id is not the creator
        CannotChangeOwnerRoleError: If target is the creator
        NotMemberError: If target user is not a member
    """
    if new_role not in ASSIGNABLE_ROLES:
        raise InvalidGroupDataError(
            f"Invalid role. Must be one of: {', '.join(ASSIGNABLE_ROLES)}"
        )
    member_user_id = require_user_id(member_user_id, 'Member user ID')
    admin_id = require_user_id(admin_id, 'Admin ID')

    group = load_group(group_id, for_update=True)

    if not roles.is_creator(group, admin_id):
        raise InsufficientPermissionsError("Only the group creator can change member roles")

    membership = roles.get_membership(group, member_user_id)
    if roles.is_creator(group, member_user_id) or (
        membership is not None and membership.role == GroupRole.OWNER
    ):
        raise CannotChangeOwnerRoleError("Cannot change the creator's role")

    if membership is None:
        raise NotMemberError("User is not a member of this group")

    membership.role = new_role
    membership.save(update_fields=['role'])
    group.bump_version()

    logger.info(
        "User %s is now %s in group %s (changed by %s)",
        member_user_id, new_role, group.id, admin_id,
    )
    return membership
