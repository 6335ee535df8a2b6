"""
Membership and role resolution.

Total predicates over a loaded Group: missing groups or ids are simply
"not a member". Memberships and pending requests are read through the
group's related managers, so callers that load groups with
``prefetch_related('memberships', 'pending_requests')`` pay no extra queries.
"""

from typing import Optional

from apps.groups.identity import as_user_id
from apps.groups.models import ADMIN_ROLES


class ViewerStatus:
    CREATOR = 'creator'
    ADMIN = 'admin'
    MEMBER = 'member'
    PENDING = 'pending'


def get_membership(group, user_id):
    target = as_user_id(user_id)
    if group is None or target is None:
        return None
    for membership in group.memberships.all():
        if as_user_id(membership.user_id) == target:
            return membership
    return None


def get_join_request(group, user_id):
    target = as_user_id(user_id)
    if group is None or target is None:
        return None
    for join_request in group.pending_requests.all():
        if as_user_id(join_request.user_id) == target:
            return join_request
    return None


def is_member(group, user_id) -> bool:
    return get_membership(group, user_id) is not None


def get_role(group, user_id) -> Optional[str]:
    membership = get_membership(group, user_id)
    return membership.role if membership else None


def is_admin(group, user_id) -> bool:
    return get_role(group, user_id) in ADMIN_ROLES


def is_creator(group, user_id) -> bool:
    if group is None:
        return False
    viewer = as_user_id(user_id)
    creator = as_user_id(group.creator_id)
    return viewer is not None and viewer == creator


def has_pending_request(group, user_id) -> bool:
    return get_join_request(group, user_id) is not None


def has_moderation_authority(group, user_id) -> bool:
    """Creator counts as admin whatever their membership row says."""
    return is_creator(group, user_id) or is_admin(group, user_id)


def viewer_status(group, user_id) -> Optional[str]:
    """Strongest relationship user_id has with group, or None."""
    if is_creator(group, user_id):
        return ViewerStatus.CREATOR
    role = get_role(group, user_id)
    if role in ADMIN_ROLES:
        return ViewerStatus.ADMIN
    if role is not None:
        return ViewerStatus.MEMBER
    if has_pending_request(group, user_id):
        return ViewerStatus.PENDING
    return None
