"""
Group management service.

Handles group CRUD operations with proper transaction safety.
"""

import logging
from typing import Iterable, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q, QuerySet

from apps.accounts.services import get_user_profiles
from apps.groups import roles
from apps.groups.identity import as_user_id
from apps.groups.models import Group, GroupMembership, GroupPost, GroupRole

from .exceptions import (
    InsufficientPermissionsError,
    InvalidGroupDataError,
)
from .lookups import load_group, require_user_id
from .side_channel import SideChannel, get_side_channel, run_best_effort

logger = logging.getLogger(__name__)


def create_group(
    *,
    name: str,
    creator_id,
    description: str = '',
    category: str = '',
    rules: str = '',
    is_private: bool = False,
    allow_member_posts: bool = True,
    require_approval: bool = False,
    allow_invites: bool = True,
    image=None,
) -> Group:
    """
    Create a new group and add the creator as its first admin.

    Public groups never require approval, whatever was requested.

    Args:
        name: Group name (required, trimmed)
        creator_id: User creating the group
        description: Optional description
        category: Optional category (default 'General')
        rules: Optional house rules
        is_private: Whether posts and joining are gated on membership
        allow_member_posts: Whether plain members may post
        require_approval: Whether member posts and joins need approval
        allow_invites: Whether members may invite others
        image: Optional uploaded image

    Returns:
        Created Group instance, with relations prefetched

    Raises:
        InvalidGroupDataError: If name or creator is missing
    """
    name = (name or '').strip()
    if not name:
        raise InvalidGroupDataError("Group name is required")
    creator = require_user_id(creator_id, 'Creator ID')

    with transaction.atomic():
        group = Group(
            name=name,
            description=description or '',
            category=category or 'General',
            rules=rules or '',
            creator_id=creator,
            is_private=bool(is_private),
        )
        group.apply_settings(
            allow_member_posts=allow_member_posts,
            require_approval=bool(require_approval) if is_private else False,
            allow_invites=allow_invites,
        )
        if image:
            group.image = image
        group.save()

        GroupMembership.objects.create(
            group=group,
            user_id=creator,
            role=GroupRole.ADMIN,
        )

    logger.info("Group %s created by %s (private=%s)", group.id, creator, group.is_private)
    return load_group(group.id)


def get_group_by_id(*, group_id) -> Group:
    """
    Get a group by ID with memberships and pending requests prefetched.

    Raises:
        InvalidIdentifierError: If group_id is malformed
        GroupNotFoundError: If group doesn't exist
    """
    return load_group(group_id)


def _with_counts(queryset: QuerySet, approved_only: bool = False) -> QuerySet:
    if approved_only:
        posts_count = Count('posts', filter=Q(posts__is_approved=True), distinct=True)
    else:
        posts_count = Count('posts', distinct=True)
    return (
        queryset
        .prefetch_related('memberships', 'pending_requests')
        .annotate(posts_count=posts_count)
        .order_by('-created_at')
    )


def _visible_to(user_id) -> Q:
    """Public groups plus private groups user_id belongs to."""
    condition = Q(is_private=False)
    if user_id is not None:
        member_groups = GroupMembership.objects.filter(user_id=user_id).values('group_id')
        condition |= Q(id__in=member_groups)
    return condition


def list_groups(*, user_id=None) -> QuerySet:
    """
    List groups a user may discover, newest first.

    Private groups appear only for their members.
    """
    return _with_counts(Group.objects.filter(_visible_to(as_user_id(user_id))))


def search_groups(
    *,
    query: str,
    user_id=None,
    include_private: bool = False,
    limit: Optional[int] = None,
) -> List[Group]:
    """
    Case-insensitive search over name, description and category.

    Args:
        query: Search text (required)
        user_id: Searching user; their private groups are included
        include_private: Include private groups the user is not in
        limit: Maximum results (default settings.GROUP_SEARCH_LIMIT)

    Raises:
        InvalidGroupDataError: If query is blank
    """
    query = (query or '').strip()
    if not query:
        raise InvalidGroupDataError("Search query is required")

    limit = limit or getattr(settings, 'GROUP_SEARCH_LIMIT', 50)

    queryset = Group.objects.filter(
        Q(name__icontains=query)
        | Q(description__icontains=query)
        | Q(category__icontains=query)
    )
    if not include_private:
        queryset = queryset.filter(_visible_to(as_user_id(user_id)))

    return list(_with_counts(queryset, approved_only=True)[:limit])


def get_group_profiles(groups: Iterable[Group], include_members: bool = False):
    """Directory profiles for creators (and optionally members/requesters) of groups."""
    user_ids = set()
    for group in groups:
        user_ids.add(group.creator_id)
        if include_members:
            user_ids.update(m.user_id for m in group.memberships.all())
            user_ids.update(r.user_id for r in group.pending_requests.all())
    return get_user_profiles(user_ids)


def update_group(
    *,
    group_id,
    updated_by,
    name: Optional[str] = None,
    description: Optional[str] = None,
    category: Optional[str] = None,
    rules: Optional[str] = None,
    is_private: Optional[bool] = None,
    allow_member_posts: Optional[bool] = None,
    require_approval: Optional[bool] = None,
    allow_invites: Optional[bool] = None,
    image=None,
    side_channel: Optional[SideChannel] = None,
) -> Group:
    """
    Update group details and settings (creator or admin only).

    Only provided fields change. A group that is public after the update
    cannot require approval: require_approval is forced to False whenever
    is_private is set to False, and a require_approval request on a public
    group is stored as False.

    Replacing the image deletes the previous file on a best-effort basis.

    Raises:
        GroupNotFoundError: If group doesn't exist
        InsufficientPermissionsError: If user is not creator or admin
        InvalidGroupDataError: If name is provided but blank
    """
    user_id = require_user_id(updated_by, 'Updated by')
    side_channel = side_channel or get_side_channel()
    old_image = None

    with transaction.atomic():
        group = load_group(group_id, for_update=True)

        if not roles.has_moderation_authority(group, user_id):
            raise InsufficientPermissionsError("Only group admins can update settings")

        update_fields = ['settings', 'allow_member_posts', 'require_approval', 'allow_invites']

        if name is not None:
            name = name.strip()
            if not name:
                raise InvalidGroupDataError("Group name cannot be blank")
            group.name = name
            update_fields.append('name')

        if description is not None:
            group.description = description
            update_fields.append('description')

        if category:
            group.category = category
            update_fields.append('category')

        if rules is not None:
            group.rules = rules
            update_fields.append('rules')

        if is_private is not None:
            group.is_private = bool(is_private)
            update_fields.append('is_private')

        if is_private is False:
            require_approval = False
        elif require_approval is not None and not group.is_private:
            require_approval = False

        group.apply_settings(
            allow_member_posts=allow_member_posts,
            require_approval=require_approval,
            allow_invites=allow_invites,
        )

        if image:
            if group.image:
                old_image = group.image
            group.image = image
            update_fields.append('image')

        group.bump_version(update_fields=update_fields)

    logger.info("Group %s updated by %s", group.id, user_id)

    if old_image is not None:
        run_best_effort("old group image cleanup", side_channel.discard_file, old_image)

    return load_group(group.id)


def delete_group(*, group_id, user_id, side_channel: Optional[SideChannel] = None) -> None:
    """
    Delete a group (creator only).

    Posts are deleted first, then the group itself (memberships, join
    requests, likes and comments go with them). Stored media is removed
    afterwards on a best-effort basis.

    Raises:
        GroupNotFoundError: If group doesn't exist
        InsufficientPermissionsError: If user is not the creator
    """
    user_id = require_user_id(user_id)
    side_channel = side_channel or get_side_channel()

    with transaction.atomic():
        group = load_group(group_id, for_update=True)

        if not roles.is_creator(group, user_id):
            raise InsufficientPermissionsError("Only group creator can delete the group")

        posts = GroupPost.objects.filter(group=group)
        stale_files = [group.image] if group.image else []
        for post in posts.only('id', 'image', 'video'):
            stale_files.extend(f for f in (post.image, post.video) if f)

        deleted_posts, _ = posts.delete()
        group.delete()

    logger.info("Group %s deleted by %s (%d rows with posts)", group_id, user_id, deleted_posts)

    for stale in stale_files:
        run_best_effort("group media cleanup", side_channel.discard_file, stale)
