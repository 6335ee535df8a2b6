"""
Group post management service.

Creating, editing and moderating posts. Approval is decided once, when the
post is created; afterwards only an explicit approve or reject changes it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.db import transaction

from apps.groups import roles
from apps.groups.identity import same_user
from apps.groups.models import Group, GroupPost, MediaType

from .exceptions import (
    InsufficientPermissionsError,
    InvalidGroupDataError,
    PostNotPendingError,
)
from .lookups import load_group, load_post, require_user_id
from .side_channel import SideChannel, get_side_channel, run_best_effort

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = 'General'
DEFAULT_MEAT_TYPE = 'Mixed'
DEFAULT_PREP_TIME = 0
DEFAULT_SERVINGS = 1
# Largest value a PositiveIntegerField column holds on every backend
MAX_STORED_INT = 2147483647
TITLE_MAX_LENGTH = 200

CONTENT_FIELDS = ('description', 'ingredients', 'instructions', 'category', 'meat_type')


@dataclass(frozen=True)
class PostResult:
    post: GroupPost

    @property
    def message(self) -> str:
        if self.post.is_approved:
            return "Post created successfully"
        return "Post submitted for approval"


def _coerce_int(value, default: int) -> int:
    """Parse a non-negative integer that fits the column, falling back to default."""
    if value is None or value == '':
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if 0 <= parsed <= MAX_STORED_INT else default


def _media_type(image, video) -> str:
    if video:
        return MediaType.VIDEO
    if image:
        return MediaType.IMAGE
    return MediaType.NONE


def _may_change(group: Group, post: GroupPost, user_id) -> bool:
    return same_user(post.user_id, user_id) or roles.has_moderation_authority(group, user_id)


def should_auto_approve(group: Group, user_id) -> bool:
    return (
        not group.effective_settings.require_approval
        or roles.has_moderation_authority(group, user_id)
    )


def create_group_post(
    *,
    group_id,
    user_id,
    title: str = '',
    description: str = '',
    ingredients: str = '',
    instructions: str = '',
    category: str = '',
    meat_type: str = '',
    prep_time=None,
    servings=None,
    image=None,
    video=None,
) -> PostResult:
    """
    Create a post in a group.

    Checks run in order and stop at the first failure: membership, the
    group's posting policy, then the title.

    Args:
        group_id: Group to post in
        user_id: Author (must be a member)
        title: Post title (required)
        prep_time: Minutes; non-numeric values fall back to 0
        servings: Non-numeric values fall back to 1
        image: Optional uploaded image
        video: Optional uploaded video (takes precedence for media_type)

    Returns:
        PostResult wrapping the created post

    Raises:
        GroupNotFoundError: If group doesn't exist
        InsufficientPermissionsError: If user is not a member, or members
            may not post and user is not creator/admin
        InvalidGroupDataError: If title is blank or too long
    """
    user_id = require_user_id(user_id)

    with transaction.atomic():
        group = load_group(group_id, for_update=True)
        has_authority = roles.has_moderation_authority(group, user_id)

        if not (roles.is_member(group, user_id) or has_authority):
            raise InsufficientPermissionsError("Only members can post in this group")

        if not group.effective_settings.allow_member_posts and not has_authority:
            raise InsufficientPermissionsError("Only admins can post in this group")

        title = (title or '').strip()
        if not title:
            raise InvalidGroupDataError("Title is required")
        if len(title) > TITLE_MAX_LENGTH:
            raise InvalidGroupDataError(f"Title cannot exceed {TITLE_MAX_LENGTH} characters")

        post = GroupPost(
            group=group,
            user_id=user_id,
            title=title,
            description=description or '',
            ingredients=ingredients or '',
            instructions=instructions or '',
            category=category or DEFAULT_CATEGORY,
            meat_type=meat_type or DEFAULT_MEAT_TYPE,
            prep_time=_coerce_int(prep_time, DEFAULT_PREP_TIME),
            servings=_coerce_int(servings, DEFAULT_SERVINGS),
            media_type=_media_type(image, video),
            is_approved=should_auto_approve(group, user_id),
        )
        if image:
            post.image = image
        if video:
            post.video = video
        post.save()

    logger.info(
        "Post %s created in group %s by %s (approved=%s)",
        post.id, group.id, user_id, post.is_approved,
    )
    return PostResult(post=post)


def update_group_post(
    *,
    group_id,
    post_id,
    user_id,
    side_channel: Optional[SideChannel] = None,
    **changes,
) -> GroupPost:
    """
    Edit a post (author, group admin or creator).

    Only the given content fields change; approval status is left alone.
    A replaced image or video is removed from storage on a best-effort basis.

    Raises:
        GroupNotFoundError: If group doesn't exist
        PostNotFoundError: If post doesn't exist
        PostNotInGroupError: If post belongs to another group
        InsufficientPermissionsError: If user may not edit the post
        InvalidGroupDataError: If title is given but blank or too long
    """
    user_id = require_user_id(user_id)
    side_channel = side_channel or get_side_channel()
    stale_files = []

    with transaction.atomic():
        group = load_group(group_id, for_update=True)
        post = load_post(group, post_id, for_update=True)

        if not _may_change(group, post, user_id):
            raise InsufficientPermissionsError("You can only edit your own posts")

        if changes.get('title') is not None:
            title = changes['title'].strip()
            if not title:
                raise InvalidGroupDataError("Title cannot be blank")
            if len(title) > TITLE_MAX_LENGTH:
                raise InvalidGroupDataError(f"Title cannot exceed {TITLE_MAX_LENGTH} characters")
            post.title = title

        for field in CONTENT_FIELDS:
            if changes.get(field) is not None:
                setattr(post, field, changes[field])

        if changes.get('prep_time') is not None:
            post.prep_time = _coerce_int(changes['prep_time'], post.prep_time)
        if changes.get('servings') is not None:
            post.servings = _coerce_int(changes['servings'], post.servings)

        for media_field in ('image', 'video'):
            upload = changes.get(media_field)
            if upload:
                current = getattr(post, media_field)
                if current:
                    stale_files.append(current)
                setattr(post, media_field, upload)

        if changes.get('image') or changes.get('video'):
            post.media_type = _media_type(post.image, post.video)

        post.save()

    logger.info("Post %s in group %s edited by %s", post.id, group.id, user_id)

    for stale in stale_files:
        run_best_effort("old post media cleanup", side_channel.discard_file, stale)

    return post


def delete_group_post(
    *,
    group_id,
    post_id,
    user_id,
    side_channel: Optional[SideChannel] = None,
) -> None:
    """
    Permanently delete a post (author, group admin or creator).

    Raises:
        GroupNotFoundError: If group doesn't exist
        PostNotFoundError: If post doesn't exist
        PostNotInGroupError: If post belongs to another group
        InsufficientPermissionsError: If user may not delete the post
    """
    user_id = require_user_id(user_id)
    side_channel = side_channel or get_side_channel()

    with transaction.atomic():
        group = load_group(group_id, for_update=True)
        post = load_post(group, post_id, for_update=True)

        if not _may_change(group, post, user_id):
            raise InsufficientPermissionsError("Not authorized to delete this post")

        stale_files = [f for f in (post.image, post.video) if f]
        post.delete()

    logger.info("Post %s deleted from group %s by %s", post_id, group.id, user_id)

    for stale in stale_files:
        run_best_effort("post media cleanup", side_channel.discard_file, stale)


def _load_pending_for_moderation(group_id, post_id, admin_id):
    group = load_group(group_id, for_update=True)
    if not roles.has_moderation_authority(group, admin_id):
        raise InsufficientPermissionsError("Only group admins can moderate posts")

    post = load_post(group, post_id, for_update=True)
    if not post.is_pending:
        raise PostNotPendingError("Post is not pending approval")

    return group, post


@transaction.atomic
def approve_group_post(*, group_id, post_id, admin_id) -> GroupPost:
    """
    Approve a pending post (creator or admin only).

    Raises:
        InsufficientPermissionsError: If admin_id lacks authority
        PostNotPendingError: If the post is already approved
    """
    admin_id = require_user_id(admin_id, 'Admin ID')
    group, post = _load_pending_for_moderation(group_id, post_id, admin_id)

    post.is_approved = True
    post.save(update_fields=['is_approved', 'updated_at'])

    logger.info("Post %s in group %s approved by %s", post.id, group.id, admin_id)
    return post


def reject_group_post(
    *,
    group_id,
    post_id,
    admin_id,
    side_channel: Optional[SideChannel] = None,
) -> None:
    """
    Reject a pending post (creator or admin only).

    There is no rejected state: the post is deleted.

    Raises:
        InsufficientPermissionsError: If admin_id lacks authority
        PostNotPendingError: If the post is already approved
    """
    admin_id = require_user_id(admin_id, 'Admin ID')
    side_channel = side_channel or get_side_channel()

    with transaction.atomic():
        group, post = _load_pending_for_moderation(group_id, post_id, admin_id)
        author = post.user_id
        stale_files = [f for f in (post.image, post.video) if f]
        post.delete()

    logger.info(
        "Post %s by %s in group %s rejected and deleted by %s",
        post_id, author, group.id, admin_id,
    )

    for stale in stale_files:
        run_best_effort("rejected post media cleanup", side_channel.discard_file, stale)
