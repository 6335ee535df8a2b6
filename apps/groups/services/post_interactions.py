"""
Likes and comments on group posts.

Only members interact with posts, even in public groups where anyone can
read them. Notifying the post author is best-effort and happens after the
interaction is stored.
"""

import logging
from typing import List, Optional

from django.db import IntegrityError, transaction

from apps.accounts.services import get_user_profile
from apps.groups import roles
from apps.groups.identity import same_user
from apps.groups.models import Group, GroupPost, GroupPostComment, GroupPostLike
from apps.notifications.models import NotificationType

from .exceptions import (
    AlreadyLikedError,
    CommentNotFoundError,
    InsufficientPermissionsError,
    InvalidGroupDataError,
    NotLikedError,
)
from .lookups import load_group, load_post, parse_id, require_user_id
from .side_channel import SideChannel, get_side_channel, run_best_effort

logger = logging.getLogger(__name__)

ANONYMOUS_USER_NAME = 'Anonymous User'
COMMENT_NAME_MAX_LENGTH = 150


def _require_member(group: Group, user_id, action: str) -> None:
    if not (roles.is_member(group, user_id) or roles.is_creator(group, user_id)):
        raise InsufficientPermissionsError(f"Must be a member to {action}")


def _like_ids(post: GroupPost) -> List[str]:
    return list(post.likes.order_by('created_at', 'id').values_list('user_id', flat=True))


def _notify_author(side_channel, *, post, group, actor_id, notification_type, message_suffix):
    actor = get_user_profile(actor_id)
    run_best_effort(
        f"{notification_type} notification",
        side_channel.notify,
        notification_type=notification_type,
        from_user_id=actor_id,
        to_user_id=post.user_id,
        message=f"{actor.name} {message_suffix}",
        group=group,
        post=post,
        from_user_name=actor.name,
        from_user_avatar=actor.avatar,
    )


def like_post(
    *,
    group_id,
    post_id,
    user_id,
    side_channel: Optional[SideChannel] = None,
) -> List[str]:
    """
    Like a post.

    Returns:
        User ids that like the post, oldest like first

    Raises:
        GroupNotFoundError: If group doesn't exist
        PostNotFoundError: If post doesn't exist
        PostNotInGroupError: If post belongs to another group
        InsufficientPermissionsError: If user is not a member
        AlreadyLikedError: If user already likes the post
    """
    user_id = require_user_id(user_id)
    side_channel = side_channel or get_side_channel()

    with transaction.atomic():
        group = load_group(group_id, for_update=True)
        _require_member(group, user_id, "like posts")
        post = load_post(group, post_id)

        if post.likes.filter(user_id=user_id).exists():
            raise AlreadyLikedError("Already liked this post")

        try:
            with transaction.atomic():
                GroupPostLike.objects.create(post=post, user_id=user_id)
        except IntegrityError:
            raise AlreadyLikedError("Already liked this post")

        likes = _like_ids(post)

    logger.debug("Post %s liked by %s", post.id, user_id)

    if not same_user(post.user_id, user_id):
        _notify_author(
            side_channel,
            post=post,
            group=group,
            actor_id=user_id,
            notification_type=NotificationType.LIKE,
            message_suffix=f'liked your recipe "{post.title}"',
        )

    return likes


@transaction.atomic
def unlike_post(*, group_id, post_id, user_id) -> List[str]:
    """
    Remove a like.

    Returns:
        User ids that still like the post

    Raises:
        InsufficientPermissionsError: If user is not a member
        NotLikedError: If user does not like the post
    """
    user_id = require_user_id(user_id)
    group = load_group(group_id, for_update=True)
    _require_member(group, user_id, "unlike posts")
    post = load_post(group, post_id)

    deleted, _ = post.likes.filter(user_id=user_id).delete()
    if not deleted:
        raise NotLikedError("Post not liked yet")

    logger.debug("Post %s unliked by %s", post.id, user_id)
    return _like_ids(post)


def add_comment(
    *,
    group_id,
    post_id,
    user_id,
    text: str,
    user_name: str = '',
    side_channel: Optional[SideChannel] = None,
) -> GroupPostComment:
    """
    Comment on a post.

    The stored name is user_name when given, else the directory name, else
    'Anonymous User'. The avatar always comes from the directory.

    Raises:
        InvalidGroupDataError: If text is blank
        GroupNotFoundError: If group doesn't exist
        PostNotFoundError: If post doesn't exist
        PostNotInGroupError: If post belongs to another group
        InsufficientPermissionsError: If user is not a member
    """
    text = (text or '').strip()
    if not text:
        raise InvalidGroupDataError("Comment text is required")
    user_id = require_user_id(user_id)
    side_channel = side_channel or get_side_channel()
    profile = get_user_profile(user_id)

    with transaction.atomic():
        group = load_group(group_id, for_update=True)
        _require_member(group, user_id, "comment")
        post = load_post(group, post_id)

        name = (user_name or '').strip() or (profile.name if profile.found else ANONYMOUS_USER_NAME)
        name = name[:COMMENT_NAME_MAX_LENGTH]

        comment = GroupPostComment.objects.create(
            post=post,
            user_id=user_id,
            user_name=name,
            user_avatar=profile.avatar or '',
            text=text,
        )

    logger.debug("Comment %s added to post %s by %s", comment.id, post.id, user_id)

    if not same_user(post.user_id, user_id):
        _notify_author(
            side_channel,
            post=post,
            group=group,
            actor_id=user_id,
            notification_type=NotificationType.COMMENT,
            message_suffix=f'commented on your recipe "{post.title}"',
        )

    return comment


@transaction.atomic
def delete_comment(*, group_id, post_id, comment_id, user_id) -> None:
    """
    Delete a comment (its author, a group admin or the creator).

    Raises:
        InsufficientPermissionsError: If user is not a member or may not
            delete this comment
        CommentNotFoundError: If the comment is not on this post
    """
    user_id = require_user_id(user_id)
    group = load_group(group_id, for_update=True)
    _require_member(group, user_id, "delete comments")
    post = load_post(group, post_id)

    try:
        comment = post.comments.get(id=parse_id(comment_id, 'comment ID'))
    except GroupPostComment.DoesNotExist:
        raise CommentNotFoundError("Comment not found")

    if not (same_user(comment.user_id, user_id) or roles.has_moderation_authority(group, user_id)):
        raise InsufficientPermissionsError("Not authorized to delete this comment")

    comment.delete()
    logger.debug("Comment %s deleted from post %s by %s", comment_id, post.id, user_id)
