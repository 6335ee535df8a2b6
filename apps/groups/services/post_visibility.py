"""
Post visibility service.

Decides which group posts a viewer may read and what they may do with them.
Rules, first match wins:

1. Private group, viewer not a member: nothing at all.
2. Viewer is the creator or an admin: every post, pending ones included.
3. Viewer is a member: approved posts plus their own pending posts.
4. Anyone else: approved posts only.

Returned posts are GroupPost instances decorated with ``author``,
``is_pending``, ``can_approve``, ``can_edit`` and ``can_delete``.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from django.db.models import Q, QuerySet

from apps.accounts.services import get_user_profiles
from apps.groups import roles
from apps.groups.identity import UserId, as_user_id
from apps.groups.models import Group, GroupMembership, GroupPost

from .exceptions import PostNotFoundError
from .lookups import load_group, load_post, require_user_id

POST_SOURCE_GROUP = 'group'


@dataclass(frozen=True)
class ViewerContext:
    """What one viewer is to one group."""

    user_id: Optional[UserId]
    is_member: bool
    has_authority: bool

    @classmethod
    def for_group(cls, group: Group, user_id) -> 'ViewerContext':
        viewer = as_user_id(user_id)
        return cls(
            user_id=viewer,
            is_member=roles.is_member(group, viewer) or roles.is_creator(group, viewer),
            has_authority=roles.has_moderation_authority(group, viewer),
        )

    def is_author(self, post: GroupPost) -> bool:
        return self.user_id is not None and as_user_id(post.user_id) == self.user_id


def visible_posts(group: Group, viewer: ViewerContext) -> QuerySet:
    """Queryset of the posts of group that viewer may read, newest first."""
    posts = GroupPost.objects.filter(group=group)

    if group.is_private and not viewer.is_member:
        return posts.none()

    if viewer.is_member and not viewer.has_authority:
        posts = posts.filter(Q(is_approved=True) | Q(user_id=viewer.user_id, is_approved=False))
    elif not viewer.has_authority:
        posts = posts.filter(is_approved=True)

    return posts.prefetch_related('likes', 'comments').order_by('-created_at')


def can_see_post(group: Group, viewer: ViewerContext, post: GroupPost) -> bool:
    if group.is_private and not viewer.is_member:
        return False
    return post.is_approved or viewer.has_authority or (viewer.is_member and viewer.is_author(post))


def decorate_posts(posts: Iterable[GroupPost], viewer: ViewerContext) -> List[GroupPost]:
    """Attach author profiles and per-viewer permissions to posts."""
    posts = list(posts)
    profiles = get_user_profiles({post.user_id for post in posts})

    for post in posts:
        is_author = viewer.is_author(post)
        post.author = profiles[str(post.user_id)]
        post.can_approve = viewer.has_authority and post.is_pending
        post.can_edit = is_author or viewer.has_authority
        post.can_delete = is_author or viewer.has_authority
    return posts


def list_group_posts(*, group_id, user_id=None) -> List[GroupPost]:
    """
    List the posts of a group as seen by user_id.

    A private group answers non-members with an empty list, never an error,
    so the existence and count of its posts stay hidden.

    Raises:
        GroupNotFoundError: If group doesn't exist
    """
    group = load_group(group_id)
    viewer = ViewerContext.for_group(group, user_id)
    return decorate_posts(visible_posts(group, viewer), viewer)


def get_group_post(*, group_id, post_id, user_id=None) -> GroupPost:
    """
    Get one post as seen by user_id.

    Raises:
        GroupNotFoundError: If group doesn't exist
        PostNotFoundError: If post doesn't exist or is hidden from user_id
        PostNotInGroupError: If post belongs to another group
    """
    group = load_group(group_id)
    viewer = ViewerContext.for_group(group, user_id)
    post = load_post(group, post_id)

    if not can_see_post(group, viewer, post):
        raise PostNotFoundError("Post not found")

    return decorate_posts([post], viewer)[0]


def list_member_feed(*, user_id) -> List[GroupPost]:
    """
    Approved posts from every group user_id belongs to, newest first.

    Each post carries ``group_name`` and ``post_source``.

    Raises:
        InvalidGroupDataError: If user_id is missing
    """
    user_id = require_user_id(user_id)
    group_ids = GroupMembership.objects.filter(user_id=user_id).values('group_id')

    posts = list(
        GroupPost.objects
        .filter(group_id__in=group_ids, is_approved=True)
        .select_related('group')
        .prefetch_related('likes', 'comments')
        .order_by('-created_at')
    )
    profiles = get_user_profiles({post.user_id for post in posts})

    for post in posts:
        is_author = as_user_id(post.user_id) == user_id
        post.author = profiles[str(post.user_id)]
        post.group_name = post.group.name
        post.post_source = POST_SOURCE_GROUP
        post.can_approve = False
        post.can_edit = is_author
        post.can_delete = is_author
    return posts
