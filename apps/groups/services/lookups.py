"""Loading helpers shared by the groups services."""

import uuid

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import InterfaceError, OperationalError

from apps.groups.identity import MAX_USER_ID_LENGTH, UserId, as_user_id
from apps.groups.models import Group, GroupPost

from .exceptions import (
    GroupNotFoundError,
    InvalidGroupDataError,
    InvalidIdentifierError,
    PostNotFoundError,
    PostNotInGroupError,
    ServiceUnavailableError,
)


def parse_id(value, label: str = 'ID') -> uuid.UUID:
    """Parse a group/post/comment id, raising InvalidIdentifierError if malformed."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (ValueError, AttributeError, TypeError):
        raise InvalidIdentifierError(f"Invalid {label}")


def require_user_id(value, label: str = 'User ID') -> UserId:
    user_id = as_user_id(value)
    if user_id is None:
        raise InvalidGroupDataError(f"{label} is required")
    if len(user_id) > MAX_USER_ID_LENGTH:
        raise InvalidGroupDataError(f"{label} cannot exceed {MAX_USER_ID_LENGTH} characters")
    return user_id


def load_group(group_id, *, for_update: bool = False) -> Group:
    """
    Load a group with memberships and pending requests prefetched.

    With for_update=True the group row is locked until the surrounding
    transaction ends, serializing every mutation of the same group.
    Must be called inside transaction.atomic() in that case.
    """
    parsed = parse_id(group_id, 'group ID')
    try:
        queryset = Group.objects.prefetch_related('memberships', 'pending_requests')
        if for_update:
            queryset = queryset.select_for_update()
        return queryset.get(id=parsed)
    except (Group.DoesNotExist, DjangoValidationError):
        raise GroupNotFoundError("Group not found")
    except (OperationalError, InterfaceError) as exc:
        raise ServiceUnavailableError("Database not available") from exc


def load_post(group: Group, post_id, *, for_update: bool = False) -> GroupPost:
    """Load a post and make sure it belongs to group."""
    parsed = parse_id(post_id, 'post ID')
    queryset = GroupPost.objects.all()
    if for_update:
        queryset = queryset.select_for_update()
    try:
        post = queryset.get(id=parsed)
    except GroupPost.DoesNotExist:
        raise PostNotFoundError("Post not found")

    if post.group_id != group.id:
        raise PostNotInGroupError("Post does not belong to this group")

    return post
