"""
User directory lookups.

Group responses show the current name and avatar of every user they mention.
Lookups never fail the caller: unknown ids, malformed ids and storage errors
all degrade to placeholder profiles.
"""

import logging
import uuid
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, Optional

from django.db import DatabaseError

from apps.accounts.models import User

logger = logging.getLogger(__name__)

UNKNOWN_USER_NAME = 'Unknown User'


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    name: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    email: Optional[str] = None
    found: bool = True

    def as_dict(self):
        return asdict(self)


def placeholder_profile(user_id) -> UserProfile:
    return UserProfile(user_id=str(user_id), name=UNKNOWN_USER_NAME, found=False)


def _profile_from_user(user: User) -> UserProfile:
    return UserProfile(
        user_id=str(user.id),
        name=user.get_display_name(),
        avatar=user.avatar or None,
        bio=user.bio or None,
        email=user.email,
    )


def _valid_uuids(user_ids: Iterable) -> Dict[str, uuid.UUID]:
    valid = {}
    for raw in user_ids:
        if raw is None:
            continue
        try:
            valid[str(raw)] = uuid.UUID(str(raw))
        except (ValueError, AttributeError):
            continue
    return valid


def get_user_profiles(user_ids: Iterable) -> Dict[str, UserProfile]:
    """
    Resolve many user ids at once.

    Every requested id is present in the returned mapping; ids that cannot be
    resolved map to a placeholder profile.

    Args:
        user_ids: Iterable of user ids (str or UUID)

    Returns:
        Dict of str(user_id) -> UserProfile
    """
    requested = [str(user_id) for user_id in user_ids if user_id is not None]
    profiles = {user_id: placeholder_profile(user_id) for user_id in requested}

    valid = _valid_uuids(requested)
    if not valid:
        return profiles

    try:
        users = list(User.objects.filter(id__in=set(valid.values())))
    except DatabaseError:
        logger.warning("User directory lookup failed for %d ids", len(valid), exc_info=True)
        return profiles

    by_uuid = {user.id: user for user in users}
    for raw, parsed in valid.items():
        user = by_uuid.get(parsed)
        if user is not None:
            profiles[raw] = _profile_from_user(user)

    return profiles


def get_user_profile(user_id) -> UserProfile:
    """Resolve a single user id, falling back to a placeholder."""
    if user_id is None:
        return placeholder_profile(user_id)
    return get_user_profiles([user_id])[str(user_id)]


def get_active_user(user_id) -> User:
    """
    Strict lookup used by the profile endpoint.

    Raises:
        ValueError: If user_id is not a valid UUID
        User.DoesNotExist: If no active user has this id
    """
    parsed = uuid.UUID(str(user_id))
    return User.objects.get(id=parsed, is_active=True)
