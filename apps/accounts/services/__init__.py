"""Services for accounts business logic."""

from .user_directory import (
    UNKNOWN_USER_NAME,
    UserProfile,
    get_active_user,
    get_user_profile,
    get_user_profiles,
    placeholder_profile,
)

__all__ = [
    'UNKNOWN_USER_NAME',
    'UserProfile',
    'get_active_user',
    'get_user_profile',
    'get_user_profiles',
    'placeholder_profile',
]
