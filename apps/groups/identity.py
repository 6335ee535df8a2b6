"""
Canonical user identifiers.

User ids reach the groups code as UUIDs, UUID strings in any case, or opaque
strings from older clients. They are canonicalised once, at the boundary,
and compared as plain strings afterwards.
"""

import uuid
from typing import Optional

# Width of every user id column
MAX_USER_ID_LENGTH = 64


class UserId(str):
    """A user id in canonical form. Equality is plain string equality."""

    __slots__ = ()

    def __new__(cls, value):
        if isinstance(value, UserId):
            return value
        if value is None:
            raise ValueError("User ID cannot be None")

        if isinstance(value, uuid.UUID):
            text = str(value)
        else:
            text = str(value).strip()
            try:
                text = str(uuid.UUID(text))
            except ValueError:
                pass

        if not text:
            raise ValueError("User ID cannot be blank")

        return super().__new__(cls, text)

    def __repr__(self):
        return f"UserId({str(self)!r})"


def as_user_id(value) -> Optional[UserId]:
    """Canonicalise value, returning None for missing or blank input."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return UserId(value)


def same_user(left, right) -> bool:
    """True when both ids are present and refer to the same user."""
    left_id = as_user_id(left)
    right_id = as_user_id(right)
    return left_id is not None and left_id == right_id
