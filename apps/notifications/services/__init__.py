"""Notifications app services layer."""

from .dispatch import create_notification

__all__ = [
    'create_notification',
]
