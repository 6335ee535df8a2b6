"""
Best-effort side effects of group operations.

Notifications and stale-file cleanup must never decide the outcome of the
operation that triggered them. Services receive a side channel, call it only
after their own changes are committed, and go through ``run_best_effort`` so
a failure is logged and dropped at the call site.
"""

import logging
from typing import Callable, Optional

from django.conf import settings
from django.utils.module_loading import import_string

from apps.notifications.services import create_notification

logger = logging.getLogger(__name__)


class SideChannel:
    """Interface for fire-and-forget side effects."""

    def notify(
        self,
        *,
        notification_type: str,
        from_user_id: str,
        to_user_id: str,
        message: str,
        group=None,
        post=None,
        from_user_name: str = '',
        from_user_avatar: Optional[str] = None,
    ) -> None:
        raise NotImplementedError

    def discard_file(self, field_file) -> None:
        raise NotImplementedError


class DefaultSideChannel(SideChannel):
    """Stores notifications in the notifications app and deletes files from storage."""

    def notify(
        self,
        *,
        notification_type,
        from_user_id,
        to_user_id,
        message,
        group=None,
        post=None,
        from_user_name='',
        from_user_avatar=None,
    ):
        created = create_notification(
            notification_type=notification_type,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            message=message,
            post_id=str(post.id) if post is not None else '',
            post_title=post.title if post is not None else '',
            group_id=str(group.id) if group is not None else '',
            group_name=group.name if group is not None else '',
            from_user_name=from_user_name,
            from_user_avatar=from_user_avatar,
        )
        if created is None:
            raise RuntimeError(f"{notification_type} notification was not stored")

    def discard_file(self, field_file):
        if field_file and field_file.name:
            field_file.storage.delete(field_file.name)


def get_side_channel() -> SideChannel:
    path = getattr(settings, 'GROUPS_SIDE_CHANNEL', None)
    if not path:
        return DefaultSideChannel()
    return import_string(path)()


def run_best_effort(description: str, func: Callable, *args, **kwargs) -> bool:
    """
    Call func, logging and swallowing any exception.

    Returns:
        True if func completed, False if it raised
    """
    try:
        func(*args, **kwargs)
    except Exception:
        logger.warning("Best-effort %s failed", description, exc_info=True)
        return False
    return True
