"""
Notification persistence.

Notifications are a side effect of other operations, so creation never
raises: a failed insert is logged and reported through the return value.
"""

import logging
from typing import Optional

from django.db import DatabaseError, transaction

from apps.notifications.models import Notification

logger = logging.getLogger(__name__)


def create_notification(
    *,
    notification_type: str,
    from_user_id: str,
    to_user_id: str,
    message: str,
    post_id: str = '',
    post_title: str = '',
    group_id: str = '',
    group_name: str = '',
    from_user_name: str = '',
    from_user_avatar: Optional[str] = None,
) -> Optional[Notification]:
    """
    Store a notification for to_user_id.

    Runs in its own savepoint so a failed insert cannot poison an
    enclosing transaction.

    Returns:
        Created Notification, or None if it could not be stored
    """
    try:
        with transaction.atomic():
            notification = Notification.objects.create(
                type=notification_type,
                from_user_id=str(from_user_id),
                to_user_id=str(to_user_id),
                message=message[:500],
                post_id=str(post_id or ''),
                post_title=(post_title or '')[:200],
                group_id=str(group_id or ''),
                group_name=(group_name or '')[:100],
                from_user_name=from_user_name or '',
                from_user_avatar=from_user_avatar or '',
            )
    except DatabaseError:
        logger.warning(
            "Could not store %s notification for %s", notification_type, to_user_id,
            exc_info=True,
        )
        return None

    logger.debug("Notification created: %s -> %s", notification_type, to_user_id)
    return notification
