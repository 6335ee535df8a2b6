import logging
from unittest.mock import patch

import pytest
from django.db import DatabaseError

from apps.notifications.models import Notification, NotificationType
from apps.notifications.services import create_notification


@pytest.mark.django_db
class TestCreateNotification:

    def test_stores_notification(self):
        notification = create_notification(
            notification_type=NotificationType.COMMENT,
            from_user_id='u1',
            to_user_id='u2',
            message='Chef commented on your post',
            post_id='p1',
            post_title='Sourdough',
            group_id='g1',
            group_name='Bakers',
            from_user_name='Chef',
        )

        assert notification is not None
        stored = Notification.objects.get(id=notification.id)
        assert stored.type == NotificationType.COMMENT
        assert stored.to_user_id == 'u2'
        assert stored.group_name == 'Bakers'
        assert stored.from_user_avatar == ''
        assert stored.read is False

    def test_long_fields_are_truncated(self):
        notification = create_notification(
            notification_type=NotificationType.LIKE,
            from_user_id='u1',
            to_user_id='u2',
            message='x' * 600,
            post_title='t' * 250,
        )

        assert len(notification.message) == 500
        assert len(notification.post_title) == 200

    def test_database_error_returns_none(self, caplog):
        with patch.object(Notification.objects, 'create', side_effect=DatabaseError("down")):
            with caplog.at_level(logging.WARNING, logger='apps.notifications.services.dispatch'):
                result = create_notification(
                    notification_type=NotificationType.GROUP_JOIN_REQUEST,
                    from_user_id='u1',
                    to_user_id='u2',
                    message='wants to join',
                )

        assert result is None
        assert Notification.objects.count() == 0
        assert 'Could not store' in caplog.text
