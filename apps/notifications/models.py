from django.db import models
import uuid


class NotificationType(models.TextChoices):
    LIKE = 'like', 'Like'
    COMMENT = 'comment', 'Comment'
    FOLLOW = 'follow', 'Follow'
    GROUP_POST = 'group_post', 'Group post'
    GROUP_JOIN_REQUEST = 'group_join_request', 'Group join request'
    GROUP_REQUEST_APPROVED = 'group_request_approved', 'Group request approved'


class Notification(models.Model):
    """In-app notification addressed to a single user."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    type = models.CharField(max_length=32, choices=NotificationType.choices)
    from_user_id = models.CharField(max_length=64)
    to_user_id = models.CharField(max_length=64, db_index=True)
    message = models.CharField(max_length=500)

    post_id = models.CharField(max_length=64, blank=True)
    post_title = models.CharField(max_length=200, blank=True)
    group_id = models.CharField(max_length=64, blank=True)
    group_name = models.CharField(max_length=100, blank=True)

    from_user_name = models.CharField(max_length=150, blank=True)
    from_user_avatar = models.CharField(max_length=500, blank=True)

    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        indexes = [
            models.Index(fields=['to_user_id', 'read', 'created_at']),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.type} -> {self.to_user_id}"
