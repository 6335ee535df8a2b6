from django.contrib import admin
from apps.notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Admin interface for Notifications."""

    list_display = ['type', 'to_user_id', 'from_user_name', 'group_name', 'read', 'created_at']
    list_filter = ['type', 'read', 'created_at']
    search_fields = ['to_user_id', 'from_user_id', 'message', 'group_name']
    readonly_fields = ['created_at']
    date_hierarchy = 'created_at'
    ordering = ['-created_at']
