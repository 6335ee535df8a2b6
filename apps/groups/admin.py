from django.contrib import admin
from apps.groups.models import (
    Group,
    GroupJoinRequest,
    GroupMembership,
    GroupPost,
    GroupPostComment,
)


class GroupMembershipInline(admin.TabularInline):
    """Inline admin for group memberships."""
    model = GroupMembership
    extra = 0
    fields = ['user_id', 'role', 'joined_at']
    readonly_fields = ['joined_at']


class GroupJoinRequestInline(admin.TabularInline):
    """Inline admin for pending join requests."""
    model = GroupJoinRequest
    extra = 0
    fields = ['user_id', 'requested_at']
    readonly_fields = ['requested_at']


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    """Admin interface for Groups."""

    list_display = [
        'name',
        'creator_id',
        'member_count',
        'is_private',
        'category',
        'created_at'
    ]
    list_filter = ['is_private', 'category', 'created_at']
    search_fields = ['name', 'description', 'category', 'creator_id']
    readonly_fields = ['creator_id', 'version', 'created_at', 'updated_at']
    inlines = [GroupMembershipInline, GroupJoinRequestInline]
    date_hierarchy = 'created_at'
    ordering = ['-created_at']

    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'description', 'category', 'rules', 'image', 'creator_id', 'is_private')
        }),
        ('Settings', {
            'fields': ('settings', 'allow_member_posts', 'require_approval', 'allow_invites')
        }),
        ('Metadata', {
            'fields': ('version', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def member_count(self, obj):
        """Show number of members."""
        return obj.memberships.count()
    member_count.short_description = 'Members'


class GroupPostCommentInline(admin.TabularInline):
    model = GroupPostComment
    extra = 0
    fields = ['user_id', 'user_name', 'text', 'created_at']
    readonly_fields = ['created_at']


@admin.register(GroupPost)
class GroupPostAdmin(admin.ModelAdmin):
    """Admin interface for group posts, with bulk approval."""

    list_display = ['title', 'group', 'user_id', 'is_approved', 'media_type', 'created_at']
    list_filter = ['is_approved', 'media_type', 'category', 'created_at']
    search_fields = ['title', 'group__name', 'user_id']
    readonly_fields = ['user_id', 'created_at', 'updated_at']
    inlines = [GroupPostCommentInline]
    date_hierarchy = 'created_at'
    ordering = ['-created_at']

    actions = ['approve_posts']

    def approve_posts(self, request, queryset):
        """Approve selected pending posts."""
        updated = queryset.filter(is_approved=False).update(is_approved=True)
        self.message_user(request, f"Approved {updated} posts")
    approve_posts.short_description = "Approve selected posts"

    def get_queryset(self, request):
        """Optimize query."""
        qs = super().get_queryset(request)
        return qs.select_related('group')
