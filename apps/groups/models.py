from django.db import models
from django.utils.functional import cached_property
import uuid

from apps.groups.group_settings import GroupSettings, resolve_group_settings
from apps.groups.identity import MAX_USER_ID_LENGTH


class GroupRole(models.TextChoices):
    ADMIN = 'admin', 'Admin'
    MEMBER = 'member', 'Member'
    # Rows imported from the old store may still say 'owner'
    OWNER = 'owner', 'Owner (legacy)'


ADMIN_ROLES = frozenset({GroupRole.ADMIN, GroupRole.OWNER})


class MediaType(models.TextChoices):
    NONE = 'none', 'None'
    IMAGE = 'image', 'Image'
    VIDEO = 'video', 'Video'


class Group(models.Model):
    """Recipe sharing community with members, join requests and posting rules."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True)
    category = models.CharField(max_length=50, default='General')
    rules = models.CharField(max_length=1000, blank=True)
    image = models.FileField(upload_to='groups/', blank=True)

    creator_id = models.CharField(max_length=MAX_USER_ID_LENGTH, db_index=True, editable=False)
    is_private = models.BooleanField(default=False)

    settings = models.JSONField(default=dict, blank=True)
    # Legacy flat flags, read only as a fallback for missing settings keys
    allow_member_posts = models.BooleanField(null=True, blank=True)
    require_approval = models.BooleanField(null=True, blank=True)
    allow_invites = models.BooleanField(null=True, blank=True)

    version = models.PositiveIntegerField(default=0, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'groups'
        indexes = [
            models.Index(fields=['creator_id', 'created_at']),
            models.Index(fields=['is_private', 'created_at']),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return self.name

    @cached_property
    def effective_settings(self) -> GroupSettings:
        return resolve_group_settings(self)

    def apply_settings(self, **flags):
        """Write flags to both the settings JSON and the legacy columns."""
        stored = dict(self.settings) if isinstance(self.settings, dict) else {}
        for key, value in flags.items():
            if value is None:
                continue
            stored[key] = bool(value)
            setattr(self, key, bool(value))
        self.settings = stored
        self.__dict__.pop('effective_settings', None)

    def bump_version(self, update_fields=None):
        """Persist a mutation of the group aggregate."""
        self.version += 1
        fields = {'version', 'updated_at'}
        if update_fields:
            fields.update(update_fields)
        self.save(update_fields=sorted(fields))


class GroupMembership(models.Model):
    """A user's membership in a group."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='memberships')
    user_id = models.CharField(max_length=MAX_USER_ID_LENGTH)
    role = models.CharField(max_length=20, choices=GroupRole.choices, default=GroupRole.MEMBER)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'group_memberships'
        unique_together = [['group', 'user_id']]
        indexes = [
            models.Index(fields=['user_id', 'joined_at']),
        ]
        ordering = ['joined_at']

    def __str__(self):
        return f"{self.user_id} in {self.group.name} ({self.role})"


class GroupJoinRequest(models.Model):
    """A pending request to join a group."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='pending_requests')
    user_id = models.CharField(max_length=MAX_USER_ID_LENGTH)
    requested_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'group_join_requests'
        unique_together = [['group', 'user_id']]
        ordering = ['requested_at']

    def __str__(self):
        return f"{self.user_id} -> {self.group.name}"


class GroupPost(models.Model):
    """Recipe posted inside a group."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='posts')
    user_id = models.CharField(max_length=MAX_USER_ID_LENGTH, db_index=True)

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    ingredients = models.TextField(blank=True)
    instructions = models.TextField(blank=True)
    category = models.CharField(max_length=50, default='General')
    meat_type = models.CharField(max_length=50, default='Mixed')
    prep_time = models.PositiveIntegerField(default=0)
    servings = models.PositiveIntegerField(default=1)

    image = models.FileField(upload_to='group_posts/', blank=True)
    video = models.FileField(upload_to='group_posts/videos/', blank=True)
    media_type = models.CharField(max_length=10, choices=MediaType.choices, default=MediaType.NONE)

    is_approved = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'group_posts'
        indexes = [
            models.Index(fields=['group', 'is_approved', 'created_at']),
            models.Index(fields=['group', 'user_id']),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} ({self.group_id})"

    @property
    def is_pending(self):
        return not self.is_approved


class GroupPostLike(models.Model):
    """One user's like on a group post."""

    id = models.BigAutoField(primary_key=True)
    post = models.ForeignKey(GroupPost, on_delete=models.CASCADE, related_name='likes')
    user_id = models.CharField(max_length=MAX_USER_ID_LENGTH)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'group_post_likes'
        unique_together = [['post', 'user_id']]
        ordering = ['created_at', 'id']


class GroupPostComment(models.Model):
    """Comment on a group post."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    post = models.ForeignKey(GroupPost, on_delete=models.CASCADE, related_name='comments')
    user_id = models.CharField(max_length=MAX_USER_ID_LENGTH)
    user_name = models.CharField(max_length=150)
    user_avatar = models.CharField(max_length=500, blank=True)
    text = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'group_post_comments'
        ordering = ['created_at']

    def __str__(self):
        return f"{self.user_name}: {self.text[:30]}"
