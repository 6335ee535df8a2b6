from rest_framework import serializers

from apps.accounts.services import placeholder_profile
from . import roles
from .group_settings import SETTING_DEFAULTS
from .models import Group, GroupPost, GroupPostComment


def _profile_for(context, user_id):
    profiles = context.get('profiles') or {}
    return profiles.get(str(user_id)) or placeholder_profile(user_id)


class UserSummarySerializer(serializers.Serializer):
    """Directory profile of a user mentioned in a group response."""

    user_id = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    avatar = serializers.CharField(read_only=True, allow_null=True)
    bio = serializers.CharField(read_only=True, allow_null=True)


class GroupListSerializer(serializers.ModelSerializer):
    """
    Group as shown in lists and search results.

    Expects ``profiles`` (user id -> UserProfile) in the serializer context.
    """

    creator_name = serializers.SerializerMethodField()
    creator_avatar = serializers.SerializerMethodField()
    members_count = serializers.SerializerMethodField()
    posts_count = serializers.SerializerMethodField()
    settings = serializers.SerializerMethodField()

    class Meta:
        model = Group
        fields = [
            'id',
            'name',
            'description',
            'category',
            'rules',
            'image',
            'creator_id',
            'creator_name',
            'creator_avatar',
            'is_private',
            'settings',
            'members_count',
            'posts_count',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_creator_name(self, obj):
        return _profile_for(self.context, obj.creator_id).name

    def get_creator_avatar(self, obj):
        return _profile_for(self.context, obj.creator_id).avatar

    def get_members_count(self, obj):
        return len(obj.memberships.all())

    def get_posts_count(self, obj):
        count = getattr(obj, 'posts_count', None)
        if count is None:
            count = obj.posts.filter(is_approved=True).count()
        return count

    def get_settings(self, obj):
        return obj.effective_settings.as_dict()


class GroupDetailSerializer(GroupListSerializer):
    """Full group, with member and pending request details."""

    members = serializers.SerializerMethodField()
    pending_requests = serializers.SerializerMethodField()
    members_details = serializers.SerializerMethodField()
    pending_requests_details = serializers.SerializerMethodField()
    allow_member_posts = serializers.SerializerMethodField()
    require_approval = serializers.SerializerMethodField()
    allow_invites = serializers.SerializerMethodField()
    viewer_status = serializers.SerializerMethodField()

    class Meta(GroupListSerializer.Meta):
        fields = GroupListSerializer.Meta.fields + [
            'members',
            'pending_requests',
            'members_details',
            'pending_requests_details',
            'allow_member_posts',
            'require_approval',
            'allow_invites',
            'viewer_status',
            'version',
        ]
        read_only_fields = fields

    def get_members(self, obj):
        return [
            {'user_id': m.user_id, 'role': m.role, 'joined_at': m.joined_at}
            for m in obj.memberships.all()
        ]

    def get_pending_requests(self, obj):
        return [
            {'user_id': r.user_id, 'requested_at': r.requested_at}
            for r in obj.pending_requests.all()
        ]

    def get_members_details(self, obj):
        details = []
        for membership in obj.memberships.all():
            profile = _profile_for(self.context, membership.user_id)
            details.append({
                'user_id': membership.user_id,
                'name': profile.name,
                'avatar': profile.avatar,
                'bio': profile.bio,
                'role': membership.role,
                'joined_at': membership.joined_at,
            })
        return details

    def get_pending_requests_details(self, obj):
        details = []
        for join_request in obj.pending_requests.all():
            profile = _profile_for(self.context, join_request.user_id)
            details.append({
                'user_id': join_request.user_id,
                'name': profile.name,
                'avatar': profile.avatar,
                'bio': profile.bio,
                'requested_at': join_request.requested_at,
            })
        return details

    def get_allow_member_posts(self, obj):
        return obj.effective_settings.allow_member_posts

    def get_require_approval(self, obj):
        return obj.effective_settings.require_approval

    def get_allow_invites(self, obj):
        return obj.effective_settings.allow_invites

    def get_viewer_status(self, obj):
        return roles.viewer_status(obj, self.context.get('viewer_id'))


class GroupWriteSerializer(serializers.Serializer):
    """
    Input for creating or updating a group.

    Setting flags may be sent flat or inside ``settings``; flat values win.
    Required fields are enforced by the services so every error shares the
    same response shape.
    """

    name = serializers.CharField(required=False, allow_blank=True, max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, max_length=500)
    category = serializers.CharField(required=False, allow_blank=True, max_length=50)
    rules = serializers.CharField(required=False, allow_blank=True, max_length=1000)
    is_private = serializers.BooleanField(required=False, allow_null=True)
    allow_member_posts = serializers.BooleanField(required=False, allow_null=True)
    require_approval = serializers.BooleanField(required=False, allow_null=True)
    allow_invites = serializers.BooleanField(required=False, allow_null=True)
    settings = serializers.DictField(required=False)
    image = serializers.FileField(required=False, allow_null=True)

    def validate(self, attrs):
        nested = attrs.pop('settings', None) or {}
        for key in SETTING_DEFAULTS:
            if attrs.get(key) is None and nested.get(key) is not None:
                attrs[key] = serializers.BooleanField().to_internal_value(nested[key])
        return attrs


class GroupPostCommentSerializer(serializers.ModelSerializer):
    """Comment on a group post."""

    class Meta:
        model = GroupPostComment
        fields = ['id', 'user_id', 'user_name', 'user_avatar', 'text', 'created_at']
        read_only_fields = fields


class GroupPostSerializer(serializers.ModelSerializer):
    """
    Group post as seen by one viewer.

    Reads the ``author`` and ``can_*`` attributes set by the visibility
    service; posts that were not decorated get conservative defaults.
    """

    group_id = serializers.UUIDField(read_only=True)
    author = serializers.SerializerMethodField()
    likes = serializers.SerializerMethodField()
    likes_count = serializers.SerializerMethodField()
    comments = serializers.SerializerMethodField()
    comments_count = serializers.SerializerMethodField()
    is_pending = serializers.BooleanField(read_only=True)
    can_approve = serializers.SerializerMethodField()
    can_edit = serializers.SerializerMethodField()
    can_delete = serializers.SerializerMethodField()

    class Meta:
        model = GroupPost
        fields = [
            'id',
            'group_id',
            'user_id',
            'author',
            'title',
            'description',
            'ingredients',
            'instructions',
            'category',
            'meat_type',
            'prep_time',
            'servings',
            'image',
            'video',
            'media_type',
            'is_approved',
            'is_pending',
            'can_approve',
            'can_edit',
            'can_delete',
            'likes',
            'likes_count',
            'comments',
            'comments_count',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_author(self, obj):
        profile = getattr(obj, 'author', None) or placeholder_profile(obj.user_id)
        return UserSummarySerializer(profile).data

    def get_likes(self, obj):
        return [like.user_id for like in obj.likes.all()]

    def get_likes_count(self, obj):
        return len(obj.likes.all())

    def get_comments(self, obj):
        return GroupPostCommentSerializer(obj.comments.all(), many=True).data

    def get_comments_count(self, obj):
        return len(obj.comments.all())

    def get_can_approve(self, obj):
        return getattr(obj, 'can_approve', False)

    def get_can_edit(self, obj):
        return getattr(obj, 'can_edit', False)

    def get_can_delete(self, obj):
        return getattr(obj, 'can_delete', False)


class FeedPostSerializer(GroupPostSerializer):
    """Group post in a member's cross-group feed."""

    group_name = serializers.CharField(read_only=True)
    post_source = serializers.CharField(read_only=True)

    class Meta(GroupPostSerializer.Meta):
        fields = GroupPostSerializer.Meta.fields + ['group_name', 'post_source']
        read_only_fields = fields


class GroupPostWriteSerializer(serializers.Serializer):
    """Input for creating or editing a group post."""

    # Length is checked by the post services, after membership
    title = serializers.CharField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    ingredients = serializers.CharField(required=False, allow_blank=True)
    instructions = serializers.CharField(required=False, allow_blank=True)
    category = serializers.CharField(required=False, allow_blank=True, max_length=50)
    meat_type = serializers.CharField(required=False, allow_blank=True, max_length=50)
    # Kept as text; non-numeric values fall back to defaults in the service
    prep_time = serializers.CharField(required=False, allow_blank=True)
    servings = serializers.CharField(required=False, allow_blank=True)
    image = serializers.FileField(required=False, allow_null=True)
    video = serializers.FileField(required=False, allow_null=True)


class UpdateMemberRoleSerializer(serializers.Serializer):
    """Serializer for updating member role."""

    role = serializers.CharField(required=True)


class GroupPostCommentWriteSerializer(serializers.Serializer):
    """Input for commenting on a group post."""

    text = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    user_name = serializers.CharField(required=False, allow_blank=True, max_length=150)


class JoinRequestActionSerializer(serializers.Serializer):
    """Decision on a pending join request."""

    action = serializers.CharField(required=False, allow_blank=True)
