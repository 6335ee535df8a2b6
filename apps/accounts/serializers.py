from rest_framework import serializers
from .models import User


class UserProfileSerializer(serializers.ModelSerializer):
    """Public profile shown to other users."""

    full_name = serializers.SerializerMethodField()
    followers_count = serializers.SerializerMethodField()
    following_count = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id',
            'full_name',
            'email',
            'bio',
            'avatar',
            'followers_count',
            'following_count',
            'created_at',
        ]
        read_only_fields = fields

    def get_full_name(self, obj):
        return obj.get_display_name()

    def get_followers_count(self, obj):
        return len(obj.followers or [])

    def get_following_count(self, obj):
        return len(obj.following or [])
