import logging

from django.db import InterfaceError, OperationalError
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .serializers import (
    FeedPostSerializer,
    GroupDetailSerializer,
    GroupListSerializer,
    GroupPostCommentSerializer,
    GroupPostCommentWriteSerializer,
    GroupPostSerializer,
    GroupPostWriteSerializer,
    GroupWriteSerializer,
    JoinRequestActionSerializer,
    UpdateMemberRoleSerializer,
)

from apps.groups.services import (
    create_group,
    get_group_by_id,
    list_groups,
    search_groups,
    get_group_profiles,
    update_group,
    delete_group,
    request_to_join,
    cancel_join_request,
    handle_join_request,
    leave_group,
    remove_member,
    get_group_members,
    update_member_role,
    list_group_posts,
    get_group_post,
    list_member_feed,
    create_group_post,
    update_group_post,
    delete_group_post,
    approve_group_post,
    reject_group_post,
    like_post,
    unlike_post,
    add_comment,
    delete_comment,
    # Exceptions
    GroupsServiceError,
)

logger = logging.getLogger(__name__)

TRUE_VALUES = ('1', 'true', 'yes', 'on')

JOIN_ACTION_MESSAGES = {
    'approve': 'Request approved',
    'reject': 'Request rejected',
}


def acting_user_id(request, *fields):
    """
    Id of the user performing the request.

    Looks at the given body fields, then the same query parameters, then
    falls back to the authenticated user. Returns None if nothing matches.
    """
    fields = fields or ('user_id',)
    data = request.data if hasattr(request.data, 'get') else {}
    for source in (data, request.query_params):
        for field in fields:
            value = source.get(field)
            if value not in (None, ''):
                return value

    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return user.id
    return None


class ServiceErrorMixin:
    """Translate service and database errors into ``{'error': ...}`` responses."""

    def handle_exception(self, exc):
        if isinstance(exc, GroupsServiceError):
            return Response({'error': str(exc)}, status=exc.status_code)
        if isinstance(exc, (OperationalError, InterfaceError)):
            logger.error("Database unavailable: %s", exc)
            return Response(
                {'error': 'Database not available'},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return super().handle_exception(exc)


class GroupViewSet(ServiceErrorMixin, viewsets.ViewSet):
    """
    ViewSet for groups, membership and the join workflow.

    All business logic is handled by services.
    Views are thin HTTP handlers only.

    list: Public groups plus private groups the user belongs to
    create: Create a new group
    retrieve: Get a group with member and request details
    update: Update a group (creator or admin)
    partial_update: Partially update a group (creator or admin)
    destroy: Delete a group and its posts (creator only)
    """

    permission_classes = [AllowAny]

    def _detail(self, request, group):
        profiles = get_group_profiles([group], include_members=True)
        return GroupDetailSerializer(
            group,
            context={'request': request, 'profiles': profiles, 'viewer_id': acting_user_id(request)},
        ).data

    def _list(self, request, groups):
        groups = list(groups)
        profiles = get_group_profiles(groups)
        return GroupListSerializer(
            groups, many=True, context={'request': request, 'profiles': profiles}
        ).data

    @extend_schema(
        parameters=[OpenApiParameter('user_id', str, description="Viewer; private groups they belong to are included")],
        responses={200: GroupListSerializer(many=True)},
        tags=['groups'],
    )
    def list(self, request):
        groups = list_groups(user_id=acting_user_id(request))
        return Response(self._list(request, groups))

    @extend_schema(request=GroupWriteSerializer, responses={201: GroupDetailSerializer}, tags=['groups'])
    def create(self, request):
        """Create a new group; the creator becomes its first admin."""
        serializer = GroupWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        group = create_group(
            name=data.get('name', ''),
            creator_id=acting_user_id(request, 'creator_id'),
            description=data.get('description', ''),
            category=data.get('category', ''),
            rules=data.get('rules', ''),
            is_private=bool(data.get('is_private')),
            allow_member_posts=data.get('allow_member_posts') is not False,
            require_approval=bool(data.get('require_approval')),
            allow_invites=data.get('allow_invites') is not False,
            image=data.get('image'),
        )
        return Response(self._detail(request, group), status=status.HTTP_201_CREATED)

    @extend_schema(responses={200: GroupDetailSerializer}, tags=['groups'])
    def retrieve(self, request, pk=None):
        group = get_group_by_id(group_id=pk)
        return Response(self._detail(request, group))

    @extend_schema(request=GroupWriteSerializer, responses={200: GroupDetailSerializer}, tags=['groups'])
    def update(self, request, pk=None):
        """Update the provided fields; requires ``updated_by`` to be creator or admin."""
        serializer = GroupWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        group = update_group(
            group_id=pk,
            updated_by=acting_user_id(request, 'updated_by', 'user_id'),
            name=data.get('name'),
            description=data.get('description'),
            category=data.get('category'),
            rules=data.get('rules'),
            is_private=data.get('is_private'),
            allow_member_posts=data.get('allow_member_posts'),
            require_approval=data.get('require_approval'),
            allow_invites=data.get('allow_invites'),
            image=data.get('image'),
        )
        return Response(self._detail(request, group))

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    @extend_schema(tags=['groups'])
    def destroy(self, request, pk=None):
        delete_group(group_id=pk, user_id=acting_user_id(request))
        return Response({'message': 'Group deleted successfully'})

    @extend_schema(
        parameters=[
            OpenApiParameter('q', str, required=True),
            OpenApiParameter('user_id', str),
            OpenApiParameter('include_private', bool),
        ],
        responses={200: GroupListSerializer(many=True)},
        tags=['groups'],
    )
    @action(detail=False, methods=['get'])
    def search(self, request):
        """Search groups by name, description or category."""
        include_private = request.query_params.get('include_private', '').lower() in TRUE_VALUES
        groups = search_groups(
            query=request.query_params.get('q', ''),
            user_id=acting_user_id(request),
            include_private=include_private,
        )
        return Response(self._list(request, groups))

    @extend_schema(
        parameters=[OpenApiParameter('user_id', str, required=True)],
        responses={200: FeedPostSerializer(many=True)},
        tags=['group posts'],
    )
    @action(detail=False, methods=['get'], url_path='my-posts')
    def my_posts(self, request):
        """Approved posts from every group the user belongs to."""
        posts = list_member_feed(user_id=acting_user_id(request))
        serializer = FeedPostSerializer(posts, many=True, context={'request': request})
        return Response(serializer.data)

    @extend_schema(tags=['membership'])
    @action(detail=True, methods=['post', 'delete'])
    def join(self, request, pk=None):
        """POST asks to join the group, DELETE withdraws a pending request."""
        user_id = acting_user_id(request)

        if request.method == 'DELETE':
            cancel_join_request(group_id=pk, user_id=user_id)
            return Response({'message': 'Join request cancelled'})

        result = request_to_join(group_id=pk, user_id=user_id)
        return Response({
            'status': result.status,
            'message': result.message,
            'group': self._detail(request, result.group),
        })

    @extend_schema(request=JoinRequestActionSerializer, tags=['membership'])
    @action(detail=True, methods=['put'], url_path=r'requests/(?P<user_id>[^/.]+)')
    def requests(self, request, pk=None, user_id=None):
        """Approve or reject a pending join request (creator or admin)."""
        serializer = JoinRequestActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        join_action = serializer.validated_data.get('action', '')

        group = handle_join_request(
            group_id=pk,
            user_id=user_id,
            admin_id=acting_user_id(request, 'admin_id'),
            action=join_action,
        )
        return Response({
            'message': JOIN_ACTION_MESSAGES[join_action],
            'group': self._detail(request, group),
        })

    @extend_schema(tags=['membership'])
    @action(detail=True, methods=['delete'], url_path=r'leave/(?P<user_id>[^/.]+)')
    def leave(self, request, pk=None, user_id=None):
        leave_group(group_id=pk, user_id=user_id)
        return Response({'message': 'Left group successfully'})

    @extend_schema(tags=['membership'])
    @action(detail=True, methods=['get'])
    def members(self, request, pk=None):
        """Members sorted by role, then join date."""
        return Response(get_group_members(group_id=pk))

    @extend_schema(tags=['membership'])
    @action(detail=True, methods=['delete'], url_path=r'members/(?P<member_user_id>[^/.]+)')
    def remove_member(self, request, pk=None, member_user_id=None):
        """Remove a member from the group (creator or admin)."""
        remove_member(
            group_id=pk,
            member_user_id=member_user_id,
            admin_id=acting_user_id(request, 'admin_id'),
        )
        return Response({'message': 'Member removed successfully'})

    @extend_schema(request=UpdateMemberRoleSerializer, tags=['membership'])
    @action(detail=True, methods=['put'], url_path=r'members/(?P<member_user_id>[^/.]+)/role')
    def member_role(self, request, pk=None, member_user_id=None):
        """Promote or demote a member (creator only)."""
        serializer = UpdateMemberRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        membership = update_member_role(
            group_id=pk,
            member_user_id=member_user_id,
            new_role=serializer.validated_data['role'],
            admin_id=acting_user_id(request, 'admin_id'),
        )
        return Response({
            'message': 'Role updated successfully',
            'user_id': membership.user_id,
            'role': membership.role,
        })


class GroupPostViewSet(ServiceErrorMixin, viewsets.ViewSet):
    """
    ViewSet for posts inside a group.

    list: Posts visible to ``user_id``
    create: Post a recipe (members only; may need approval)
    retrieve: One post, if visible to ``user_id``
    update: Edit a post (author, admin or creator)
    partial_update: Same as update
    destroy: Delete a post (author, admin or creator)
    """

    permission_classes = [AllowAny]

    def _post_data(self, request, group_id, post_id, user_id):
        post = get_group_post(group_id=group_id, post_id=post_id, user_id=user_id)
        return GroupPostSerializer(post, context={'request': request}).data

    @extend_schema(
        parameters=[OpenApiParameter('user_id', str)],
        responses={200: GroupPostSerializer(many=True)},
        tags=['group posts'],
    )
    def list(self, request, group_id=None):
        posts = list_group_posts(group_id=group_id, user_id=acting_user_id(request))
        serializer = GroupPostSerializer(posts, many=True, context={'request': request})
        return Response(serializer.data)

    @extend_schema(request=GroupPostWriteSerializer, tags=['group posts'])
    def create(self, request, group_id=None):
        serializer = GroupPostWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user_id = acting_user_id(request)

        result = create_group_post(
            group_id=group_id,
            user_id=user_id,
            **serializer.validated_data,
        )
        return Response(
            {
                'message': result.message,
                'post': self._post_data(request, group_id, result.post.id, user_id),
            },
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        parameters=[OpenApiParameter('user_id', str)],
        responses={200: GroupPostSerializer},
        tags=['group posts'],
    )
    def retrieve(self, request, group_id=None, pk=None):
        return Response(self._post_data(request, group_id, pk, acting_user_id(request)))

    @extend_schema(request=GroupPostWriteSerializer, responses={200: GroupPostSerializer}, tags=['group posts'])
    def update(self, request, group_id=None, pk=None):
        serializer = GroupPostWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user_id = acting_user_id(request)

        update_group_post(
            group_id=group_id,
            post_id=pk,
            user_id=user_id,
            **serializer.validated_data,
        )
        return Response(self._post_data(request, group_id, pk, user_id))

    def partial_update(self, request, group_id=None, pk=None):
        return self.update(request, group_id=group_id, pk=pk)

    @extend_schema(tags=['group posts'])
    def destroy(self, request, group_id=None, pk=None):
        delete_group_post(group_id=group_id, post_id=pk, user_id=acting_user_id(request))
        return Response({'message': 'Post deleted successfully'})

    @extend_schema(tags=['moderation'])
    @action(detail=True, methods=['post'])
    def approve(self, request, group_id=None, pk=None):
        """Approve a pending post (creator or admin)."""
        admin_id = acting_user_id(request, 'admin_id', 'user_id')
        approve_group_post(group_id=group_id, post_id=pk, admin_id=admin_id)
        return Response({
            'message': 'Post approved',
            'post': self._post_data(request, group_id, pk, admin_id),
        })

    @extend_schema(tags=['moderation'])
    @action(detail=True, methods=['post'])
    def reject(self, request, group_id=None, pk=None):
        """Reject a pending post (creator or admin). The post is deleted."""
        reject_group_post(
            group_id=group_id,
            post_id=pk,
            admin_id=acting_user_id(request, 'admin_id', 'user_id'),
        )
        return Response({'message': 'Post rejected'})

    @extend_schema(tags=['group posts'])
    @action(detail=True, methods=['post', 'delete'])
    def like(self, request, group_id=None, pk=None):
        """POST likes the post, DELETE removes the like."""
        user_id = acting_user_id(request)
        if request.method == 'DELETE':
            likes = unlike_post(group_id=group_id, post_id=pk, user_id=user_id)
        else:
            likes = like_post(group_id=group_id, post_id=pk, user_id=user_id)
        return Response({'likes': likes, 'likes_count': len(likes)})

    @extend_schema(
        request=GroupPostCommentWriteSerializer,
        responses={201: GroupPostCommentSerializer},
        tags=['group posts'],
    )
    @action(detail=True, methods=['post'])
    def comments(self, request, group_id=None, pk=None):
        serializer = GroupPostCommentWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        comment = add_comment(
            group_id=group_id,
            post_id=pk,
            user_id=acting_user_id(request),
            text=serializer.validated_data.get('text', ''),
            user_name=serializer.validated_data.get('user_name', ''),
        )
        return Response(
            {
                'message': 'Comment added',
                'comment': GroupPostCommentSerializer(comment).data,
            },
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(tags=['group posts'])
    @action(detail=True, methods=['delete'], url_path=r'comments/(?P<comment_id>[^/.]+)')
    def delete_comment(self, request, group_id=None, pk=None, comment_id=None):
        delete_comment(
            group_id=group_id,
            post_id=pk,
            comment_id=comment_id,
            user_id=acting_user_id(request),
        )
        return Response({'message': 'Comment deleted'})
