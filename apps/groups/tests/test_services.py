"""
Service layer unit tests for groups app.

Tests cover:
- Group creation, listing, search, update and deletion
- Join workflow state transitions
- Post visibility and approval
- Likes, comments and best-effort notifications
"""

import pytest
from unittest.mock import patch
from uuid import uuid4

from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import DatabaseError, OperationalError, connection

from apps.accounts.services import placeholder_profile
from apps.groups import roles
from apps.groups.models import (
    Group,
    GroupJoinRequest,
    GroupMembership,
    GroupPost,
    GroupPostComment,
    GroupPostLike,
    GroupRole,
    MediaType,
)
from apps.groups.services import (
    JoinStatus,
    create_group,
    get_group_by_id,
    list_groups,
    search_groups,
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
)
from apps.groups.services.exceptions import (
    AlreadyLikedError,
    AlreadyMemberError,
    CannotChangeOwnerRoleError,
    CannotRemoveOwnerError,
    CannotRemoveSelfError,
    CommentNotFoundError,
    DuplicateJoinRequestError,
    GroupNotFoundError,
    InsufficientPermissionsError,
    InvalidGroupDataError,
    InvalidIdentifierError,
    JoinRequestNotFoundError,
    NoPendingRequestError,
    NotLikedError,
    NotMemberError,
    OwnerCannotLeaveError,
    PostNotFoundError,
    PostNotInGroupError,
    PostNotPendingError,
    ServiceUnavailableError,
)
from apps.notifications.models import Notification, NotificationType

from .conftest import add_member, make_post, make_user


# =============================================================================
# Group Management Service Tests
# =============================================================================

@pytest.mark.django_db
class TestGroupManagement:
    """Tests for group_management.py service functions."""

    def test_create_group_adds_creator_as_admin(self, creator):
        group = create_group(name="  Bakers  ", creator_id=creator.id, is_private=True)

        assert group.name == "Bakers"
        assert group.category == "General"
        assert group.creator_id == str(creator.id)
        membership = GroupMembership.objects.get(group=group)
        assert membership.user_id == str(creator.id)
        assert membership.role == GroupRole.ADMIN

    def test_create_group_requires_name_and_creator(self, creator):
        with pytest.raises(InvalidGroupDataError):
            create_group(name="   ", creator_id=creator.id)
        with pytest.raises(InvalidGroupDataError):
            create_group(name="Bakers", creator_id=None)
        assert not Group.objects.exists()

    def test_public_group_never_requires_approval(self, creator):
        group = create_group(name="Open", creator_id=creator.id, require_approval=True)

        assert group.effective_settings.require_approval is False
        assert group.require_approval is False

    def test_private_group_keeps_requested_settings(self, creator):
        group = create_group(
            name="Closed",
            creator_id=creator.id,
            is_private=True,
            require_approval=True,
            allow_member_posts=False,
        )

        assert group.effective_settings.require_approval is True
        assert group.effective_settings.allow_member_posts is False
        assert group.effective_settings.allow_invites is True
        assert group.settings['require_approval'] is True

    def test_get_group_not_found_and_invalid_id(self):
        with pytest.raises(GroupNotFoundError):
            get_group_by_id(group_id=uuid4())
        with pytest.raises(InvalidIdentifierError):
            get_group_by_id(group_id='not-a-uuid')

    def test_database_outage_raises_service_unavailable(self, public_group):
        with patch.object(Group.objects, 'prefetch_related', side_effect=OperationalError("down")):
            with pytest.raises(ServiceUnavailableError):
                get_group_by_id(group_id=public_group.id)

    def test_list_hides_private_groups_from_non_members(
        self, public_group, private_group, member_user, outsider
    ):
        add_member(private_group, member_user)

        assert {g.id for g in list_groups(user_id=outsider.id)} == {public_group.id}
        assert {g.id for g in list_groups(user_id=member_user.id)} == {
            public_group.id, private_group.id,
        }
        assert {g.id for g in list_groups()} == {public_group.id}

    def test_search_matches_name_description_or_category(self, public_group, private_group, outsider):
        assert [g.id for g in search_groups(query='weeknight')] == [public_group.id]
        assert [g.id for g in search_groups(query='DINNER')] == [public_group.id]
        assert search_groups(query='bread', user_id=outsider.id) == []

        found = search_groups(query='bread', user_id=outsider.id, include_private=True)
        assert [g.id for g in found] == [private_group.id]

    def test_search_counts_approved_posts_only(self, public_group_with_member, member_user):
        make_post(public_group_with_member, member_user, approved=True)
        make_post(public_group_with_member, member_user, approved=False)

        [group] = search_groups(query='Weeknight')
        assert group.posts_count == 1

    def test_search_requires_query(self):
        with pytest.raises(InvalidGroupDataError):
            search_groups(query='  ')

    @pytest.mark.parametrize('field', ['name', 'is_private'])
    def test_update_requires_creator_or_admin(self, group_with_members, member_user, field):
        with pytest.raises(InsufficientPermissionsError):
            update_group(group_id=group_with_members.id, updated_by=member_user.id, **{field: 'x'})

    def test_admin_can_update_and_version_increases(self, group_with_members, admin_user):
        before = group_with_members.version

        group = update_group(
            group_id=group_with_members.id,
            updated_by=admin_user.id,
            name='Sourdough Bakers',
            rules='Be kind',
        )

        assert group.name == 'Sourdough Bakers'
        assert group.rules == 'Be kind'
        assert group.description == 'Bread and pastry'
        assert group.version > before

    def test_making_group_public_forces_require_approval_off(self, private_group, creator):
        group = update_group(
            group_id=private_group.id,
            updated_by=creator.id,
            is_private=False,
            require_approval=True,
        )

        group.refresh_from_db()
        assert group.is_private is False
        assert group.settings['require_approval'] is False
        assert group.require_approval is False
        assert Group.objects.get(id=group.id).effective_settings.require_approval is False

    def test_require_approval_on_public_group_is_stored_false(self, public_group, creator):
        group = update_group(group_id=public_group.id, updated_by=creator.id, require_approval=True)
        assert group.effective_settings.require_approval is False

    def test_partial_update_keeps_other_settings(self, private_group, creator):
        group = update_group(group_id=private_group.id, updated_by=creator.id, allow_invites=False)

        assert group.effective_settings.allow_invites is False
        assert group.effective_settings.require_approval is True
        assert group.is_private is True

    def test_image_cleanup_failure_does_not_fail_update(self, private_group, creator, side_channel, settings, tmp_path):
        settings.MEDIA_ROOT = str(tmp_path)
        update_group(
            group_id=private_group.id,
            updated_by=creator.id,
            image=SimpleUploadedFile('old.png', b'old', content_type='image/png'),
            side_channel=side_channel,
        )
        side_channel.discard_file.side_effect = OSError("storage down")

        group = update_group(
            group_id=private_group.id,
            updated_by=creator.id,
            image=SimpleUploadedFile('new.png', b'new', content_type='image/png'),
            side_channel=side_channel,
        )

        assert 'new' in group.image.name
        side_channel.discard_file.assert_called_once()

    def test_delete_group_creator_only_and_cascades(self, group_with_members, admin_user, member_user, creator):
        post = make_post(group_with_members, member_user)
        GroupPostLike.objects.create(post=post, user_id=str(admin_user.id))

        with pytest.raises(InsufficientPermissionsError):
            delete_group(group_id=group_with_members.id, user_id=admin_user.id)

        delete_group(group_id=group_with_members.id, user_id=creator.id)

        assert not Group.objects.filter(id=group_with_members.id).exists()
        assert not GroupPost.objects.exists()
        assert not GroupPostLike.objects.exists()
        assert not GroupMembership.objects.exists()


# =============================================================================
# Join Workflow Tests
# =============================================================================

@pytest.mark.django_db
class TestJoinWorkflow:
    """Tests for membership_management.py service functions."""

    def test_public_group_join_is_immediate(self, public_group, outsider, side_channel):
        result = request_to_join(group_id=public_group.id, user_id=outsider.id, side_channel=side_channel)

        assert result.status == JoinStatus.APPROVED
        assert roles.get_role(result.group, outsider.id) == GroupRole.MEMBER
        side_channel.notify.assert_not_called()

    def test_private_group_join_is_pending_and_notifies_creator(
        self, private_group, outsider, creator, side_channel
    ):
        result = request_to_join(group_id=private_group.id, user_id=outsider.id, side_channel=side_channel)

        assert result.status == JoinStatus.PENDING
        assert roles.has_pending_request(result.group, outsider.id)
        assert not roles.is_member(result.group, outsider.id)

        kwargs = side_channel.notify.call_args.kwargs
        assert kwargs['notification_type'] == NotificationType.GROUP_JOIN_REQUEST
        assert kwargs['to_user_id'] == str(creator.id)

    def test_public_group_requiring_approval_is_pending(self, public_group, outsider):
        Group.objects.filter(id=public_group.id).update(settings={'require_approval': True})

        result = request_to_join(group_id=public_group.id, user_id=outsider.id)
        assert result.status == JoinStatus.PENDING

    def test_second_request_conflicts_until_cancelled(self, private_group, outsider):
        request_to_join(group_id=private_group.id, user_id=outsider.id)

        with pytest.raises(DuplicateJoinRequestError):
            request_to_join(group_id=private_group.id, user_id=outsider.id)

        cancel_join_request(group_id=private_group.id, user_id=outsider.id)
        result = request_to_join(group_id=private_group.id, user_id=outsider.id)
        assert result.status == JoinStatus.PENDING

    def test_member_cannot_request_again(self, public_group_with_member, member_user):
        with pytest.raises(AlreadyMemberError):
            request_to_join(group_id=public_group_with_member.id, user_id=member_user.id)

    def test_cancel_without_request(self, private_group, outsider):
        with pytest.raises(NoPendingRequestError):
            cancel_join_request(group_id=private_group.id, user_id=outsider.id)

    def test_join_unknown_group(self, outsider):
        with pytest.raises(GroupNotFoundError):
            request_to_join(group_id=uuid4(), user_id=outsider.id)

    def test_approve_moves_request_to_members(self, private_group, outsider, creator, side_channel):
        request_to_join(group_id=private_group.id, user_id=outsider.id, side_channel=side_channel)
        side_channel.reset_mock()

        group = handle_join_request(
            group_id=private_group.id,
            user_id=outsider.id,
            admin_id=creator.id,
            action='approve',
            side_channel=side_channel,
        )

        assert roles.get_role(group, outsider.id) == GroupRole.MEMBER
        assert not roles.has_pending_request(group, outsider.id)
        kwargs = side_channel.notify.call_args.kwargs
        assert kwargs['notification_type'] == NotificationType.GROUP_REQUEST_APPROVED
        assert kwargs['to_user_id'] == str(outsider.id)

    def test_reject_removes_request_without_membership(self, private_group, outsider, creator, side_channel):
        request_to_join(group_id=private_group.id, user_id=outsider.id)

        group = handle_join_request(
            group_id=private_group.id,
            user_id=outsider.id,
            admin_id=creator.id,
            action='reject',
            side_channel=side_channel,
        )

        assert not roles.is_member(group, outsider.id)
        assert not roles.has_pending_request(group, outsider.id)
        side_channel.notify.assert_not_called()

    def test_only_admins_handle_requests(self, group_with_members, member_user, outsider):
        request_to_join(group_id=group_with_members.id, user_id=outsider.id)

        with pytest.raises(InsufficientPermissionsError):
            handle_join_request(
                group_id=group_with_members.id,
                user_id=outsider.id,
                admin_id=member_user.id,
                action='approve',
            )
        assert GroupJoinRequest.objects.filter(user_id=str(outsider.id)).exists()

    def test_handle_missing_request(self, private_group, outsider, creator):
        with pytest.raises(JoinRequestNotFoundError):
            handle_join_request(
                group_id=private_group.id,
                user_id=outsider.id,
                admin_id=creator.id,
                action='approve',
            )

    def test_handle_unknown_action(self, private_group, outsider, creator):
        with pytest.raises(InvalidGroupDataError):
            handle_join_request(
                group_id=private_group.id,
                user_id=outsider.id,
                admin_id=creator.id,
                action='maybe',
            )

    def test_notification_failure_does_not_fail_join(self, private_group, outsider, side_channel):
        side_channel.notify.side_effect = RuntimeError("notifications down")

        result = request_to_join(group_id=private_group.id, user_id=outsider.id, side_channel=side_channel)

        assert result.status == JoinStatus.PENDING
        assert GroupJoinRequest.objects.filter(user_id=str(outsider.id)).exists()

    def test_default_side_channel_stores_notification(self, private_group, outsider, creator):
        request_to_join(group_id=private_group.id, user_id=outsider.id)

        notification = Notification.objects.get(to_user_id=str(creator.id))
        assert notification.type == NotificationType.GROUP_JOIN_REQUEST
        assert notification.group_name == 'Bakers'
        assert notification.from_user_name == 'Outsider'

    def test_leave_group(self, public_group_with_member, member_user):
        leave_group(group_id=public_group_with_member.id, user_id=member_user.id)
        assert not GroupMembership.objects.filter(user_id=str(member_user.id)).exists()

        with pytest.raises(NotMemberError):
            leave_group(group_id=public_group_with_member.id, user_id=member_user.id)

    def test_creator_cannot_leave(self, private_group, creator):
        with pytest.raises(OwnerCannotLeaveError):
            leave_group(group_id=private_group.id, user_id=creator.id)
        assert roles.is_member(get_group_by_id(group_id=private_group.id), creator.id)

    def test_remove_member_rules(self, group_with_members, creator, admin_user, member_user):
        with pytest.raises(InsufficientPermissionsError):
            remove_member(group_id=group_with_members.id, member_user_id=admin_user.id, admin_id=member_user.id)
        with pytest.raises(CannotRemoveOwnerError):
            remove_member(group_id=group_with_members.id, member_user_id=creator.id, admin_id=admin_user.id)
        with pytest.raises(CannotRemoveSelfError):
            remove_member(group_id=group_with_members.id, member_user_id=admin_user.id, admin_id=admin_user.id)
        with pytest.raises(NotMemberError):
            remove_member(group_id=group_with_members.id, member_user_id='ghost', admin_id=admin_user.id)

        remove_member(group_id=group_with_members.id, member_user_id=member_user.id, admin_id=admin_user.id)
        assert not roles.is_member(get_group_by_id(group_id=group_with_members.id), member_user.id)

    def test_creator_survives_every_leave_and_remove(self, group_with_members, creator, admin_user):
        for attempt in (
            lambda: leave_group(group_id=group_with_members.id, user_id=creator.id),
            lambda: remove_member(group_id=group_with_members.id, member_user_id=creator.id, admin_id=admin_user.id),
            lambda: remove_member(group_id=group_with_members.id, member_user_id=creator.id, admin_id=creator.id),
        ):
            with pytest.raises((OwnerCannotLeaveError, CannotRemoveOwnerError)):
                attempt()

        group = get_group_by_id(group_id=group_with_members.id)
        assert roles.has_moderation_authority(group, creator.id)

    def test_members_sorted_by_role_then_join_date(self, public_group, member_user, admin_user, creator):
        add_member(public_group, member_user)
        add_member(public_group, admin_user, GroupRole.ADMIN)

        members = get_group_members(group_id=public_group.id)

        assert [m['user_id'] for m in members] == [str(creator.id), str(admin_user.id), str(member_user.id)]
        assert members[0]['is_creator'] is True
        assert members[2]['name'] == 'Group Member'

    def test_oversized_user_id_is_rejected(self, private_group):
        with pytest.raises(InvalidGroupDataError):
            request_to_join(group_id=private_group.id, user_id='u' * 65)
        assert not GroupJoinRequest.objects.exists()


@pytest.mark.django_db
class TestRoleManagement:
    """Tests for role_management.py service functions."""

    def test_creator_promotes_member(self, group_with_members, creator, member_user):
        membership = update_member_role(
            group_id=group_with_members.id,
            member_user_id=member_user.id,
            new_role='admin',
            admin_id=creator.id,
        )
        assert membership.role == GroupRole.ADMIN

    def test_admin_cannot_change_roles(self, group_with_members, admin_user, member_user):
        with pytest.raises(InsufficientPermissionsError):
            update_member_role(
                group_id=group_with_members.id,
                member_user_id=member_user.id,
                new_role='admin',
                admin_id=admin_user.id,
            )

    def test_creator_role_is_fixed(self, group_with_members, creator):
        with pytest.raises(CannotChangeOwnerRoleError):
            update_member_role(
                group_id=group_with_members.id,
                member_user_id=creator.id,
                new_role='member',
                admin_id=creator.id,
            )

    def test_invalid_role_and_non_member(self, group_with_members, creator, outsider):
        with pytest.raises(InvalidGroupDataError):
            update_member_role(
                group_id=group_with_members.id,
                member_user_id=outsider.id,
                new_role='owner',
                admin_id=creator.id,
            )
        with pytest.raises(NotMemberError):
            update_member_role(
                group_id=group_with_members.id,
                member_user_id=outsider.id,
                new_role='admin',
                admin_id=creator.id,
            )


# =============================================================================
# Post Visibility and Moderation Tests
# =============================================================================

@pytest.mark.django_db
class TestPostVisibility:
    """Tests for post_visibility.py service functions."""

    def test_private_group_hides_everything_from_non_members(self, group_with_members, member_user, outsider):
        make_post(group_with_members, member_user, approved=True)

        assert list_group_posts(group_id=group_with_members.id, user_id=outsider.id) == []
        assert list_group_posts(group_id=group_with_members.id) == []

    def test_member_sees_approved_and_own_pending(self, group_with_members, member_user, admin_user):
        approved = make_post(group_with_members, admin_user, title='Approved', approved=True)
        own_pending = make_post(group_with_members, member_user, title='Mine', approved=False)
        make_post(group_with_members, admin_user, title='Hidden', approved=False)

        posts = list_group_posts(group_id=group_with_members.id, user_id=member_user.id)

        assert {p.id for p in posts} == {approved.id, own_pending.id}
        mine = next(p for p in posts if p.id == own_pending.id)
        assert mine.is_pending is True
        assert mine.can_approve is False
        assert mine.can_delete is True

    def test_admin_sees_pending_with_can_approve(self, group_with_members, member_user, admin_user):
        pending = make_post(group_with_members, member_user, approved=False)
        approved = make_post(group_with_members, member_user, title='Old', approved=True)

        posts = {p.id: p for p in list_group_posts(group_id=group_with_members.id, user_id=admin_user.id)}

        assert posts[pending.id].is_pending is True
        assert posts[pending.id].can_approve is True
        assert posts[approved.id].can_approve is False
        assert posts[approved.id].can_delete is True

    def test_public_group_non_member_sees_approved_only(self, public_group_with_member, member_user, outsider):
        approved = make_post(public_group_with_member, member_user, approved=True)
        make_post(public_group_with_member, member_user, approved=False)

        posts = list_group_posts(group_id=public_group_with_member.id, user_id=outsider.id)
        assert [p.id for p in posts] == [approved.id]

    def test_posts_newest_first_with_author_profile(self, public_group_with_member, member_user):
        first = make_post(public_group_with_member, member_user, title='First')
        second = make_post(public_group_with_member, member_user, title='Second')

        posts = list_group_posts(group_id=public_group_with_member.id)

        assert [p.id for p in posts] == [second.id, first.id]
        assert posts[0].author.name == 'Group Member'

    def test_unknown_author_degrades_to_placeholder(self, public_group):
        GroupPost.objects.create(group=public_group, user_id='deleted-user', title='Orphan', is_approved=True)

        [post] = list_group_posts(group_id=public_group.id)
        assert post.author.name == 'Unknown User'
        assert post.author.avatar is None

    def test_directory_failure_does_not_fail_list(self, public_group_with_member, member_user):
        make_post(public_group_with_member, member_user)

        with patch('apps.accounts.services.user_directory.User.objects.filter', side_effect=DatabaseError("boom")):
            [post] = list_group_posts(group_id=public_group_with_member.id)

        assert post.author.name == 'Unknown User'

    def test_get_hidden_post_is_not_found(self, group_with_members, member_user, admin_user):
        pending = make_post(group_with_members, admin_user, approved=False)

        with pytest.raises(PostNotFoundError):
            get_group_post(group_id=group_with_members.id, post_id=pending.id, user_id=member_user.id)

        post = get_group_post(group_id=group_with_members.id, post_id=pending.id, user_id=admin_user.id)
        assert post.can_approve is True

    def test_member_feed(self, public_group_with_member, group_with_members, member_user, admin_user, outsider):
        mine = make_post(public_group_with_member, member_user, approved=True)
        theirs = make_post(group_with_members, admin_user, approved=True)
        make_post(group_with_members, admin_user, approved=False)
        other_group = create_group(name='Elsewhere', creator_id=outsider.id)
        make_post(other_group, outsider, approved=True)

        posts = list_member_feed(user_id=member_user.id)

        assert [p.id for p in posts] == [theirs.id, mine.id]
        assert posts[0].group_name == 'Bakers'
        assert posts[0].post_source == 'group'

    def test_member_feed_requires_user(self):
        with pytest.raises(InvalidGroupDataError):
            list_member_feed(user_id=None)


@pytest.mark.django_db
class TestPostManagement:
    """Tests for post_management.py service functions."""

    def test_non_member_cannot_post(self, public_group, outsider):
        with pytest.raises(InsufficientPermissionsError):
            create_group_post(group_id=public_group.id, user_id=outsider.id, title='Soup')

    def test_membership_checked_before_title(self, public_group, outsider):
        with pytest.raises(InsufficientPermissionsError):
            create_group_post(group_id=public_group.id, user_id=outsider.id, title='')

    def test_title_required(self, public_group_with_member, member_user):
        with pytest.raises(InvalidGroupDataError):
            create_group_post(group_id=public_group_with_member.id, user_id=member_user.id, title='  ')

    def test_member_posts_disabled(self, group_with_members, member_user, admin_user):
        group_with_members.apply_settings(allow_member_posts=False)
        group_with_members.save()

        with pytest.raises(InsufficientPermissionsError):
            create_group_post(group_id=group_with_members.id, user_id=member_user.id, title='Rye')

        result = create_group_post(group_id=group_with_members.id, user_id=admin_user.id, title='Rye')
        assert result.post.is_approved is True

    def test_defaults_and_bad_numbers(self, public_group_with_member, member_user):
        result = create_group_post(
            group_id=public_group_with_member.id,
            user_id=member_user.id,
            title='Stew',
            prep_time='soon',
            servings='a few',
        )

        post = result.post
        assert post.category == 'General'
        assert post.meat_type == 'Mixed'
        assert post.prep_time == 0
        assert post.servings == 1
        assert post.media_type == MediaType.NONE
        assert post.is_approved is True
        assert result.message == 'Post created successfully'

        oversized = create_group_post(
            group_id=public_group_with_member.id,
            user_id=member_user.id,
            title='Stew',
            prep_time='99999999999999999999',
            servings=2147483648,
        ).post
        assert oversized.prep_time == 0
        assert oversized.servings == 1

    def test_numbers_are_parsed(self, public_group_with_member, member_user):
        post = create_group_post(
            group_id=public_group_with_member.id,
            user_id=member_user.id,
            title='Stew',
            prep_time='45',
            servings=4,
        ).post
        assert (post.prep_time, post.servings) == (45, 4)

    def test_approval_follows_role_at_creation(self, group_with_members, member_user, admin_user, creator):
        pending = create_group_post(group_id=group_with_members.id, user_id=member_user.id, title='Bread')
        assert pending.post.is_approved is False
        assert pending.message == 'Post submitted for approval'

        update_member_role(
            group_id=group_with_members.id,
            member_user_id=member_user.id,
            new_role='admin',
            admin_id=creator.id,
        )
        promoted = create_group_post(group_id=group_with_members.id, user_id=member_user.id, title='Bread 2')
        assert promoted.post.is_approved is True

        by_admin = create_group_post(group_id=group_with_members.id, user_id=admin_user.id, title='Rolls')
        assert by_admin.post.is_approved is True

        pending.post.refresh_from_db()
        assert pending.post.is_approved is False

    def test_title_length_checked_after_membership(self, public_group_with_member, member_user, outsider):
        with pytest.raises(InsufficientPermissionsError):
            create_group_post(group_id=public_group_with_member.id, user_id=outsider.id, title='T' * 201)
        with pytest.raises(InvalidGroupDataError):
            create_group_post(group_id=public_group_with_member.id, user_id=member_user.id, title='T' * 201)

        post = make_post(public_group_with_member, member_user)
        with pytest.raises(InvalidGroupDataError):
            update_group_post(
                group_id=public_group_with_member.id, post_id=post.id,
                user_id=member_user.id, title='T' * 201,
            )
        assert not GroupPost.objects.filter(title='T' * 201).exists()

    def test_update_post_by_author_keeps_approval(self, group_with_members, member_user):
        post = make_post(group_with_members, member_user, approved=False)

        updated = update_group_post(
            group_id=group_with_members.id,
            post_id=post.id,
            user_id=member_user.id,
            title='Better bread',
            servings='6',
        )

        assert updated.title == 'Better bread'
        assert updated.servings == 6
        assert updated.is_approved is False

    def test_update_post_permissions(self, group_with_members, member_user, admin_user, outsider):
        post = make_post(group_with_members, admin_user)

        with pytest.raises(InsufficientPermissionsError):
            update_group_post(group_id=group_with_members.id, post_id=post.id, user_id=member_user.id, title='x')
        with pytest.raises(InvalidGroupDataError):
            update_group_post(group_id=group_with_members.id, post_id=post.id, user_id=admin_user.id, title=' ')

    def test_delete_post_permissions(self, group_with_members, member_user, admin_user, creator):
        by_admin = make_post(group_with_members, admin_user)
        by_member = make_post(group_with_members, member_user)

        with pytest.raises(InsufficientPermissionsError):
            delete_group_post(group_id=group_with_members.id, post_id=by_admin.id, user_id=member_user.id)

        delete_group_post(group_id=group_with_members.id, post_id=by_member.id, user_id=member_user.id)
        delete_group_post(group_id=group_with_members.id, post_id=by_admin.id, user_id=creator.id)
        assert not GroupPost.objects.exists()

    def test_post_from_another_group(self, group_with_members, public_group_with_member, member_user):
        post = make_post(public_group_with_member, member_user)

        with pytest.raises(PostNotInGroupError):
            delete_group_post(group_id=group_with_members.id, post_id=post.id, user_id=member_user.id)

    def test_approve_and_reject(self, group_with_members, member_user, admin_user):
        first = make_post(group_with_members, member_user, approved=False)
        second = make_post(group_with_members, member_user, approved=False)

        with pytest.raises(InsufficientPermissionsError):
            approve_group_post(group_id=group_with_members.id, post_id=first.id, admin_id=member_user.id)

        approved = approve_group_post(group_id=group_with_members.id, post_id=first.id, admin_id=admin_user.id)
        assert approved.is_approved is True

        with pytest.raises(PostNotPendingError):
            approve_group_post(group_id=group_with_members.id, post_id=first.id, admin_id=admin_user.id)
        with pytest.raises(PostNotPendingError):
            reject_group_post(group_id=group_with_members.id, post_id=first.id, admin_id=admin_user.id)

        reject_group_post(group_id=group_with_members.id, post_id=second.id, admin_id=admin_user.id)
        assert not GroupPost.objects.filter(id=second.id).exists()

    def test_bakers_scenario(self, creator):
        baker = make_user('u2@example.com', 'U Two')
        stranger = make_user('u3@example.com', 'U Three')
        group = create_group(name='Bakers', creator_id=creator.id, is_private=True, require_approval=True)

        assert request_to_join(group_id=group.id, user_id=baker.id).status == JoinStatus.PENDING
        group = handle_join_request(group_id=group.id, user_id=baker.id, admin_id=creator.id, action='approve')
        assert roles.get_role(group, baker.id) == GroupRole.MEMBER

        post = create_group_post(group_id=group.id, user_id=baker.id, title='Bread').post
        assert post.is_approved is False

        [seen] = list_group_posts(group_id=group.id, user_id=creator.id)
        assert seen.id == post.id
        assert seen.is_pending is True
        assert list_group_posts(group_id=group.id, user_id=stranger.id) == []


# =============================================================================
# Likes and Comments Tests
# =============================================================================

@pytest.mark.django_db
class TestPostInteractions:
    """Tests for post_interactions.py service functions."""

    def test_like_twice_conflicts(self, public_group_with_member, member_user, creator, side_channel):
        post = make_post(public_group_with_member, creator)

        likes = like_post(
            group_id=public_group_with_member.id, post_id=post.id,
            user_id=member_user.id, side_channel=side_channel,
        )
        assert likes == [str(member_user.id)]

        with pytest.raises(AlreadyLikedError):
            like_post(group_id=public_group_with_member.id, post_id=post.id, user_id=member_user.id)
        assert GroupPostLike.objects.count() == 1

    def test_unlike_like_unlike_returns_to_empty(self, public_group_with_member, member_user, creator):
        post = make_post(public_group_with_member, creator)

        with pytest.raises(NotLikedError):
            unlike_post(group_id=public_group_with_member.id, post_id=post.id, user_id=member_user.id)

        like_post(group_id=public_group_with_member.id, post_id=post.id, user_id=member_user.id)
        assert unlike_post(group_id=public_group_with_member.id, post_id=post.id, user_id=member_user.id) == []
        assert not GroupPostLike.objects.exists()

    def test_non_member_cannot_like_public_post(self, public_group_with_member, member_user, outsider):
        post = make_post(public_group_with_member, member_user)

        with pytest.raises(InsufficientPermissionsError):
            like_post(group_id=public_group_with_member.id, post_id=post.id, user_id=outsider.id)

    def test_like_notifies_author_but_not_self(self, public_group_with_member, member_user, creator, side_channel):
        post = make_post(public_group_with_member, member_user)

        like_post(group_id=public_group_with_member.id, post_id=post.id, user_id=member_user.id, side_channel=side_channel)
        side_channel.notify.assert_not_called()

        like_post(group_id=public_group_with_member.id, post_id=post.id, user_id=creator.id, side_channel=side_channel)
        kwargs = side_channel.notify.call_args.kwargs
        assert kwargs['notification_type'] == NotificationType.LIKE
        assert kwargs['to_user_id'] == str(member_user.id)
        assert kwargs['from_user_name'] == 'Group Creator'

    def test_notification_failure_does_not_fail_like(self, public_group_with_member, member_user, creator):
        post = make_post(public_group_with_member, member_user)

        with patch('apps.groups.services.side_channel.create_notification', side_effect=RuntimeError("down")):
            likes = like_post(group_id=public_group_with_member.id, post_id=post.id, user_id=creator.id)

        assert likes == [str(creator.id)]

    def test_add_comment_name_fallbacks(self, public_group_with_member, member_user, creator):
        post = make_post(public_group_with_member, creator)

        given = add_comment(
            group_id=public_group_with_member.id, post_id=post.id,
            user_id=member_user.id, text=' Lovely ', user_name='Chef M',
        )
        from_directory = add_comment(
            group_id=public_group_with_member.id, post_id=post.id,
            user_id=member_user.id, text='Again',
        )

        assert given.text == 'Lovely'
        assert given.user_name == 'Chef M'
        assert from_directory.user_name == 'Group Member'

    def test_comment_by_unknown_user_is_anonymous(self, public_group, creator):
        GroupMembership.objects.create(group=public_group, user_id='ghost-1', role=GroupRole.MEMBER)
        post = make_post(public_group, creator)

        comment = add_comment(group_id=public_group.id, post_id=post.id, user_id='ghost-1', text='Hi')
        assert comment.user_name == 'Anonymous User'

    def test_comment_requires_text_and_membership(self, public_group_with_member, member_user, outsider, creator):
        post = make_post(public_group_with_member, creator)

        with pytest.raises(InvalidGroupDataError):
            add_comment(group_id=public_group_with_member.id, post_id=post.id, user_id=member_user.id, text='   ')
        with pytest.raises(InsufficientPermissionsError):
            add_comment(group_id=public_group_with_member.id, post_id=post.id, user_id=outsider.id, text='Hi')

    def test_comment_notifies_author(self, public_group_with_member, member_user, creator, side_channel):
        post = make_post(public_group_with_member, creator)

        add_comment(
            group_id=public_group_with_member.id, post_id=post.id,
            user_id=member_user.id, text='Yum', side_channel=side_channel,
        )

        kwargs = side_channel.notify.call_args.kwargs
        assert kwargs['notification_type'] == NotificationType.COMMENT
        assert kwargs['to_user_id'] == str(creator.id)

    def test_membership_checked_before_post_lookup(self, public_group, outsider):
        with pytest.raises(InsufficientPermissionsError):
            like_post(group_id=public_group.id, post_id=uuid4(), user_id=outsider.id)
        with pytest.raises(InsufficientPermissionsError):
            add_comment(group_id=public_group.id, post_id=uuid4(), user_id=outsider.id, text='Hi')
        with pytest.raises(InsufficientPermissionsError):
            delete_comment(group_id=public_group.id, post_id=uuid4(), comment_id=uuid4(), user_id=outsider.id)

    def test_commenter_lookup_runs_before_the_comment_transaction(
        self, public_group_with_member, member_user, creator, side_channel
    ):
        post = make_post(public_group_with_member, creator)
        depth = len(connection.savepoint_ids)
        depths_seen = []

        def lookup(user_id):
            depths_seen.append(len(connection.savepoint_ids))
            return placeholder_profile(user_id)

        with patch('apps.groups.services.post_interactions.get_user_profile', side_effect=lookup):
            comment = add_comment(
                group_id=public_group_with_member.id, post_id=post.id,
                user_id=member_user.id, text='Hi', side_channel=side_channel,
            )

        assert depths_seen[0] == depth
        assert comment.user_name == 'Anonymous User'

    def test_long_names_are_cut_to_fit(self, public_group_with_member, member_user, creator):
        post = make_post(public_group_with_member, creator)

        comment = add_comment(
            group_id=public_group_with_member.id, post_id=post.id,
            user_id=member_user.id, text='Hi', user_name='N' * 200,
        )
        assert comment.user_name == 'N' * 150

    def test_delete_comment_permissions(self, group_with_members, member_user, admin_user):
        post = make_post(group_with_members, member_user)
        comment = add_comment(group_id=group_with_members.id, post_id=post.id, user_id=admin_user.id, text='Nice')
        own = add_comment(group_id=group_with_members.id, post_id=post.id, user_id=member_user.id, text='Thanks')

        with pytest.raises(InsufficientPermissionsError):
            delete_comment(group_id=group_with_members.id, post_id=post.id, comment_id=comment.id, user_id=member_user.id)

        delete_comment(group_id=group_with_members.id, post_id=post.id, comment_id=own.id, user_id=member_user.id)
        delete_comment(group_id=group_with_members.id, post_id=post.id, comment_id=comment.id, user_id=admin_user.id)
        assert not GroupPostComment.objects.exists()

        with pytest.raises(CommentNotFoundError):
            delete_comment(group_id=group_with_members.id, post_id=post.id, comment_id=uuid4(), user_id=admin_user.id)
