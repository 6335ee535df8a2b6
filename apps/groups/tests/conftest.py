import pytest
from unittest.mock import MagicMock
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.groups.models import Group, GroupMembership, GroupPost, GroupRole
from apps.groups.services import SideChannel, create_group


def make_user(email, full_name):
    return User.objects.create_user(
        email=email,
        password='TestPass123!',
        full_name=full_name,
    )


def add_member(group, user, role=GroupRole.MEMBER):
    """Add a membership row directly, bypassing the join workflow."""
    return GroupMembership.objects.create(group=group, user_id=str(user.id), role=role)


def make_post(group, user, title='Sourdough', approved=True, **fields):
    return GroupPost.objects.create(
        group=group,
        user_id=str(user.id),
        title=title,
        is_approved=approved,
        **fields,
    )


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def creator(db):
    """Create and return the group creator."""
    return make_user('creator@example.com', 'Group Creator')


@pytest.fixture
def admin_user(db):
    """Create and return a user who will be a group admin."""
    return make_user('admin@example.com', 'Group Admin')


@pytest.fixture
def member_user(db):
    """Create and return a user who will be a plain member."""
    return make_user('member@example.com', 'Group Member')


@pytest.fixture
def outsider(db):
    """Create and return a user not in any group."""
    return make_user('outsider@example.com', 'Outsider')


@pytest.fixture
def member_client(api_client, member_user):
    """Return API client authenticated as a plain member."""
    refresh = RefreshToken.for_user(member_user)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def side_channel():
    """A side channel that records calls instead of writing notifications."""
    return MagicMock(spec=SideChannel)


@pytest.fixture
def public_group(creator):
    """Public group created through the service, creator is the first admin."""
    return create_group(
        name='Weeknight Dinners',
        creator_id=creator.id,
        description='Quick recipes',
        category='Dinner',
    )


@pytest.fixture
def private_group(creator):
    """Private group requiring approval for member posts."""
    return create_group(
        name='Bakers',
        creator_id=creator.id,
        description='Bread and pastry',
        category='Baking',
        is_private=True,
        require_approval=True,
    )


@pytest.fixture
def group_with_members(private_group, admin_user, member_user):
    """Private group with creator, one admin and one member."""
    add_member(private_group, admin_user, GroupRole.ADMIN)
    add_member(private_group, member_user, GroupRole.MEMBER)
    return Group.objects.get(id=private_group.id)


@pytest.fixture
def public_group_with_member(public_group, member_user):
    add_member(public_group, member_user)
    return Group.objects.get(id=public_group.id)
