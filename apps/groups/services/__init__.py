"""
Groups app services layer.

Services contain business logic and orchestrate operations across models.
All state-changing operations use transactions and lock the group row.
"""

from .exceptions import (
    GroupsServiceError,
    InvalidGroupDataError,
    InvalidIdentifierError,
    PostNotInGroupError,
    AlreadyMemberError,
    DuplicateJoinRequestError,
    NoPendingRequestError,
    AlreadyLikedError,
    NotLikedError,
    PostNotPendingError,
    OwnerCannotLeaveError,
    CannotRemoveOwnerError,
    CannotRemoveSelfError,
    CannotChangeOwnerRoleError,
    InsufficientPermissionsError,
    GroupNotFoundError,
    PostNotFoundError,
    CommentNotFoundError,
    JoinRequestNotFoundError,
    NotMemberError,
    ServiceUnavailableError,
)

from .group_management import (
    create_group,
    get_group_by_id,
    list_groups,
    search_groups,
    get_group_profiles,
    update_group,
    delete_group,
)

from .membership_management import (
    JoinAction,
    JoinResult,
    JoinStatus,
    request_to_join,
    cancel_join_request,
    handle_join_request,
    leave_group,
    remove_member,
    get_group_members,
)

from .role_management import (
    update_member_role,
)

from .post_visibility import (
    ViewerContext,
    list_group_posts,
    get_group_post,
    list_member_feed,
)

from .post_management import (
    PostResult,
    create_group_post,
    update_group_post,
    delete_group_post,
    approve_group_post,
    reject_group_post,
)

from .post_interactions import (
    like_post,
    unlike_post,
    add_comment,
    delete_comment,
)

from .side_channel import (
    SideChannel,
    DefaultSideChannel,
    get_side_channel,
    run_best_effort,
)


__all__ = [
    # Exceptions
    'GroupsServiceError',
    'InvalidGroupDataError',
    'InvalidIdentifierError',
    'PostNotInGroupError',
    'AlreadyMemberError',
    'DuplicateJoinRequestError',
    'NoPendingRequestError',
    'AlreadyLikedError',
    'NotLikedError',
    'PostNotPendingError',
    'OwnerCannotLeaveError',
    'CannotRemoveOwnerError',
    'CannotRemoveSelfError',
    'CannotChangeOwnerRoleError',
    'InsufficientPermissionsError',
    'GroupNotFoundError',
    'PostNotFoundError',
    'CommentNotFoundError',
    'JoinRequestNotFoundError',
    'NotMemberError',
    'ServiceUnavailableError',

    # Group Management
    'create_group',
    'get_group_by_id',
    'list_groups',
    'search_groups',
    'get_group_profiles',
    'update_group',
    'delete_group',

    # Join workflow and membership
    'JoinAction',
    'JoinResult',
    'JoinStatus',
    'request_to_join',
    'cancel_join_request',
    'handle_join_request',
    'leave_group',
    'remove_member',
    'get_group_members',

    # Role Management
    'update_member_role',

    # Post visibility
    'ViewerContext',
    'list_group_posts',
    'get_group_post',
    'list_member_feed',

    # Post moderation
    'PostResult',
    'create_group_post',
    'update_group_post',
    'delete_group_post',
    'approve_group_post',
    'reject_group_post',

    # Likes and comments
    'like_post',
    'unlike_post',
    'add_comment',
    'delete_comment',

    # Side effects
    'SideChannel',
    'DefaultSideChannel',
    'get_side_channel',
    'run_best_effort',
]
