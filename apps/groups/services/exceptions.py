"""
Domain-specific exceptions for groups app.

These exceptions represent business rule violations. Each carries the HTTP
status the API answers with; views convert them to responses in one place.
"""


class GroupsServiceError(Exception):
    """Base exception for all groups service errors."""
    status_code = 500


# Validation (400)

class InvalidGroupDataError(GroupsServiceError):
    """Raised when required input is missing or malformed."""
    status_code = 400


class InvalidIdentifierError(GroupsServiceError):
    """Raised when a group, post or comment id is not well-formed."""
    status_code = 400


class PostNotInGroupError(GroupsServiceError):
    """Raised when a post is addressed through a group it does not belong to."""
    status_code = 400


# Conflicts (400)

class AlreadyMemberError(GroupsServiceError):
    """Raised when a user tries to join a group they're already in."""
    status_code = 400


class DuplicateJoinRequestError(GroupsServiceError):
    """Raised when a user already has a pending request for the group."""
    status_code = 400


class NoPendingRequestError(GroupsServiceError):
    """Raised when cancelling a join request that does not exist."""
    status_code = 400


class AlreadyLikedError(GroupsServiceError):
    """Raised when liking a post twice."""
    status_code = 400


class NotLikedError(GroupsServiceError):
    """Raised when unliking a post that was never liked."""
    status_code = 400


class PostNotPendingError(GroupsServiceError):
    """Raised when moderating a post that is already approved."""
    status_code = 400


class OwnerCannotLeaveError(GroupsServiceError):
    """Raised when the group creator tries to leave their group."""
    status_code = 400


class CannotRemoveOwnerError(GroupsServiceError):
    """Raised when attempting to remove the group creator."""
    status_code = 400


class CannotRemoveSelfError(GroupsServiceError):
    """Raised when an admin tries to remove themselves instead of leaving."""
    status_code = 400


class CannotChangeOwnerRoleError(GroupsServiceError):
    """Raised when attempting to change the creator's role."""
    status_code = 400


# Permissions (403)

class InsufficientPermissionsError(GroupsServiceError):
    """Raised when a user lacks required permissions for an action."""
    status_code = 403


# Not found (404)

class GroupNotFoundError(GroupsServiceError):
    """Raised when a group does not exist."""
    status_code = 404


class PostNotFoundError(GroupsServiceError):
    """Raised when a group post does not exist or is not visible."""
    status_code = 404


class CommentNotFoundError(GroupsServiceError):
    """Raised when a comment does not exist on the post."""
    status_code = 404


class JoinRequestNotFoundError(GroupsServiceError):
    """Raised when an admin handles a join request that does not exist."""
    status_code = 404


class NotMemberError(GroupsServiceError):
    """Raised when the target user is not a member of the group."""
    status_code = 404


# Availability (503)

class ServiceUnavailableError(GroupsServiceError):
    """Raised when the store cannot be reached."""
    status_code = 503
