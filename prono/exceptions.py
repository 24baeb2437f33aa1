"""
Domain errors raised by the services.

Each class carries the HTTP status the API answers with, so routers can let
them propagate to the handler registered in ``main.py``.
"""


class PronoError(Exception):
    status_code = 400

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.context = context

    def to_dict(self) -> dict:
        return {"error": self.message, "detail": self.context or None}


class NotFoundError(PronoError):
    status_code = 404


class MatchNotFound(NotFoundError):
    def __init__(self, match_id):
        super().__init__("Match not found", match_id=match_id)


class GroupNotFound(NotFoundError):
    def __init__(self, group_id):
        super().__init__("Group not found", group_id=group_id)


class UserNotFound(NotFoundError):
    def __init__(self, user_id):
        super().__init__("User not found", user_id=user_id)


class MatchNotFinished(PronoError):
    status_code = 409

    def __init__(self, match_id, status: str):
        super().__init__("Match is not finished", match_id=match_id, status=status)


class ConcurrentScoringConflict(PronoError):
    """The per-match scoring lock could not be acquired in time."""

    status_code = 409

    def __init__(self, match_id, timeout: float):
        super().__init__(
            "Match is already being scored, retry later",
            match_id=match_id,
            timeout=timeout,
        )


class ValidationError(PronoError):
    status_code = 422


class PredictionRejected(ValidationError):
    pass


class InvalidStatusTransition(ValidationError):
    def __init__(self, match_id, current: str, requested: str):
        super().__init__(
            f"Cannot move match from '{current}' to '{requested}'",
            match_id=match_id,
            current=current,
            requested=requested,
        )


class MatchPayloadError(ValidationError):
    pass


class InvalidInviteCode(NotFoundError):
    def __init__(self, group_id):
        super().__init__("Invalid invite code or group not found", group_id=group_id)


class AlreadyMember(PronoError):
    status_code = 400

    def __init__(self, group_id, user_id):
        super().__init__(
            "User is already a member of this group", group_id=group_id, user_id=user_id
        )


class NotGroupMember(PronoError):
    status_code = 403

    def __init__(self, group_id, user_id):
        super().__init__(
            "User is not a member of this group", group_id=group_id, user_id=user_id
        )


class FriendRequestNotFound(NotFoundError):
    def __init__(self, request_id):
        super().__init__("Friend request not found", request_id=request_id)


class FriendNotFound(NotFoundError):
    def __init__(self, user_id, friend_id):
        super().__init__("Friend not found", user_id=user_id, friend_id=friend_id)


class FriendRequestExists(PronoError):
    status_code = 400

    def __init__(self, requester_id, receiver_id):
        super().__init__(
            "Friend request already exists",
            requester_id=requester_id,
            receiver_id=receiver_id,
        )


class NotRequestReceiver(PronoError):
    """Only the receiver of a friend request may answer it."""

    status_code = 403

    def __init__(self, request_id, user_id):
        super().__init__(
            "You can only answer friend requests sent to you",
            request_id=request_id,
            user_id=user_id,
        )


class MatchFeedError(PronoError):
    status_code = 502
