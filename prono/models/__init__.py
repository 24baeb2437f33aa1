from .user import User
from .match import Match
from .group import Group, GroupMembership
from .prediction import Prediction
from .friend import FriendRequest

__all__ = [
    "User",
    "Match",
    "Group",
    "GroupMembership",
    "Prediction",
    "FriendRequest",
]
