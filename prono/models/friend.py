from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint

PENDING = "pending"
ACCEPTED = "accepted"


class FriendRequest(SQLModel, table=True):
    """A friendship once accepted; rejected requests are deleted."""
    __tablename__ = "friend_requests"
    __table_args__ = (UniqueConstraint("requester_id", "receiver_id", name="unique_friend_pair"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    requester_id: int = Field(foreign_key="users.id", index=True)
    receiver_id: int = Field(foreign_key="users.id", index=True)
    status: str = Field(default=PENDING, index=True)  # pending, accepted

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
