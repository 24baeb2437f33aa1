from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from ..database import get_session
from ..services.friends import (
    accept_friend_request,
    list_friend_requests,
    list_friends,
    reject_friend_request,
    remove_friend,
    send_friend_request,
)

router = APIRouter(prefix="/api", tags=["friends"])


class FriendRequestCreate(BaseModel):
    user_id: int
    email: str


class FriendRequestAnswer(BaseModel):
    user_id: int


@router.get("/friends")
async def read_friends(
    user_id: int,
    db: Session = Depends(get_session)
):
    return {"friends": list_friends(db, user_id)}


@router.delete("/friends/{friend_id}")
async def delete_friend(
    friend_id: int,
    user_id: int,
    db: Session = Depends(get_session)
):
    remove_friend(db, user_id, friend_id)
    return {"message": "Friend removed"}


@router.post("/friend-requests", status_code=201)
async def add_friend_request(
    request_data: FriendRequestCreate,
    db: Session = Depends(get_session)
):
    request = send_friend_request(db, request_data.user_id, request_data.email)
    return {"message": "Friend request sent", "requestId": request.id}


@router.get("/friend-requests")
async def read_friend_requests(
    user_id: int,
    db: Session = Depends(get_session)
):
    """Pending requests received by the user."""
    return {"requests": list_friend_requests(db, user_id)}


@router.post("/friend-requests/{request_id}/accept")
async def accept(
    request_id: int,
    answer: FriendRequestAnswer,
    db: Session = Depends(get_session)
):
    accept_friend_request(db, request_id, answer.user_id)
    return {"message": "Friend request accepted"}


@router.post("/friend-requests/{request_id}/reject")
async def reject(
    request_id: int,
    answer: FriendRequestAnswer,
    db: Session = Depends(get_session)
):
    reject_friend_request(db, request_id, answer.user_id)
    return {"message": "Friend request rejected"}
