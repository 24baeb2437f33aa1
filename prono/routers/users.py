from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from ..database import get_session
from ..services.profile import get_user_profile
from ..services.users import create_user, get_user

router = APIRouter(prefix="/api/users", tags=["users"])


class UserCreate(BaseModel):
    display_name: str
    email: str


def user_to_dict(user) -> dict:
    return {
        "id": user.id,
        "display_name": user.display_name,
        "email": user.email,
        "created_at": user.created_at
    }


@router.post("", status_code=201)
async def register_user(
    user_data: UserCreate,
    db: Session = Depends(get_session)
):
    user = create_user(db, user_data.display_name, user_data.email)
    return {"user": user_to_dict(user)}


@router.get("/{user_id}")
async def read_user(
    user_id: int,
    db: Session = Depends(get_session)
):
    return {"user": user_to_dict(get_user(db, user_id))}


@router.get("/{user_id}/profile")
async def read_profile(
    user_id: int,
    db: Session = Depends(get_session)
):
    """Totals across every group plus friend count."""
    return {"profile": get_user_profile(db, user_id)}
