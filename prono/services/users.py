from typing import Optional
from sqlmodel import Session, select

from ..exceptions import UserNotFound, ValidationError
from ..models.user import User


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Get a user by email."""
    statement = select(User).where(User.email == email)
    return db.exec(statement).first()


def create_user(db: Session, display_name: str, email: str) -> User:
    """Create a new user."""
    display_name = (display_name or "").strip()
    email = (email or "").strip().lower()
    if not display_name:
        raise ValidationError("Display name is required")
    if "@" not in email:
        raise ValidationError("Invalid email", email=email)
    if get_user_by_email(db, email):
        raise ValidationError("Email already registered", email=email)

    user = User(display_name=display_name, email=email)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise UserNotFound(user_id)
    return user
