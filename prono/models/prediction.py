from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint


class Prediction(SQLModel, table=True):
    __tablename__ = "predictions"
    __table_args__ = (
        UniqueConstraint("user_id", "match_id", "group_id", name="unique_user_match_group"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    match_id: int = Field(foreign_key="matches.id", index=True)
    group_id: int = Field(foreign_key="groups.id", index=True)

    # Prediction
    predicted_winner: str  # team_a, team_b
    predicted_score_a: Optional[int] = Field(default=None)
    predicted_score_b: Optional[int] = Field(default=None)

    # Scoring (calculated after match finishes)
    points_earned: int = Field(default=0)
    is_correct: bool = Field(default=False)
    is_exact_score: bool = Field(default=False)

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
