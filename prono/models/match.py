from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field

UPCOMING = "upcoming"
LIVE = "live"
FINISHED = "finished"
CANCELLED = "cancelled"

MATCH_STATUSES = (UPCOMING, LIVE, FINISHED, CANCELLED)

# Spellings used by other match sources
STATUS_ALIASES = {
    "scheduled": UPCOMING,
    "ongoing": LIVE,
    "in_progress": LIVE,
    "completed": FINISHED,
}

# Statuses only ever move forward. upcoming -> finished skips live so a feed
# that never reported a match as live can still deliver its result.
ALLOWED_TRANSITIONS = {
    UPCOMING: {LIVE, FINISHED, CANCELLED},
    LIVE: {FINISHED},
    FINISHED: set(),
    CANCELLED: set(),
}

TEAM_A = "team_a"
TEAM_B = "team_b"
SIDES = (TEAM_A, TEAM_B)


class Match(SQLModel, table=True):
    __tablename__ = "matches"

    id: Optional[int] = Field(default=None, primary_key=True)
    external_id: Optional[str] = Field(default=None, unique=True, index=True)  # id in the public feed

    team_a: str
    team_b: str
    tournament: str = Field(default="")
    scheduled_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Status
    status: str = Field(default=UPCOMING, index=True)  # upcoming, live, finished, cancelled

    # Final result (set only once finished)
    score_a: Optional[int] = Field(default=None)
    score_b: Optional[int] = Field(default=None)
    winner: Optional[str] = Field(default=None)  # team_a, team_b, None for a draw

    # Running tally while live
    live_score_a: int = Field(default=0)
    live_score_b: int = Field(default=0)

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_finished(self) -> bool:
        return self.status == FINISHED

    @property
    def has_result(self) -> bool:
        return self.score_a is not None and self.score_b is not None
