from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from ..database import get_session
from ..services.leaderboard import get_global_leaderboard

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])


@router.get("")
async def global_leaderboard(
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_session)
):
    """Users ranked by the points earned across all their groups."""
    return {"leaderboard": get_global_leaderboard(db, limit)}
