"""
Match simulation used to demo the game without a live data source.

Each tick advances the single live match by one point; a match ends once a
side reaches the target score.
"""

import logging
import random
from typing import Any, Dict, Optional

from sqlmodel import Session, select

from ..config import SIMULATION_TARGET_SCORE
from ..models.match import Match, LIVE
from .matches import create_match, finish_match, next_upcoming_match, start_match, update_live_score

logger = logging.getLogger(__name__)

SIMULATED_TEAMS = ["T1", "Gen.G", "JD Gaming", "BLG", "G2", "Fnatic"]
SIMULATED_TOURNAMENT = "Simulated League"


def simulate_tick(
    db: Session,
    rng: Optional[random.Random] = None,
    target_score: int = SIMULATION_TARGET_SCORE
) -> Dict[str, Any]:
    rng = rng or random.Random()

    statement = select(Match).where(Match.status == LIVE).order_by(Match.id)
    current = db.exec(statement).first()

    if not current:
        upcoming = next_upcoming_match(db)
        if upcoming:
            start_match(db, upcoming.id)
            logger.info(f"Simulation started match {upcoming.id}: {upcoming.team_a} vs {upcoming.team_b}")
            return {"action": "started", "match_id": upcoming.id}

        # Nothing left to play, make up a new match
        team_a, team_b = rng.sample(SIMULATED_TEAMS, 2)
        match = create_match(db, team_a, team_b, tournament=SIMULATED_TOURNAMENT)
        start_match(db, match.id)
        logger.info(f"Simulation created match {match.id}: {team_a} vs {team_b}")
        return {"action": "created", "match_id": match.id}

    score_a = current.live_score_a
    score_b = current.live_score_b
    if rng.random() > 0.5:
        score_a += 1
    else:
        score_b += 1

    if score_a >= target_score or score_b >= target_score:
        finish_match(db, current.id, score_a, score_b)
        logger.info(f"Simulation finished match {current.id}: {score_a}-{score_b}")
        return {"action": "finished", "match_id": current.id, "score_a": score_a, "score_b": score_b}

    update_live_score(db, current.id, score_a, score_b)
    return {"action": "scored", "match_id": current.id, "score_a": score_a, "score_b": score_b}
