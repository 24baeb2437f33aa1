from functools import lru_cache
from typing import Optional

from .config import ALLOW_LIVE_PREDICTIONS, MATCH_FEED_ENABLED
from .services.locks import MatchLockRegistry, scoring_locks
from .services.match_feed import MatchFeedClient
from .services.scoring import DEFAULT_RULES, ScoringRules


def get_scoring_rules() -> ScoringRules:
    """Point values used when scoring matches."""
    return DEFAULT_RULES


def get_scoring_locks() -> MatchLockRegistry:
    """Process-wide per-match scoring locks."""
    return scoring_locks


def get_allow_live_predictions() -> bool:
    """Whether predictions may still be edited while a match is live."""
    return ALLOW_LIVE_PREDICTIONS


@lru_cache
def _shared_match_feed() -> MatchFeedClient:
    return MatchFeedClient()


def get_match_feed() -> Optional[MatchFeedClient]:
    """Public match feed, or None when syncing from it is switched off."""
    if not MATCH_FEED_ENABLED:
        return None
    return _shared_match_feed()
