"""
Background jobs: the match poller and the match simulation.

Both can trigger scoring for the same match at overlapping times; scoring
serialises itself per match, so the jobs need no coordination of their own.
"""

import logging
import random
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlmodel import Session

from .. import config
from ..database import engine
from .locks import MatchLockRegistry, scoring_locks
from .match_feed import MatchFeedClient, MatchStatusCache, poll_matches
from .scoring import DEFAULT_RULES, ScoringRules, score_match
from .simulation import simulate_tick

logger = logging.getLogger(__name__)


class PronoScheduler:
    """Owns the APScheduler instance and the poller's status cache."""

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        feed: Optional[MatchFeedClient] = None,
        rules: ScoringRules = DEFAULT_RULES,
        locks: MatchLockRegistry = scoring_locks,
        simulation_enabled: bool = config.SIMULATION_ENABLED,
        rng: Optional[random.Random] = None
    ):
        self.session_factory = session_factory or (lambda: Session(engine))
        self.feed = feed
        self.rules = rules
        self.locks = locks
        self.simulation_enabled = simulation_enabled
        self.rng = rng or random.Random()
        self.scheduler: Optional[BackgroundScheduler] = None
        self.cache: Optional[MatchStatusCache] = None
        self.is_running = False

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        self.cache = MatchStatusCache()
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")
        self._add_jobs()
        self.scheduler.start()
        self.is_running = True
        logger.info("Scheduler started")

    def stop(self):
        """Stop the scheduler and drop the status cache"""
        if not self.is_running:
            return

        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        self.cache.clear()
        self.cache = None
        self.is_running = False
        logger.info("Scheduler stopped")

    def _add_jobs(self):
        self.scheduler.add_job(
            func=self.run_poll,
            trigger=IntervalTrigger(seconds=config.POLL_INTERVAL_SECONDS),
            id="poll_matches",
            name="Poll Match Statuses",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=30,
        )

        if self.simulation_enabled:
            self.scheduler.add_job(
                func=self.run_simulation,
                trigger=IntervalTrigger(seconds=config.SIMULATION_INTERVAL_SECONDS),
                id="simulate_tick",
                name="Advance Match Simulation",
                max_instances=1,
                coalesce=True,
                misfire_grace_time=30,
            )

    def run_poll(self):
        """Poller job: sync the feed if configured and score finished matches"""
        cache = self.cache
        if cache is None:
            # Stopped while this run was queued
            logger.debug("Poller skipped: scheduler is not running")
            return None
        try:
            with self.session_factory() as db:
                summary = poll_matches(db, cache, self.rules, self.locks, self.feed)
            if summary["scored"]:
                logger.info(f"Poller scored matches {summary['scored']}")
            return summary
        except Exception as e:
            logger.error(f"Error in match poller: {e}", exc_info=True)
            return None

    def run_simulation(self):
        """Simulation job: advance the live match, score it when it ends"""
        try:
            with self.session_factory() as db:
                result = simulate_tick(db, self.rng)
                if result["action"] == "finished":
                    result["scoring"] = score_match(db, result["match_id"], self.rules, self.locks)
                    if self.cache is not None:
                        self.cache.mark_scored(result["match_id"])
            return result
        except Exception as e:
            logger.error(f"Error in match simulation: {e}", exc_info=True)
            return None


def build_scheduler() -> PronoScheduler:
    """Scheduler wired from configuration."""
    feed = MatchFeedClient() if config.MATCH_FEED_ENABLED else None
    return PronoScheduler(feed=feed)
