"""
Match data coming from the public match feed, and the poller that turns
finished matches into scored predictions.

Feed rows are loosely typed (scores may arrive as strings, statuses under
several spellings), so every row is validated into a ``MatchPayload`` before
it can touch a ``Match``.
"""

import logging
import threading
from datetime import datetime, UTC
from typing import Any, Dict, Iterable, List, Optional, Set

import requests
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session, select

from ..config import MATCH_FEED_TIMEOUT, PUBLIC_API_URL
from ..exceptions import (
    ConcurrentScoringConflict,
    MatchFeedError,
    MatchNotFinished,
    MatchPayloadError,
    ValidationError,
)
from ..models.match import Match, FINISHED, LIVE, MATCH_STATUSES, STATUS_ALIASES, UPCOMING
from .locks import MatchLockRegistry, scoring_locks
from .matches import apply_transition
from .scoring import DEFAULT_RULES, ScoringRules, score_match

logger = logging.getLogger(__name__)


class MatchPayload(BaseModel):
    """One match as published by the feed."""

    model_config = ConfigDict(extra="ignore")

    id: str
    team_a: str = Field(min_length=1)
    team_b: str = Field(min_length=1)
    status: str = UPCOMING
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    match_date: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("match_date", "scheduled_at")
    )
    tournament: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def parse_id(cls, value: Any) -> str:
        if isinstance(value, bool) or not isinstance(value, (str, int)) or value == "":
            raise ValueError("id must be a non-empty string or integer")
        return str(value)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("status must be a string")
        status = STATUS_ALIASES.get(value.strip().lower(), value.strip().lower())
        if status not in MATCH_STATUSES:
            raise ValueError(f"unknown status '{value}'")
        return status

    @field_validator("score_a", "score_b", mode="before")
    @classmethod
    def parse_score(cls, value: Any) -> Optional[int]:
        if value is None or value == "":
            return None
        if isinstance(value, bool):
            raise ValueError("score must be an integer")
        if isinstance(value, int):
            score = value
        elif isinstance(value, str) and value.strip().isdigit():
            score = int(value.strip())
        else:
            raise ValueError(f"score must be an integer, got {value!r}")
        if score < 0:
            raise ValueError("score must not be negative")
        return score

    @model_validator(mode="after")
    def check_result(self) -> "MatchPayload":
        if self.status == FINISHED and (self.score_a is None or self.score_b is None):
            raise ValueError("a finished match needs both scores")
        return self


def parse_match_payloads(rows: Any, skip_invalid: bool = False) -> List[MatchPayload]:
    """
    Validate raw feed rows.

    Raises:
        MatchPayloadError: the rows are not a list, or a row is invalid and
            ``skip_invalid`` is not set (invalid rows are then logged and dropped)
    """
    if not isinstance(rows, list):
        raise MatchPayloadError("Match feed must return a list of matches")

    payloads = []
    for i, row in enumerate(rows):
        try:
            payloads.append(MatchPayload.model_validate(row))
        except PydanticValidationError as e:
            errors = e.errors(include_url=False, include_context=False, include_input=False)
            if skip_invalid:
                logger.warning(f"Skipping invalid match row {i}: {errors}")
                continue
            raise MatchPayloadError(f"Invalid match payload at index {i}", errors=errors) from e
    return payloads


class MatchFeedClient:
    """Reads matches from the public match API."""

    def __init__(
        self,
        base_url: str = PUBLIC_API_URL,
        timeout: float = MATCH_FEED_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "League-of-Prono/1.0"})

    def _get(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.warning(f"Match feed request failed for {url}: {e}")
            raise MatchFeedError("Failed to fetch matches from the match feed", url=url) from e

    def fetch_matches(self) -> List[MatchPayload]:
        rows = self._get("/matches")
        if isinstance(rows, dict) and "matches" in rows:
            rows = rows["matches"]
        return parse_match_payloads(rows, skip_invalid=True)

    def fetch_match(self, external_id: str) -> MatchPayload:
        row = self._get(f"/matches/{external_id}")
        if isinstance(row, dict) and isinstance(row.get("match"), dict):
            row = row["match"]
        return parse_match_payloads([row])[0]


def apply_match_payloads(db: Session, payloads: Iterable[MatchPayload]) -> Dict[str, int]:
    """
    Upsert feed matches by their external id.

    Status changes go through the same forward-only transitions as manual
    updates; a row asking for an impossible move is logged and skipped.
    """
    summary = {"created": 0, "updated": 0, "skipped": 0}

    for payload in payloads:
        match = db.exec(select(Match).where(Match.external_id == payload.id)).first()
        is_new = match is None
        if is_new:
            match = Match(
                external_id=payload.id,
                team_a=payload.team_a,
                team_b=payload.team_b,
                tournament=payload.tournament,
                scheduled_at=payload.match_date or datetime.now(UTC)
            )

        changed = is_new
        if payload.status != match.status:
            try:
                apply_transition(match, payload.status, payload.score_a, payload.score_b)
                changed = True
            except ValidationError as e:
                logger.warning(f"Skipping feed match {payload.id}: {e.message}")
                summary["skipped"] += 1
                continue

        if match.status == LIVE and payload.score_a is not None and payload.score_b is not None:
            if (match.live_score_a, match.live_score_b) != (payload.score_a, payload.score_b):
                match.live_score_a = payload.score_a
                match.live_score_b = payload.score_b
                match.updated_at = datetime.now(UTC)
                changed = True

        if changed:
            db.add(match)
            summary["created" if is_new else "updated"] += 1

    db.commit()
    logger.info(
        f"Match feed applied: {summary['created']} created, "
        f"{summary['updated']} updated, {summary['skipped']} skipped"
    )
    return summary


def refresh_match_from_feed(db: Session, match: Match, feed: Optional[MatchFeedClient]) -> bool:
    """
    Bring one local match up to date with the feed before it is scored.

    Matches without an external id are left alone. When the feed cannot be
    reached or returns a bad row the local data is used as is.
    """
    if feed is None or not match.external_id:
        return False

    try:
        payload = feed.fetch_match(match.external_id)
    except (MatchFeedError, MatchPayloadError) as e:
        logger.warning(f"Could not refresh match {match.id} from the feed, using local data: {e.message}")
        return False

    if payload.id != match.external_id:
        logger.warning(f"Feed answered match {payload.id} when asked for {match.external_id}")
        return False

    summary = apply_match_payloads(db, [payload])
    db.refresh(match)
    return summary["updated"] > 0


class MatchStatusCache:
    """
    What the poller has already seen and scored in this process.

    One instance is created when the scheduler starts and cleared when it
    stops. Losing it only means finished matches get scored once more, which
    is harmless because scoring is a full recompute.
    """

    def __init__(self):
        self._statuses: Dict[int, str] = {}
        self._scored: Set[int] = set()
        self._lock = threading.Lock()

    def observe(self, matches: Iterable[Match]) -> List[int]:
        """Record current statuses and return finished matches not yet scored."""
        pending = []
        with self._lock:
            for match in matches:
                previous = self._statuses.get(match.id)
                if previous is not None and previous != match.status:
                    logger.info(f"Match {match.id} status changed: {previous} -> {match.status}")
                self._statuses[match.id] = match.status
                if match.status == FINISHED and match.id not in self._scored:
                    pending.append(match.id)
        return pending

    def mark_scored(self, match_id: int) -> None:
        with self._lock:
            self._scored.add(match_id)

    def is_scored(self, match_id: int) -> bool:
        with self._lock:
            return match_id in self._scored

    def clear(self) -> None:
        with self._lock:
            self._statuses.clear()
            self._scored.clear()


def poll_matches(
    db: Session,
    cache: MatchStatusCache,
    rules: ScoringRules = DEFAULT_RULES,
    locks: MatchLockRegistry = scoring_locks,
    feed: Optional[MatchFeedClient] = None
) -> Dict[str, Any]:
    """
    One poller round: optionally pull the feed, then score every finished
    match this process has not scored yet.

    Matches that cannot be scored right now are left for the next round.
    """
    summary: Dict[str, Any] = {"synced": None, "scored": [], "deferred": []}

    if feed is not None:
        try:
            summary["synced"] = apply_match_payloads(db, feed.fetch_matches())
        except (MatchFeedError, MatchPayloadError) as e:
            logger.warning(f"Match feed unavailable, scoring local matches only: {e.message}")

    matches = db.exec(select(Match).order_by(Match.id)).all()
    for match_id in cache.observe(matches):
        try:
            score_match(db, match_id, rules, locks)
        except (MatchNotFinished, ConcurrentScoringConflict) as e:
            logger.warning(f"Match {match_id} not scored this round: {e.message}")
            summary["deferred"].append(match_id)
            continue
        cache.mark_scored(match_id)
        summary["scored"].append(match_id)

    return summary
