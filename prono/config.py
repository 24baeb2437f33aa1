import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "on", "yes")


# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR}/prono.db")

# Scoring
WINNER_POINTS = int(os.getenv("WINNER_POINTS", "3"))
EXACT_SCORE_BONUS = int(os.getenv("EXACT_SCORE_BONUS", "2"))
SCORING_LOCK_TIMEOUT = float(os.getenv("SCORING_LOCK_TIMEOUT", "5.0"))

# Predictions are always closed once a match is finished; this only opens live matches
ALLOW_LIVE_PREDICTIONS = _env_bool("ALLOW_LIVE_PREDICTIONS", "false")

# Groups
INVITE_CODE_LENGTH = int(os.getenv("INVITE_CODE_LENGTH", "10"))

# Public match feed
PUBLIC_API_URL = os.getenv("PUBLIC_API_URL", "http://localhost:3000")
MATCH_FEED_TIMEOUT = float(os.getenv("MATCH_FEED_TIMEOUT", "10"))
MATCH_FEED_ENABLED = _env_bool("MATCH_FEED_ENABLED", "false")

# Background jobs
SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", "false")
POLL_INTERVAL_SECONDS = int(os.getenv("POLL_INTERVAL_SECONDS", "10"))
SIMULATION_ENABLED = _env_bool("SIMULATION_ENABLED", "false")
SIMULATION_INTERVAL_SECONDS = int(os.getenv("SIMULATION_INTERVAL_SECONDS", "30"))
SIMULATION_TARGET_SCORE = int(os.getenv("SIMULATION_TARGET_SCORE", "10"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_TO_FILE = _env_bool("LOG_TO_FILE", "false")
LOG_DIR = os.getenv("LOG_DIR", "logs")
