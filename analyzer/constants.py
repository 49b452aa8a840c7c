"""Shared thresholds and skill-level table for position analysis."""

import chess

STARTING_FEN = chess.STARTING_FEN

MAIA_MODELS = (
    "maia_kdd_1100",
    "maia_kdd_1200",
    "maia_kdd_1300",
    "maia_kdd_1400",
    "maia_kdd_1500",
    "maia_kdd_1600",
    "maia_kdd_1700",
    "maia_kdd_1800",
    "maia_kdd_1900",
)
DEFAULT_MAIA_MODEL = "maia_kdd_1500"

# Classification flags are only trusted from this depth on.
MIN_STOCKFISH_DEPTH = 12
DEFAULT_TARGET_DEPTH = 18

BLUNDER_THRESHOLD = 0.1
INACCURACY_THRESHOLD = 0.05
EXCELLENT_WINRATE_ADVANTAGE_THRESHOLD = 0.05
MAIA_UNLIKELY_THRESHOLD = 0.1

# Centipawn bands used when win-rate data is missing.
CP_GOOD_THRESHOLD = -50
CP_BLUNDER_THRESHOLD = -150

READY_POLL_INTERVAL = 0.1  # seconds
READY_MAX_RETRIES = 30
OPENING_BOOK_MAX_MOVE = 5


def maia_rating(model: str) -> int:
    """Extract the rating from a model id ('maia_kdd_1500' -> 1500)."""
    digits = model[-4:]
    return int(digits) if digits.isdigit() else 1500
