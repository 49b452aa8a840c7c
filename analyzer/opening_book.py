"""
Opening-book adapter over the Lichess Opening Explorer.

Each skill level is served by the explorer rating bucket at or below its
rating; the book policy of a level is the share of games in which each
move was played.
"""

import logging
import os

import httpx

from constants import MAIA_MODELS, maia_rating

logger = logging.getLogger(__name__)

LICHESS_EXPLORER_URL = os.environ.get("LICHESS_EXPLORER_URL", "https://explorer.lichess.ovh/lichess")
EXPLORER_RATING_BUCKETS = (0, 1000, 1200, 1400, 1600, 1800, 2000, 2200, 2500)
MIN_BOOK_GAMES = 1


class RateLimitedError(Exception):
    pass


def rating_bucket(rating: int) -> int:
    """Largest explorer bucket not above `rating`."""
    eligible = [b for b in EXPLORER_RATING_BUCKETS if b <= rating]
    return eligible[-1] if eligible else EXPLORER_RATING_BUCKETS[0]


def policy_from_explorer(data: dict, min_games: int = MIN_BOOK_GAMES) -> dict[str, float]:
    """{uci: share of games} from an explorer response, most played first."""
    totals = {}
    for move_data in data.get("moves", []):
        uci = move_data.get("uci")
        if not uci:
            continue
        total = move_data.get("white", 0) + move_data.get("draws", 0) + move_data.get("black", 0)
        if total >= min_games:
            totals[uci] = total
    games = sum(totals.values())
    if not games:
        return {}
    return {uci: total / games for uci, total in sorted(totals.items(), key=lambda kv: kv[1], reverse=True)}


async def lichess_explorer_moves(
    fen: str,
    rating: int,
    session: httpx.AsyncClient,
    token: str | None = None,
    url: str = LICHESS_EXPLORER_URL,
) -> dict:
    """Fetch moves played from `fen` in Lichess games of one rating bucket."""
    headers = {"Authorization": f"Bearer {token}"} if token else None
    resp = await session.get(url, params={"fen": fen, "ratings": str(rating)}, headers=headers)
    if resp.status_code == 429:
        raise RateLimitedError("Rate limited (429)")
    resp.raise_for_status()
    return resp.json()


class LichessOpeningBook:
    def __init__(
        self,
        session: httpx.AsyncClient,
        skill_levels: tuple[str, ...] = MAIA_MODELS,
        token: str | None = None,
        min_games: int = MIN_BOOK_GAMES,
        url: str = LICHESS_EXPLORER_URL,
    ):
        self.session = session
        self.skill_levels = tuple(skill_levels)
        self.token = token if token is not None else os.environ.get("LICHESS_TOKEN")
        self.min_games = min_games
        self.url = url

    async def get_book_moves(self, fen: str) -> dict[str, dict[str, float]]:
        by_bucket: dict[int, dict[str, float]] = {}
        book = {}
        for level in self.skill_levels:
            bucket = rating_bucket(maia_rating(level))
            if bucket not in by_bucket:
                data = await lichess_explorer_moves(fen, bucket, self.session, self.token, self.url)
                by_bucket[bucket] = policy_from_explorer(data, self.min_games)
                logger.debug("book %s bucket %d: %d moves", fen, bucket, len(by_bucket[bucket]))
            book[level] = dict(by_bucket[bucket])
        return book
