"""
Contracts for the external evaluation sources.

The scheduler only depends on these protocols; the concrete adapters are
StockfishStream (UCI engine) and LichessOpeningBook (opening explorer).
The move-probability model is supplied by the host application.
"""

from typing import Any, AsyncIterator, Literal, Protocol

MaiaStatus = Literal["loading", "no-cache", "downloading", "ready", "error"]
StockfishStatus = Literal["loading", "ready", "error"]


class MaiaEngine(Protocol):
    status: MaiaStatus

    async def batch_evaluate(
        self, fens: list[str], rating_levels: list[int], thresholds: list[float]
    ) -> dict[str, Any]:
        """Return {"result": [{"value", "policy"}, ...], "time": ms}, one result per fen."""
        ...


class StockfishEngine(Protocol):
    status: StockfishStatus

    def stream_evaluations(
        self, fen: str, legal_move_count: int
    ) -> AsyncIterator[dict[str, Any]] | None:
        """Progressively deeper evaluations until stopped, or None if nothing can be analyzed."""
        ...

    def stop_evaluation(self) -> None:
        ...


class OpeningBook(Protocol):
    async def get_book_moves(self, fen: str) -> dict[str, dict[str, float]]:
        """Skill level -> {uci: probability}. Levels without book data may map to {}."""
        ...
