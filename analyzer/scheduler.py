"""
Evaluation scheduling for the node under inspection.

Obtains move-probability tables for every skill level and a stream of
search evaluations for one position at a time, and writes them into the
PositionGraph. Everything runs as asyncio tasks on a single event loop;
the graph is the only shared state and is mutated from those tasks only.
"""

import asyncio
import logging
from typing import Callable

import chess

from constants import (
    DEFAULT_MAIA_MODEL,
    DEFAULT_TARGET_DEPTH,
    MAIA_MODELS,
    OPENING_BOOK_MAX_MOVE,
    READY_MAX_RETRIES,
    READY_POLL_INTERVAL,
    maia_rating,
)
from engines import MaiaEngine, OpeningBook, StockfishEngine
from models import AnalysisProgress, MaiaEvaluation, PositionNode, StockfishEvaluation
from position_graph import PositionGraph
from winrate import with_winrates

logger = logging.getLogger(__name__)


async def wait_until_ready(
    engine,
    interval: float = READY_POLL_INTERVAL,
    max_retries: int = READY_MAX_RETRIES,
    should_stop: Callable[[], bool] | None = None,
) -> bool:
    """Poll engine.status until it is "ready". Returns False after max_retries polls."""
    retries = 0
    while retries < max_retries and engine.status != "ready":
        if should_stop is not None and should_stop():
            return False
        await asyncio.sleep(interval)
        retries += 1
    return engine.status == "ready"


def merge_book_moves(
    evaluations: dict[str, MaiaEvaluation],
    book_moves: dict[str, dict[str, float]],
) -> dict[str, MaiaEvaluation]:
    """Replace each level's policy with its book table when the book has one."""
    merged = {}
    for level, evaluation in evaluations.items():
        source = book_moves.get(level) or evaluation.policy
        policy = dict(sorted(source.items(), key=lambda kv: kv[1], reverse=True))
        merged[level] = MaiaEvaluation(value=evaluation.value, policy=policy)
    return merged


class EvaluationScheduler:
    def __init__(
        self,
        graph: PositionGraph,
        maia: MaiaEngine,
        stockfish: StockfishEngine,
        opening_book: OpeningBook | None = None,
        *,
        skill_levels: tuple[str, ...] = MAIA_MODELS,
        reference_level: str = DEFAULT_MAIA_MODEL,
        target_depth: int = DEFAULT_TARGET_DEPTH,
        poll_interval: float = READY_POLL_INTERVAL,
        max_retries: int = READY_MAX_RETRIES,
        opening_book_max_move: int = OPENING_BOOK_MAX_MOVE,
        on_update: Callable[[PositionNode], None] | None = None,
    ):
        self.graph = graph
        self.maia = maia
        self.stockfish = stockfish
        self.opening_book = opening_book
        self.skill_levels = tuple(skill_levels)
        self.reference_level = reference_level
        self.target_depth = target_depth
        self.poll_interval = poll_interval
        self.max_retries = max_retries
        self.opening_book_max_move = opening_book_max_move
        self.on_update = on_update

        # FENs with a move-probability request in flight.
        self.in_progress: set[str] = set()
        self.current_node: PositionNode | None = None
        self.progress = AnalysisProgress()
        self._cancelled = False
        self._maia_task: asyncio.Task | None = None
        self._stockfish_task: asyncio.Task | None = None

    def _notify(self, node: PositionNode) -> None:
        if self.on_update is not None:
            self.on_update(node)

    def set_current_node(self, node: PositionNode) -> tuple[asyncio.Task, asyncio.Task]:
        """Switch the node under inspection and start analyzing it.

        The previous search stream is stopped. A move-probability request
        already in flight for the previous node is left to finish and its
        result is still stored on that node.
        """
        self.stockfish.stop_evaluation()
        if self._stockfish_task is not None and not self._stockfish_task.done():
            self._stockfish_task.cancel()

        self.current_node = node
        self._maia_task = asyncio.create_task(self.analyze_maia(node))
        self._stockfish_task = asyncio.create_task(self.analyze_stockfish(node))
        return self._maia_task, self._stockfish_task

    async def analyze(self, node: PositionNode) -> None:
        self.current_node = node
        await asyncio.gather(self.analyze_maia(node), self.analyze_stockfish(node))

    async def evaluate_all_ratings(self, fen: str, move_number: int) -> dict[str, MaiaEvaluation]:
        """One batched call for every skill level, merged with the opening book early on."""
        ratings = [maia_rating(level) for level in self.skill_levels]
        batch = self.maia.batch_evaluate([fen] * len(ratings), ratings, ratings)

        book_moves: dict[str, dict[str, float]] = {}
        if self.opening_book is not None and move_number <= self.opening_book_max_move:
            response, book_result = await asyncio.gather(
                batch, self.opening_book.get_book_moves(fen), return_exceptions=True
            )
            if isinstance(response, BaseException):
                raise response
            if isinstance(book_result, BaseException):
                logger.warning("Opening book lookup failed for %s: %s", fen, book_result)
            else:
                book_moves = book_result
        else:
            response = await batch

        results = response["result"]
        evaluations = {
            level: MaiaEvaluation.from_dict(results[i]) for i, level in enumerate(self.skill_levels)
        }
        if not book_moves:
            return evaluations
        return merge_book_moves(evaluations, book_moves)

    async def analyze_maia(self, node: PositionNode) -> None:
        fen = node.fen
        if node.analysis.maia or fen in self.in_progress:
            return

        ready = await wait_until_ready(self.maia, self.poll_interval, self.max_retries)
        if not ready:
            logger.warning("Maia not ready after waiting, skipping analysis of %s", fen)
            return
        if node.analysis.maia or fen in self.in_progress:
            return

        self.in_progress.add(fen)
        try:
            evaluations = await self.evaluate_all_ratings(fen, node.move_number)
            self.graph.add_maia_analysis(node, evaluations, self.reference_level)
            self._notify(node)
        except Exception:
            logger.exception("Maia analysis failed for %s", fen)
        finally:
            self.in_progress.discard(fen)

    def _has_target_depth(self, node: PositionNode) -> bool:
        stockfish = node.analysis.stockfish
        return stockfish is not None and stockfish.depth >= self.target_depth

    async def analyze_stockfish(self, node: PositionNode) -> None:
        if self._has_target_depth(node):
            return

        ready = await wait_until_ready(
            self.stockfish,
            self.poll_interval,
            self.max_retries,
            should_stop=lambda: self.current_node is not node,
        )
        if not ready:
            if self.current_node is node:
                logger.warning("Stockfish not ready after waiting, skipping analysis of %s", node.fen)
            return

        board = chess.Board(node.fen)
        stream = self.stockfish.stream_evaluations(node.fen, board.legal_moves.count())
        if stream is None:
            return

        try:
            async for item in stream:
                if self._cancelled or self.current_node is not node:
                    break
                evaluation = with_winrates(StockfishEvaluation.from_dict(item), node.turn)
                if self.graph.add_stockfish_analysis(node, evaluation, self.reference_level):
                    self._notify(node)
                if evaluation.depth >= self.target_depth:
                    self.stockfish.stop_evaluation()
                    break
        except Exception:
            logger.exception("Stockfish analysis failed for %s", node.fen)

    async def analyze_mainline(
        self, on_progress: Callable[[AnalysisProgress], None] | None = None
    ) -> AnalysisProgress:
        """Analyze every mainline position in order, each to the target depth."""
        if self.progress.is_analyzing:
            return self.progress

        self._cancelled = False
        main_line = self.graph.get_main_line()
        self.progress = AnalysisProgress(total_moves=len(main_line), is_analyzing=True)

        for i, node in enumerate(main_line):
            if self._cancelled:
                break
            self.progress.current_move_index = i + 1
            self.progress.current_move = node.san or node.move or f"Position {i + 1}"
            if on_progress is not None:
                on_progress(self.progress)
            await self.analyze(node)

        self.progress.is_analyzing = False
        self.progress.is_complete = not self._cancelled
        self.progress.is_cancelled = self._cancelled
        self.current_node = None
        if on_progress is not None:
            on_progress(self.progress)
        return self.progress

    def cancel_analysis(self) -> None:
        self._cancelled = True
        self.stockfish.stop_evaluation()
