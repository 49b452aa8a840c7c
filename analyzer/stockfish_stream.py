#!/usr/bin/env python3
"""
Search-engine adapter over a UCI binary.

Runs Stockfish with MultiPV set to the number of legal moves so every move
gets a score at every depth, and yields one StockfishEvaluation per
completed depth.

Usage:
  python stockfish_stream.py "<fen>" --depth 16
  STOCKFISH_PATH=/usr/bin/stockfish python stockfish_stream.py "<fen>"
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import AsyncIterator

import chess
import chess.engine

sys.path.insert(0, str(Path(__file__).resolve().parent))
from constants import DEFAULT_TARGET_DEPTH
from models import StockfishEvaluation
from move_colors import calculate_move_color
from winrate import evaluation_from_cp_vec

logger = logging.getLogger(__name__)

MATE_CP = 10000


def score_to_cp(score: chess.engine.PovScore) -> float:
    """Convert a PovScore to centipawns from White's perspective. Mate is +-10000."""
    white_score = score.white()
    if white_score.is_mate():
        m = white_score.mate()
        return MATE_CP if m > 0 else -MATE_CP
    return white_score.score()


class DepthCollector:
    """Groups MultiPV info lines by depth and emits a depth once every move is scored."""

    def __init__(self, board: chess.Board, legal_move_count: int):
        self.board = board
        self.legal_move_count = legal_move_count
        self.turn = "w" if board.turn == chess.WHITE else "b"
        self._depth: int | None = None
        self._cp_vec: dict[str, float] = {}
        self._last_emitted = 0

    def add(self, info: dict) -> StockfishEvaluation | None:
        depth = info.get("depth")
        multipv = info.get("multipv", 1)
        score = info.get("score")
        pv = info.get("pv")
        if depth is None or score is None or not pv:
            return None

        if depth != self._depth:
            self._depth = depth
            self._cp_vec = {}
        self._cp_vec[pv[0].uci()] = score_to_cp(score)

        if multipv != self.legal_move_count or depth <= self._last_emitted:
            return None
        self._last_emitted = depth
        return evaluation_from_cp_vec(self._cp_vec, self.turn, depth)


class StockfishStream:
    def __init__(self, path: str | None = None, max_depth: int | None = None):
        self.path = path or os.environ.get("STOCKFISH_PATH", "stockfish")
        self.max_depth = max_depth or int(os.environ.get("STOCKFISH_MAX_DEPTH", DEFAULT_TARGET_DEPTH))
        self.status = "loading"
        self._transport = None
        self._engine: chess.engine.Protocol | None = None
        self._analysis: chess.engine.AnalysisResult | None = None

    async def start(self) -> bool:
        try:
            self._transport, self._engine = await chess.engine.popen_uci(self.path)
        except (FileNotFoundError, chess.engine.EngineError) as e:
            logger.error("Could not start Stockfish at %s: %s", self.path, e)
            self.status = "error"
            return False
        self.status = "ready"
        return True

    async def close(self) -> None:
        self.stop_evaluation()
        if self._engine is not None:
            await self._engine.quit()
            self._engine = None
        self.status = "loading"

    def stream_evaluations(
        self, fen: str, legal_move_count: int
    ) -> AsyncIterator[StockfishEvaluation] | None:
        if self._engine is None or self.status != "ready" or legal_move_count <= 0:
            return None
        return self._stream(chess.Board(fen), legal_move_count)

    async def _stream(
        self, board: chess.Board, legal_move_count: int
    ) -> AsyncIterator[StockfishEvaluation]:
        self.stop_evaluation()
        analysis = await self._engine.analysis(
            board, chess.engine.Limit(depth=self.max_depth), multipv=legal_move_count
        )
        self._analysis = analysis
        collector = DepthCollector(board, legal_move_count)
        try:
            async for info in analysis:
                evaluation = collector.add(info)
                if evaluation is not None:
                    logger.debug("depth %d for %s", evaluation.depth, board.fen())
                    yield evaluation
        finally:
            analysis.stop()
            if self._analysis is analysis:
                self._analysis = None

    def stop_evaluation(self) -> None:
        if self._analysis is not None:
            self._analysis.stop()
            self._analysis = None


async def analyse_fen(fen: str, depth: int, path: str) -> StockfishEvaluation | None:
    engine = StockfishStream(path, depth)
    if not await engine.start():
        return None
    board = chess.Board(fen)
    best = None
    try:
        stream = engine.stream_evaluations(fen, board.legal_moves.count())
        if stream is not None:
            async for evaluation in stream:
                best = evaluation
                print(f"depth {evaluation.depth}: {evaluation.model_move}", file=sys.stderr)
    finally:
        await engine.close()
    return best


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("fen", nargs="?", default=chess.STARTING_FEN)
    parser.add_argument("--depth", type=int, default=DEFAULT_TARGET_DEPTH)
    args = parser.parse_args()
    path = os.environ.get("STOCKFISH_PATH", "stockfish")

    try:
        board = chess.Board(args.fen)
    except ValueError as e:
        print(f"Invalid FEN: {e}", file=sys.stderr)
        sys.exit(1)

    evaluation = asyncio.run(analyse_fen(args.fen, args.depth, path))
    if evaluation is None:
        print("Stockfish not found. Install it or set STOCKFISH_PATH.", file=sys.stderr)
        sys.exit(1)

    for uci, cp in evaluation.cp_vec.items():
        san = board.san(chess.Move.from_uci(uci))
        loss = evaluation.winrate_loss_vec.get(uci, 0.0)
        color = calculate_move_color(evaluation, uci)
        print(f"{san:8} {cp:+7.0f}  loss {loss:+.3f}  {color}")


if __name__ == "__main__":
    main()
