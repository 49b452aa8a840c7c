"""Pytest configuration."""

import os
import sys
from pathlib import Path

import chess
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from models import MaiaEvaluation, StockfishEvaluation


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: mark test as requiring a live engine or database (skipped in CI by default)"
    )


os.environ.setdefault("DATABASE_URL", "postgresql://localhost:5432/chess_analysis?user=postgres&password=postgres")


AFTER_E4_FEN = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


@pytest.fixture
def start_fen() -> str:
    return chess.STARTING_FEN


@pytest.fixture
def after_e4_fen() -> str:
    return AFTER_E4_FEN


@pytest.fixture
def deep_evaluation() -> StockfishEvaluation:
    """Depth-18 evaluation of the start position with win-rate data."""
    return StockfishEvaluation(
        depth=18,
        model_move="e2e4",
        model_optimal_cp=30,
        cp_vec={"e2e4": 30, "d2d4": 25, "g1f3": 20, "f2f3": -60, "g2g4": -110},
        cp_relative_vec={"e2e4": 0, "d2d4": -5, "g1f3": -10, "f2f3": -90, "g2g4": -140},
        winrate_vec={"e2e4": 0.53, "d2d4": 0.52, "g1f3": 0.51, "f2f3": 0.47, "g2g4": 0.40},
        winrate_loss_vec={"e2e4": 0.0, "d2d4": -0.01, "g1f3": -0.02, "f2f3": -0.06, "g2g4": -0.13},
    )


@pytest.fixture
def maia_table() -> dict[str, MaiaEvaluation]:
    return {
        "maia_kdd_1100": MaiaEvaluation(value=0.5, policy={"e2e4": 0.5, "g2g4": 0.3, "d2d4": 0.2}),
        "maia_kdd_1500": MaiaEvaluation(value=0.52, policy={"e2e4": 0.6, "d2d4": 0.3, "g1f3": 0.05, "f2f3": 0.05}),
        "maia_kdd_1900": MaiaEvaluation(value=0.53, policy={"d2d4": 0.5, "e2e4": 0.4, "g1f3": 0.1}),
    }
