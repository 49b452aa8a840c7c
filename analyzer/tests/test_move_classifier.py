"""Tests for move_classifier.py"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from models import MaiaEvaluation, NodeAnalysis, StockfishEvaluation
from move_classifier import classify_move, is_excellent, reference_evaluation, weighted_average_winrate


def test_best_move_matches_engine_choice(deep_evaluation):
    analysis = NodeAnalysis(stockfish=deep_evaluation)
    assert classify_move(analysis, "e2e4").best_move is True
    assert classify_move(analysis, "d2d4").best_move is False


@pytest.mark.parametrize(
    "loss, blunder, inaccuracy",
    [
        (0.0, False, False),
        (-0.049, False, False),
        (-0.05, False, True),
        (-0.099, False, True),
        (-0.10, True, False),
        (-0.35, True, False),
    ],
)
def test_winrate_loss_bands(loss, blunder, inaccuracy):
    evaluation = StockfishEvaluation(
        depth=12,
        model_move="e2e4",
        cp_vec={"e2e4": 30, "a2a3": 0},
        cp_relative_vec={"e2e4": 0, "a2a3": -30},
        winrate_vec={"e2e4": 0.55, "a2a3": 0.55 + loss},
        winrate_loss_vec={"e2e4": 0.0, "a2a3": loss},
    )
    result = classify_move(NodeAnalysis(stockfish=evaluation), "a2a3")
    assert result.blunder is blunder
    assert result.inaccuracy is inaccuracy


def test_centipawn_fallback_without_winrates():
    evaluation = StockfishEvaluation(
        depth=14,
        model_move="e2e4",
        cp_vec={"e2e4": 30, "f2f3": -100, "g2g4": -140},
        cp_relative_vec={"e2e4": 0, "f2f3": -130, "g2g4": -170},
    )
    analysis = NodeAnalysis(stockfish=evaluation)
    assert classify_move(analysis, "g2g4").blunder is True
    assert classify_move(analysis, "f2f3").blunder is False
    assert classify_move(analysis, "f2f3").excellent is False


def test_shallow_evaluation_yields_no_flags(deep_evaluation):
    deep_evaluation.depth = 11
    result = classify_move(NodeAnalysis(stockfish=deep_evaluation), "e2e4")
    assert not any([result.blunder, result.inaccuracy, result.excellent, result.best_move])


def test_missing_stockfish_yields_no_flags():
    result = classify_move(NodeAnalysis(), "e2e4")
    assert result.best_move is False
    assert result.blunder is False


def test_excellent_requires_unlikely_and_strong_move():
    winrates = {"g1f3": 0.62, "a2a3": 0.45, "h2h3": 0.46}
    overlooked = MaiaEvaluation(policy={"a2a3": 0.6, "h2h3": 0.35, "g1f3": 0.05})
    popular = MaiaEvaluation(policy={"a2a3": 0.5, "g1f3": 0.5})

    assert is_excellent("g1f3", winrates, overlooked) is True
    assert is_excellent("g1f3", winrates, popular) is False
    assert is_excellent("a2a3", winrates, overlooked) is False
    assert is_excellent("g1f3", winrates, None) is False


def test_excellent_requires_move_in_policy():
    winrates = {"g1f3": 0.62, "a2a3": 0.45}
    assert is_excellent("g1f3", winrates, MaiaEvaluation(policy={"a2a3": 1.0})) is False
    assert is_excellent("g1f3", winrates, MaiaEvaluation(policy={"a2a3": 0.99, "g1f3": 0.01})) is True


def test_weighted_average_winrate():
    assert weighted_average_winrate({"a": 0.5, "b": 0.5}, {"a": 0.6, "b": 0.4}) == pytest.approx(0.5)
    assert weighted_average_winrate({"c": 1.0}, {"a": 0.6}) is None


def test_reference_evaluation_falls_back_to_first_level(maia_table):
    assert reference_evaluation(maia_table, "maia_kdd_1500") is maia_table["maia_kdd_1500"]
    assert reference_evaluation(maia_table, "maia_kdd_1300") is maia_table["maia_kdd_1100"]
    assert reference_evaluation(None) is None
