"""Tests for position_graph.py"""

import sys
from pathlib import Path

import chess
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from models import MaiaEvaluation, StockfishEvaluation
from position_graph import PositionGraph
from winrate import evaluation_from_cp_vec


def fen_after(fen: str, *ucis: str) -> str:
    board = chess.Board(fen)
    for uci in ucis:
        board.push_uci(uci)
    return board.fen()


def test_add_main_move_from_start(start_fen, after_e4_fen):
    graph = PositionGraph()
    node = graph.add_main_move(graph.root, after_e4_fen, "e2e4", "e4")

    assert node.move == "e2e4"
    assert node.san == "e4"
    assert node.is_mainline is True
    assert graph.main_child(graph.root) is node
    assert graph.parent(node) is graph.root
    assert graph.root.move is None


def test_node_derived_fields(after_e4_fen):
    graph = PositionGraph()
    node = graph.add_main_move(graph.root, after_e4_fen, "e2e4", "e4")
    assert graph.root.turn == "w"
    assert graph.root.move_number == 0
    assert node.turn == "b"
    assert node.move_number == 1
    assert node.check is False


def test_add_main_move_demotes_previous_main_child(start_fen):
    graph = PositionGraph()
    e4 = graph.add_main_move(graph.root, fen_after(start_fen, "e2e4"), "e2e4", "e4")
    d4 = graph.add_main_move(graph.root, fen_after(start_fen, "d2d4"), "d2d4", "d4")

    assert graph.main_child(graph.root) is d4
    assert e4.is_mainline is False
    assert [n.move for n in graph.get_main_line()] == [None, "d2d4"]


def test_add_main_move_same_move_returns_existing(after_e4_fen):
    graph = PositionGraph()
    first = graph.add_main_move(graph.root, after_e4_fen, "e2e4", "e4")
    second = graph.add_main_move(graph.root, after_e4_fen, "e2e4", "e4")
    assert first is second
    assert len(graph.children(graph.root)) == 1


def test_add_main_move_promotes_existing_variation(start_fen):
    graph = PositionGraph()
    d4 = graph.add_main_move(graph.root, fen_after(start_fen, "d2d4"), "d2d4", "d4")
    e4 = graph.add_variation(graph.root, fen_after(start_fen, "e2e4"), "e2e4", "e4")

    again = graph.add_main_move(graph.root, fen_after(start_fen, "e2e4"), "e2e4", "e4")

    assert again is e4
    assert [c.move for c in graph.children(graph.root)] == ["d2d4", "e2e4"]
    assert graph.main_child(graph.root) is e4
    assert e4.is_mainline is True
    assert d4.is_mainline is False
    assert graph.find_variation(graph.root, "d2d4") is d4


def test_add_variation_is_idempotent(after_e4_fen):
    graph = PositionGraph()
    before = len(graph.children(graph.root))
    first = graph.add_variation(graph.root, after_e4_fen, "e2e4", "e4")
    second = graph.add_variation(graph.root, after_e4_fen, "e2e4", "e4")

    assert first is second
    assert len(graph.children(graph.root)) == before + 1
    assert first.is_mainline is False
    assert graph.main_child(graph.root) is None


def test_promote_variation_swaps_main_child(start_fen):
    graph = PositionGraph()
    e4 = graph.add_main_move(graph.root, fen_after(start_fen, "e2e4"), "e2e4", "e4")
    d4 = graph.add_variation(graph.root, fen_after(start_fen, "d2d4"), "d2d4", "d4")

    assert graph.promote_variation(graph.root, "d2d4") is True
    assert graph.main_child(graph.root) is d4
    assert d4.is_mainline is True
    assert e4.is_mainline is False


def test_promote_missing_variation_fails(after_e4_fen):
    graph = PositionGraph()
    e4 = graph.add_main_move(graph.root, after_e4_fen, "e2e4", "e4")

    assert graph.promote_variation(graph.root, "c2c4") is False
    assert graph.main_child(graph.root) is e4
    assert e4.is_mainline is True


def test_remove_variation_discards_subtree(start_fen):
    graph = PositionGraph()
    graph.add_main_move(graph.root, fen_after(start_fen, "e2e4"), "e2e4", "e4")
    d4 = graph.add_variation(graph.root, fen_after(start_fen, "d2d4"), "d2d4", "d4")
    d5 = graph.add_main_move(d4, fen_after(start_fen, "d2d4", "d7d5"), "d7d5", "d5")
    size_before = len(graph)

    assert graph.remove_variation(graph.root, "d2d4") is True
    assert len(graph) == size_before - 2
    assert d4 not in graph
    assert d5 not in graph
    assert [c.move for c in graph.children(graph.root)] == ["e2e4"]
    assert graph.remove_variation(graph.root, "d2d4") is False


def test_remove_variation_ignores_main_child(after_e4_fen):
    graph = PositionGraph()
    graph.add_main_move(graph.root, after_e4_fen, "e2e4", "e4")
    assert graph.remove_variation(graph.root, "e2e4") is False
    assert graph.main_child(graph.root) is not None


def test_foreign_node_is_rejected(after_e4_fen):
    graph = PositionGraph()
    other = PositionGraph()
    with pytest.raises(KeyError):
        graph.add_main_move(other.root, after_e4_fen, "e2e4", "e4")


def test_get_main_line_and_path():
    graph = PositionGraph()
    last = graph.add_moves_to_main_line(["e2e4", "e7e5", "g1f3"])
    line = graph.get_main_line()

    assert [n.san for n in line[1:]] == ["e4", "e5", "Nf3"]
    assert graph.get_last_mainline_node() is last
    assert graph.get_path(last) == line
    assert graph.get_main_line(line[2]) == line[2:]


def test_add_move_to_main_line_rejects_illegal_moves():
    graph = PositionGraph()
    assert graph.add_move_to_main_line("e2e5") is None
    assert graph.add_move_to_main_line("zz") is None
    assert graph.add_moves_to_main_line(["e2e4", "e2e4"]) is None
    assert graph.to_move_array() == ["e2e4"]


def test_move_and_time_arrays():
    graph = PositionGraph()
    graph.add_moves_to_main_line(["e2e4", "e7e5", "g1f3"], times=[1.5, 2.0])
    assert graph.to_move_array() == ["e2e4", "e7e5", "g1f3"]
    assert graph.to_time_array() == [1.5, 2.0, 0]


def test_headers_for_custom_start_position():
    fen = "4k3/8/8/8/8/8/4P3/4K3 w - - 0 1"
    graph = PositionGraph(fen)
    assert graph.get_header("SetUp") == "1"
    assert graph.get_header("FEN") == fen
    assert PositionGraph().get_header("FEN") is None


def test_to_pgn_exports_mainline_only(start_fen):
    graph = PositionGraph()
    graph.set_header("White", "Alice")
    graph.add_moves_to_main_line(["e2e4", "e7e5"])
    graph.add_variation(graph.root, fen_after(start_fen, "d2d4"), "d2d4", "d4")

    pgn = graph.to_pgn()
    assert '[White "Alice"]' in pgn
    assert "1. e4 e5" in pgn
    assert "d4" not in pgn


def test_shallower_stockfish_evaluation_is_rejected():
    graph = PositionGraph()
    deep = StockfishEvaluation(depth=10, model_move="e2e4", cp_vec={"e2e4": 30})
    shallow = StockfishEvaluation(depth=8, model_move="d2d4", cp_vec={"d2d4": 40})

    assert graph.add_stockfish_analysis(graph.root, deep) is True
    assert graph.add_stockfish_analysis(graph.root, shallow) is False
    assert graph.root.analysis.stockfish.depth == 10
    assert graph.root.analysis.stockfish.model_move == "e2e4"


def test_equal_depth_evaluation_is_accepted():
    graph = PositionGraph()
    graph.add_stockfish_analysis(graph.root, StockfishEvaluation(depth=12, model_move="e2e4"))
    assert graph.add_stockfish_analysis(graph.root, StockfishEvaluation(depth=12, model_move="d2d4"))
    assert graph.root.analysis.stockfish.model_move == "d2d4"


def test_shallow_write_leaves_classification_unchanged(start_fen, deep_evaluation):
    graph = PositionGraph()
    g4 = graph.add_main_move(graph.root, fen_after(start_fen, "g2g4"), "g2g4", "g4")
    graph.add_stockfish_analysis(graph.root, deep_evaluation)
    assert g4.blunder is True

    shallow = evaluation_from_cp_vec({"g2g4": 50, "e2e4": 20}, "w", 14)
    graph.add_stockfish_analysis(graph.root, shallow)
    assert g4.blunder is True
    assert g4.best_move is False


def test_children_reclassified_on_deeper_evaluation(start_fen, deep_evaluation):
    graph = PositionGraph()
    e4 = graph.add_main_move(graph.root, fen_after(start_fen, "e2e4"), "e2e4", "e4")
    f3 = graph.add_variation(graph.root, fen_after(start_fen, "f2f3"), "f2f3", "f3")

    graph.add_stockfish_analysis(graph.root, StockfishEvaluation(depth=8, model_move="e2e4"))
    assert e4.best_move is False

    graph.add_stockfish_analysis(graph.root, deep_evaluation)
    assert e4.best_move is True
    assert f3.inaccuracy is True
    assert f3.blunder is False


def test_new_child_classified_when_parent_already_analyzed(start_fen, deep_evaluation):
    graph = PositionGraph()
    graph.add_stockfish_analysis(graph.root, deep_evaluation)
    g4 = graph.add_variation(graph.root, fen_after(start_fen, "g2g4"), "g2g4", "g4")
    assert g4.blunder is True


def test_maia_write_reclassifies_excellent_moves(start_fen):
    graph = PositionGraph()
    nf3 = graph.add_main_move(graph.root, fen_after(start_fen, "g1f3"), "g1f3", "Nf3")
    evaluation = StockfishEvaluation(
        depth=16,
        model_move="g1f3",
        cp_vec={"g1f3": 40, "a2a3": -100},
        cp_relative_vec={"g1f3": 0, "a2a3": -140},
        winrate_vec={"g1f3": 0.60, "a2a3": 0.40},
        winrate_loss_vec={"g1f3": 0.0, "a2a3": -0.20},
    )
    graph.add_stockfish_analysis(graph.root, evaluation)
    assert nf3.excellent_move is False

    graph.add_maia_analysis(
        graph.root, {"maia_kdd_1500": MaiaEvaluation(value=0.5, policy={"a2a3": 0.95, "g1f3": 0.05})}
    )
    assert nf3.excellent_move is True


def test_remove_all_children():
    graph = PositionGraph()
    graph.add_moves_to_main_line(["e2e4", "e7e5"])
    graph.remove_all_children(graph.root)
    assert len(graph) == 1
    assert graph.main_child(graph.root) is None
