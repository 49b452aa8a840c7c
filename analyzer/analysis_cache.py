"""
Compact snapshots of a game's engine analysis.

Only the white-positive centipawn table and depth of each search evaluation
are kept; relative scores, win rates and the best move are rebuilt on
restore. Entries are keyed by ply along the mainline.
"""

import logging

from constants import DEFAULT_MAIA_MODEL
from models import MaiaEvaluation
from position_graph import PositionGraph
from winrate import evaluation_from_cp_vec

logger = logging.getLogger(__name__)


def collect_engine_analysis(graph: PositionGraph) -> list[dict]:
    """One entry per mainline node that has any analysis."""
    entries = []
    for ply, node in enumerate(graph.get_main_line()):
        maia = node.analysis.maia
        stockfish = node.analysis.stockfish
        if not maia and stockfish is None:
            continue

        entry = {"ply": ply, "fen": node.fen}
        if maia:
            entry["maia"] = {
                level: {"value": evaluation.value, "policy": dict(evaluation.policy)}
                for level, evaluation in maia.items()
            }
        if stockfish is not None:
            entry["stockfish"] = {"depth": stockfish.depth, "cp_vec": dict(stockfish.cp_vec)}
        entries.append(entry)
    return entries


def restore_engine_analysis(
    graph: PositionGraph, entries: list[dict], reference_level: str = DEFAULT_MAIA_MODEL
) -> int:
    """Write cached entries back onto the mainline. Returns the number of nodes restored.

    Entries whose ply is past the mainline or whose FEN no longer matches are skipped.
    """
    main_line = graph.get_main_line()
    restored = 0
    for entry in entries:
        ply = entry.get("ply", -1)
        if not 0 <= ply < len(main_line):
            continue
        node = main_line[ply]
        if entry.get("fen") and entry["fen"] != node.fen:
            logger.warning("Cached analysis for ply %d does not match the game, skipping", ply)
            continue

        if entry.get("maia"):
            maia = {level: MaiaEvaluation.from_dict(data) for level, data in entry["maia"].items()}
            graph.add_maia_analysis(node, maia, reference_level)

        stockfish = entry.get("stockfish")
        if stockfish and stockfish.get("cp_vec"):
            evaluation = evaluation_from_cp_vec(stockfish["cp_vec"], node.turn, stockfish.get("depth", 0))
            graph.add_stockfish_analysis(node, evaluation, reference_level)
        restored += 1
    return restored
