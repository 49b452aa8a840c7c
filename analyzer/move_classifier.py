"""
Move quality tags from a parent position's evaluation data.

Blunder and inaccuracy compare a move's win rate against the best move in
the same position. Excellent compares it against the average win rate of a
reference skill level, weighted by that level's move probabilities, and
requires the level to have mostly overlooked the move.
"""

from constants import (
    BLUNDER_THRESHOLD,
    CP_BLUNDER_THRESHOLD,
    DEFAULT_MAIA_MODEL,
    EXCELLENT_WINRATE_ADVANTAGE_THRESHOLD,
    INACCURACY_THRESHOLD,
    MAIA_UNLIKELY_THRESHOLD,
    MIN_STOCKFISH_DEPTH,
)
from models import MaiaEvaluation, MoveClassification, NodeAnalysis


def reference_evaluation(
    maia: dict[str, MaiaEvaluation] | None, reference_level: str | None = None
) -> MaiaEvaluation | None:
    """Pick the reference level's table, falling back to the first level present."""
    if not maia:
        return None
    if reference_level and reference_level in maia:
        return maia[reference_level]
    return next(iter(maia.values()))


def weighted_average_winrate(policy: dict[str, float], winrate_vec: dict[str, float]) -> float | None:
    total_weight = 0.0
    weighted = 0.0
    for move, probability in policy.items():
        winrate = winrate_vec.get(move)
        if winrate is None:
            continue
        weighted += probability * winrate
        total_weight += probability
    if total_weight <= 0:
        return None
    return weighted / total_weight


def is_excellent(move: str, winrate_vec: dict[str, float], maia_eval: MaiaEvaluation | None) -> bool:
    if maia_eval is None or move not in winrate_vec or move not in maia_eval.policy:
        return False
    if maia_eval.policy[move] > MAIA_UNLIKELY_THRESHOLD:
        return False
    average = weighted_average_winrate(maia_eval.policy, winrate_vec)
    if average is None:
        return False
    return winrate_vec[move] - average >= EXCELLENT_WINRATE_ADVANTAGE_THRESHOLD


def classify_move(
    analysis: NodeAnalysis, move: str, reference_level: str | None = DEFAULT_MAIA_MODEL
) -> MoveClassification:
    """Classify `move` played from the position that `analysis` belongs to."""
    stockfish = analysis.stockfish
    if stockfish is None or stockfish.depth < MIN_STOCKFISH_DEPTH or not move:
        return MoveClassification()

    result = MoveClassification(best_move=move == stockfish.model_move)

    if stockfish.winrate_vec is not None and stockfish.winrate_loss_vec is not None:
        loss = stockfish.winrate_loss_vec.get(move)
        if loss is not None:
            result.blunder = abs(loss) >= BLUNDER_THRESHOLD
            result.inaccuracy = not result.blunder and abs(loss) >= INACCURACY_THRESHOLD
        result.excellent = is_excellent(
            move, stockfish.winrate_vec, reference_evaluation(analysis.maia, reference_level)
        )
    else:
        relative = stockfish.cp_relative_vec.get(move)
        result.blunder = relative is not None and relative < CP_BLUNDER_THRESHOLD

    return result
