"""
Centipawn to win-rate conversion.

cp_to_winrate is the expected score for the side the centipawns favour.
wdl splits a pawn advantage into win and draw probabilities for the
position description.
"""

import math
from dataclasses import replace

from models import StockfishEvaluation

CP_CLAMP = 1000
WINRATE_SLOPE = 0.00368208

# Win-probability curve in pawns: offset and spread of the logistic.
WDL_OFFSET = 1.0
WDL_SCALE = 0.8


def cp_to_winrate(cp: float) -> float:
    """Expected score in [0, 1] for a centipawn advantage, clamped to +-10 pawns."""
    clamped = max(-CP_CLAMP, min(CP_CLAMP, cp))
    return 1 / (1 + math.exp(-WINRATE_SLOPE * clamped))


def win_probability(pawns: float) -> float:
    return 1 / (1 + math.exp(-(pawns - WDL_OFFSET) / WDL_SCALE))


def wdl(pawns: float) -> tuple[float, float, float]:
    """(win, draw, loss) for an advantage measured in pawns."""
    w = win_probability(pawns)
    loss = win_probability(-pawns)
    return w, 1 - w - loss, loss


def evaluation_from_cp_vec(cp_vec: dict[str, float], turn: str, depth: int) -> StockfishEvaluation:
    """Rebuild a full search evaluation from a white-positive per-move table."""
    if not cp_vec:
        return StockfishEvaluation(depth=depth, winrate_vec={}, winrate_loss_vec={})

    sign = -1 if turn == "b" else 1
    best_move = max(cp_vec, key=lambda m: sign * cp_vec[m])
    best_cp = cp_vec[best_move]

    cp_relative_vec = {m: sign * (cp - best_cp) for m, cp in cp_vec.items()}
    winrate_vec = {m: cp_to_winrate(sign * cp) for m, cp in cp_vec.items()}
    best_winrate = max(winrate_vec.values())
    winrate_loss_vec = {m: wr - best_winrate for m, wr in winrate_vec.items()}

    order = sorted(cp_vec, key=lambda m: sign * cp_vec[m], reverse=True)
    return StockfishEvaluation(
        depth=depth,
        model_move=best_move,
        model_optimal_cp=best_cp,
        cp_vec={m: cp_vec[m] for m in order},
        cp_relative_vec={m: cp_relative_vec[m] for m in order},
        winrate_vec={m: winrate_vec[m] for m in order},
        winrate_loss_vec={m: winrate_loss_vec[m] for m in order},
    )


def with_winrates(evaluation: StockfishEvaluation, turn: str) -> StockfishEvaluation:
    """Fill in win-rate fields when the engine did not provide them."""
    if evaluation.winrate_vec is not None and evaluation.winrate_loss_vec is not None:
        return evaluation
    derived = evaluation_from_cp_vec(evaluation.cp_vec, turn, evaluation.depth)
    return replace(
        evaluation,
        winrate_vec=derived.winrate_vec,
        winrate_loss_vec=derived.winrate_loss_vec,
        cp_relative_vec=evaluation.cp_relative_vec or derived.cp_relative_vec,
        model_move=evaluation.model_move or derived.model_move,
    )
