"""
Aggregate views of one node's evaluation data: blunder meter, ranked move
lists, the moves-by-rating matrix and the move-map scatter points.
"""

import math

from constants import (
    BLUNDER_THRESHOLD,
    CP_BLUNDER_THRESHOLD,
    CP_GOOD_THRESHOLD,
    DEFAULT_MAIA_MODEL,
    INACCURACY_THRESHOLD,
    MAIA_MODELS,
    maia_rating,
)
from models import (
    BlunderBucket,
    BlunderInfo,
    BlunderMeterResult,
    MaiaEvaluation,
    MaiaRecommendation,
    MoveMapPoint,
    PositionNode,
    StockfishEvaluation,
    StockfishRecommendation,
)

MOVE_MAP_MIN_X = -4.0


def _band(stockfish: StockfishEvaluation, move: str) -> str | None:
    """'good', 'ok' or 'blunder' for a move, or None if the engine has not scored it."""
    if stockfish.winrate_loss_vec is not None:
        loss = stockfish.winrate_loss_vec.get(move)
        if loss is None:
            return None
        # same magnitude rule as move classification
        if abs(loss) < INACCURACY_THRESHOLD:
            return "good"
        if abs(loss) < BLUNDER_THRESHOLD:
            return "ok"
        return "blunder"

    relative = stockfish.cp_relative_vec.get(move)
    if relative is None:
        return None
    if relative >= CP_GOOD_THRESHOLD:
        return "good"
    if relative >= CP_BLUNDER_THRESHOLD:
        return "ok"
    return "blunder"


def largest_remainder(values: list[float], total: int = 100) -> list[int]:
    """Integer percentages summing to `total`, rounded by largest fractional part.

    All-zero input stays all zero.
    """
    raw_total = sum(values)
    if raw_total <= 0:
        return [0] * len(values)
    scaled = [v * total / raw_total for v in values]
    floored = [math.floor(v) for v in scaled]
    order = sorted(range(len(values)), key=lambda i: scaled[i] - floored[i], reverse=True)
    remaining = total - sum(floored)
    for i in range(max(remaining, 0)):
        floored[order[i % len(order)]] += 1
    return floored


def calculate_blunder_meter(
    maia: MaiaEvaluation | None, stockfish: StockfishEvaluation | None
) -> BlunderMeterResult:
    if maia is None or stockfish is None:
        return BlunderMeterResult()

    moves: dict[str, list[BlunderInfo]] = {"good": [], "ok": [], "blunder": []}
    totals = {"good": 0.0, "ok": 0.0, "blunder": 0.0}
    for move, prob in maia.policy.items():
        band = _band(stockfish, move)
        if band is None:
            continue
        probability = prob * 100
        totals[band] += probability
        moves[band].append(BlunderInfo(move=move, probability=probability))

    good, ok, blunder = largest_remainder([totals["good"], totals["ok"], totals["blunder"]])
    return BlunderMeterResult(
        good_moves=BlunderBucket(probability=good, moves=moves["good"]),
        ok_moves=BlunderBucket(probability=ok, moves=moves["ok"]),
        blunder_moves=BlunderBucket(probability=blunder, moves=moves["blunder"]),
    )


def move_recommendations(
    node: PositionNode | None,
    maia: MaiaEvaluation | None,
    stockfish: StockfishEvaluation | None,
) -> dict:
    """Ranked model and engine move lists for display."""
    result: dict = {"is_black_turn": node is not None and node.turn == "b"}

    if maia is not None:
        ranked = sorted(maia.policy.items(), key=lambda kv: kv[1], reverse=True)
        result["maia"] = [MaiaRecommendation(move=m, probability=p) for m, p in ranked]

    if stockfish is not None:
        winrate_vec = stockfish.winrate_vec or {}
        winrate_loss_vec = stockfish.winrate_loss_vec or {}
        ranked = sorted(
            stockfish.cp_vec, key=lambda m: stockfish.cp_relative_vec.get(m, 0), reverse=True
        )
        result["stockfish"] = [
            StockfishRecommendation(
                move=m,
                cp=stockfish.cp_vec[m],
                winrate=winrate_vec.get(m, 0.0),
                winrate_loss=winrate_loss_vec.get(m, 0.0),
                cp_relative=stockfish.cp_relative_vec.get(m, 0.0),
            )
            for m in ranked
        ]

    return result


def _top_moves(policy: dict[str, float], n: int) -> list[str]:
    return [m for m, _ in sorted(policy.items(), key=lambda kv: kv[1], reverse=True)[:n]]


def moves_by_rating(
    maia: dict[str, MaiaEvaluation] | None,
    stockfish: StockfishEvaluation | None,
    reference_level: str = DEFAULT_MAIA_MODEL,
    skill_levels: tuple[str, ...] = MAIA_MODELS,
) -> list[dict[str, float]]:
    """One row per skill level: {"rating": 1500, move: probability %, ...}."""
    if not maia:
        return []

    candidates: list[str] = []

    def add(move: str) -> None:
        if move not in candidates:
            candidates.append(move)

    if reference_level in maia:
        for move in _top_moves(maia[reference_level].policy, 3):
            add(move)
    if stockfish is not None:
        ranked = sorted(
            stockfish.cp_vec, key=lambda m: stockfish.cp_relative_vec.get(m, 0), reverse=True
        )
        for move in ranked[:3]:
            add(move)
    for level in skill_levels:
        if level in maia:
            for move in _top_moves(maia[level].policy, 1):
                add(move)

    rows = []
    for level in skill_levels:
        if level not in maia:
            continue
        policy = maia[level].policy
        row: dict[str, float] = {"rating": maia_rating(level)}
        for move in candidates:
            row[move] = policy.get(move, 0.0) * 100
        rows.append(row)
    return rows


def move_map(maia: MaiaEvaluation | None, stockfish: StockfishEvaluation | None) -> list[MoveMapPoint]:
    if maia is None or stockfish is None:
        return []

    points = []
    for move, prob in maia.policy.items():
        relative = stockfish.cp_relative_vec.get(move)
        if relative is None:
            continue
        points.append(
            MoveMapPoint(
                move=move,
                x=max(MOVE_MAP_MIN_X, min(0.0, relative / 100)),
                y=prob * 100,
                raw_cp=stockfish.cp_vec.get(move, 0.0),
                winrate=(stockfish.winrate_vec or {}).get(move, 0.0),
                raw_probability=prob,
                relative_cp=relative,
            )
        )
    return points


def get_best_moves(
    node: PositionNode | None, reference_level: str = DEFAULT_MAIA_MODEL
) -> tuple[str | None, str | None]:
    """(most probable model move, engine best move for the side to move)."""
    if node is None:
        return None, None

    maia_best = None
    maia = node.analysis.maia
    if maia and reference_level in maia and maia[reference_level].policy:
        policy = maia[reference_level].policy
        maia_best = max(policy, key=policy.get)

    stockfish_best = None
    stockfish = node.analysis.stockfish
    if stockfish is not None and stockfish.cp_vec:
        sign = -1 if node.turn == "b" else 1
        stockfish_best = max(stockfish.cp_vec, key=lambda m: sign * stockfish.cp_vec[m])

    return maia_best, stockfish_best
