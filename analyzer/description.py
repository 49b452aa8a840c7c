"""
Plain-language description of a position.

Says how many moves keep the evaluation, what they achieve, how likely
players of each skill level are to find them, and whether the position
hides a popular blunder. Word choice is drawn from small phrase banks
through an injectable random source.
"""

import random
from collections import Counter

import chess

from constants import MAIA_MODELS, MIN_STOCKFISH_DEPTH
from models import MaiaEvaluation, PositionNode
from winrate import cp_to_winrate, wdl

EPS = 0.08
TRAP_GAP = 0.10
TREACHEROUS_SHARE = 0.4

NO_LEGAL_MOVES = "No legal moves available."

OUTCOME_CRUSHING = "to keep a crushing advantage"
OUTCOME_CLEARLY_BETTER = "to stay clearly better"
OUTCOME_EDGE = "to keep an edge"
OUTCOME_BALANCE = "to keep the balance"
OUTCOME_HOLD = "to hold the position"
OUTCOME_SURVIVE = "to keep fighting to survive"

MANY_MOVES = ("several moves", "a number of moves", "multiple moves", "plenty of moves")

FINDABILITY = (
    ("hard for players to find", "difficult to spot", "easy to overlook at most levels"),
    ("findable for skilled players", "within reach of stronger players", "found mostly by experienced players"),
    (
        "straightforward for players across skill levels to find",
        "natural for most players",
        "easy to find at every level",
    ),
)

TRAP_WARNINGS = (
    "Watch out for {san}, a popular move that gives a lot away.",
    "Many players go for {san} here, which is a serious mistake.",
    "Beware of {san}: it looks natural but loses ground.",
)
TREACHEROUS_WARNINGS = (
    "The position is highly treacherous: most of the moves players choose here lose ground.",
    "This is a highly treacherous position where players frequently go wrong.",
)
TEMPTATIONS = (
    "{san} is a tempting alternative.",
    "Players are often tempted by {san}.",
    "{san} is a plausible-looking alternative.",
)

_default_rng = random.Random()


def _tier(count: int) -> int:
    if count <= 2:
        return 0
    if count <= 6:
        return 1
    return 2


def _san(board: chess.Board, uci: str) -> str | None:
    try:
        return board.san(chess.Move.from_uci(uci))
    except ValueError:
        return None


def _outcome(average_cp: float) -> str:
    if average_cp > 250:
        return OUTCOME_CRUSHING
    if average_cp > 100:
        return OUTCOME_CLEARLY_BETTER
    if average_cp > 35:
        return OUTCOME_EDGE
    if average_cp >= -35:
        return OUTCOME_BALANCE
    if average_cp >= -100:
        return OUTCOME_HOLD
    return OUTCOME_SURVIVE


def describe_position(
    fen: str,
    cp_vec: dict[str, float],
    maia_vectors: dict[str, list[float]],
    white_to_move: bool,
    eps: float = EPS,
    rng=None,
) -> str:
    """Describe a position from white-positive engine scores and per-level probabilities.

    maia_vectors maps each move to its probability at every skill level, in
    the same level order for all moves.
    """
    rng = rng or _default_rng
    board = chess.Board(fen)
    legal = {move.uci() for move in board.legal_moves}
    moves = [m for m in cp_vec if m in legal]
    if not moves:
        return NO_LEGAL_MOVES

    sign = 1 if white_to_move else -1
    seval = {m: sign * cp_vec[m] for m in moves}
    opt = max(moves, key=lambda m: seval[m])
    w_opt, d_opt, _ = wdl(seval[opt] / 100)

    win = {}
    good = []
    for m in moves:
        w, d, _ = wdl(seval[m] / 100)
        win[m] = w
        if abs(w - w_opt) <= eps and abs(d - d_opt) <= eps:
            good.append(m)
    good_set = set(good)
    n_good = len(good)

    if n_good == 1:
        abundance = "only one move"
    elif n_good == 2:
        abundance = "two moves"
    else:
        abundance = rng.choice(MANY_MOVES)

    move_list = ""
    if n_good <= 3:
        ranked_good = sorted(good, key=lambda m: seval[m], reverse=True)
        sans = [s for s in (_san(board, m) for m in ranked_good) if s]
        if sans:
            move_list = f" ({', '.join(sans)})"

    outcome = _outcome(sum(seval[m] for m in good) / n_good)

    levels = max((len(v) for v in maia_vectors.values()), default=0)
    set_levels = 0
    opt_levels = 0
    near_misses: Counter = Counter()
    for lvl in range(levels):
        probs = sorted(
            ((_probability(maia_vectors, m, lvl), m) for m in moves),
            key=lambda pm: pm[0],
            reverse=True,
        )
        p1, m1 = probs[0]
        if m1 in good_set:
            set_levels += 1
        if m1 == opt:
            opt_levels += 1
        for p, m in probs[1:3]:
            if m not in good_set and p1 - p <= eps:
                near_misses[m] += 1

    set_tier = _tier(set_levels)
    opt_tier = _tier(opt_levels)

    verb = "is" if n_good == 1 else "are"
    pronoun = "it is" if n_good == 1 else "they are"
    text = f"There {verb} {abundance}{move_list} {outcome}, and {pronoun} {rng.choice(FINDABILITY[set_tier])}"

    runner_up = sorted((m for m in good if m != opt), key=lambda m: win[m], reverse=True)
    if opt_tier < set_tier and runner_up and w_opt - win[runner_up[0]] > eps / 2:
        best_phrase = rng.choice(FINDABILITY[opt_tier])
        if opt_tier == 1:
            best_phrase = "only " + best_phrase
        opt_san = _san(board, opt)
        best = f"the best move {opt_san}" if opt_san else "the best move"
        text += f", but {best} is {best_phrase}"
    text += "."

    tail = _trap_warning(board, moves, good_set, opt, seval, maia_vectors, levels, rng)
    if tail is None and set_tier != 2 and near_misses:
        san = _san(board, near_misses.most_common(1)[0][0])
        if san:
            tail = rng.choice(TEMPTATIONS).format(san=san)
    if tail:
        text += " " + tail
    return text


def _probability(maia_vectors: dict[str, list[float]], move: str, lvl: int) -> float:
    vector = maia_vectors.get(move) or []
    return vector[lvl] if lvl < len(vector) else 0.0


def _trap_warning(board, moves, good_set, opt, seval, maia_vectors, levels, rng) -> str | None:
    mass = {m: sum(_probability(maia_vectors, m, lvl) for lvl in range(levels)) for m in moves}
    total = sum(mass.values())
    if total <= 0:
        return None

    outside = [m for m in moves if m not in good_set and mass[m] > 0]
    if not outside:
        return None

    wr_opt = cp_to_winrate(seval[opt])
    losing = [m for m in outside if wr_opt - cp_to_winrate(seval[m]) > TRAP_GAP]
    trap = max(outside, key=lambda m: mass[m])
    if trap not in losing:
        return None

    if sum(mass[m] for m in losing) / total > TREACHEROUS_SHARE:
        return rng.choice(TREACHEROUS_WARNINGS)
    san = _san(board, trap)
    if san is None:
        return None
    return rng.choice(TRAP_WARNINGS).format(san=san)


def maia_probability_vectors(
    maia: dict[str, MaiaEvaluation], skill_levels: tuple[str, ...] = MAIA_MODELS
) -> dict[str, list[float]]:
    """Per-move probability vectors across skill levels (0 where a level lacks the move)."""
    moves: list[str] = []
    for level in skill_levels:
        if level in maia:
            for move in maia[level].policy:
                if move not in moves:
                    moves.append(move)
    return {
        move: [maia[level].policy.get(move, 0.0) if level in maia else 0.0 for level in skill_levels]
        for move in moves
    }


def describe_node(node: PositionNode, skill_levels: tuple[str, ...] = MAIA_MODELS, rng=None) -> str:
    """Description for a graph node, or "" until both evaluation sources are in."""
    stockfish = node.analysis.stockfish
    if stockfish is None or stockfish.depth < MIN_STOCKFISH_DEPTH or not node.analysis.maia:
        return ""
    return describe_position(
        node.fen,
        stockfish.cp_vec,
        maia_probability_vectors(node.analysis.maia, skill_levels),
        node.turn == "w",
        rng=rng,
    )
