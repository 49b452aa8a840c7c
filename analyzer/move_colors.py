"""
Move colours from win-rate loss.

Good moves (loss <= 5%) are green, getting duller as the loss grows.
Inaccuracies (5-10%) run from yellow to orange. Blunders are red and
darken until the loss reaches 30%.
"""

import colorsys

import chess

from constants import BLUNDER_THRESHOLD, INACCURACY_THRESHOLD
from models import StockfishEvaluation

NEUTRAL_COLOR = "#f5f5f0"

# Loss beyond which red stops darkening.
RED_CEILING = 0.30
# 100 centipawns of relative eval count as 0.10 of win-rate loss.
CP_PER_UNIT_LOSS = 1000

GREEN_HUE = 140
GREEN_SATURATION = (80, 45)
GREEN_LIGHTNESS = (50, 35)

YELLOW_HUE = 38
YELLOW_SATURATION = (75, 95)
YELLOW_LIGHTNESS = (55, 45)

RED_HUE = 0
RED_SATURATION = (75, 90)
RED_LIGHTNESS = (48, 25)


def _lerp(bounds: tuple[float, float], t: float) -> float:
    start, end = bounds
    return start + (end - start) * t


def hsl_for_loss(loss: float) -> tuple[float, float, float]:
    """(hue degrees, saturation %, lightness %) for an absolute win-rate loss."""
    loss = abs(loss)
    if loss <= INACCURACY_THRESHOLD:
        t = loss / INACCURACY_THRESHOLD
        eased = 1 - (1 - t) ** 3
        return GREEN_HUE, _lerp(GREEN_SATURATION, eased), _lerp(GREEN_LIGHTNESS, eased)
    if loss <= BLUNDER_THRESHOLD:
        t = (loss - INACCURACY_THRESHOLD) / (BLUNDER_THRESHOLD - INACCURACY_THRESHOLD)
        eased = t * t
        return YELLOW_HUE, _lerp(YELLOW_SATURATION, eased), _lerp(YELLOW_LIGHTNESS, eased)
    if loss >= RED_CEILING:
        t = 1.0
    else:
        t = (loss - BLUNDER_THRESHOLD) / (RED_CEILING - BLUNDER_THRESHOLD)
    return RED_HUE, _lerp(RED_SATURATION, t), _lerp(RED_LIGHTNESS, t)


def hsl_to_hex(hue: float, saturation: float, lightness: float) -> str:
    r, g, b = colorsys.hls_to_rgb(hue / 360, lightness / 100, saturation / 100)
    return "#{:02x}{:02x}{:02x}".format(round(r * 255), round(g * 255), round(b * 255))


def color_for_loss(loss: float) -> str:
    return hsl_to_hex(*hsl_for_loss(loss))


def move_loss(stockfish: StockfishEvaluation | None, move: str) -> float | None:
    """Absolute win-rate loss of a move, approximated from centipawns when needed."""
    if stockfish is None:
        return None
    if stockfish.winrate_loss_vec is not None and move in stockfish.winrate_loss_vec:
        return abs(stockfish.winrate_loss_vec[move])
    if move in stockfish.cp_relative_vec:
        return abs(stockfish.cp_relative_vec[move]) / CP_PER_UNIT_LOSS
    return None


def calculate_move_color(stockfish: StockfishEvaluation | None, move: str) -> str:
    loss = move_loss(stockfish, move)
    if loss is None:
        return NEUTRAL_COLOR
    return color_for_loss(loss)


def color_san_mapping(stockfish: StockfishEvaluation | None, fen: str) -> dict[str, dict[str, str]]:
    """uci -> {"san", "color"} for every legal move of the position."""
    board = chess.Board(fen)
    mapping = {}
    for move in board.legal_moves:
        uci = move.uci()
        mapping[uci] = {"san": board.san(move), "color": calculate_move_color(stockfish, uci)}
    return mapping
