"""
FastAPI surface for position analysis

Endpoints:
  POST /position/summary  - Blunder meter, ranked moves, moves by rating, move map, colours
  POST /position/describe  - Plain-language description of the position
  GET /games/{game_id}/analysis  - Cached engine analysis for a game
  PUT /games/{game_id}/analysis  - Store engine analysis for a game
"""

import random
import sys
from dataclasses import asdict
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import chess
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from constants import DEFAULT_MAIA_MODEL, MAIA_MODELS
from db import get_connection, load_cached_analysis, save_cached_analysis
from description import describe_position, maia_probability_vectors
from models import MaiaEvaluation, StockfishEvaluation
from move_classifier import classify_move, reference_evaluation
from move_colors import color_san_mapping
from position_graph import PositionGraph
from recommendations import (
    calculate_blunder_meter,
    get_best_moves,
    move_map,
    move_recommendations,
    moves_by_rating,
)
from winrate import evaluation_from_cp_vec, with_winrates

app = FastAPI(title="Chess Position Analysis API", version="1.0.0")


class MaiaPayload(BaseModel):
    value: float = 0.0
    policy: dict[str, float] = {}


class StockfishPayload(BaseModel):
    depth: int
    cp_vec: dict[str, float]
    model_move: str | None = None
    cp_relative_vec: dict[str, float] | None = None
    winrate_vec: dict[str, float] | None = None
    winrate_loss_vec: dict[str, float] | None = None


class PositionRequest(BaseModel):
    fen: str
    maia: dict[str, MaiaPayload] = {}
    stockfish: StockfishPayload | None = None
    reference_level: str = DEFAULT_MAIA_MODEL
    move: str | None = None  # classify this move (UCI) if given
    seed: int | None = None


class CachedEntry(BaseModel):
    ply: int
    fen: str
    maia: dict[str, MaiaPayload] | None = None
    stockfish: dict | None = None


def build_graph(body: PositionRequest) -> PositionGraph:
    """Single-node graph holding the request's evaluation data."""
    try:
        graph = PositionGraph(body.fen)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid FEN: {body.fen}")

    root = graph.root
    if body.maia:
        maia = {level: MaiaEvaluation(value=m.value, policy=dict(m.policy)) for level, m in body.maia.items()}
        graph.add_maia_analysis(root, maia, body.reference_level)
    if body.stockfish is not None:
        graph.add_stockfish_analysis(root, stockfish_evaluation(body.stockfish, root.turn), body.reference_level)
    return graph


def stockfish_evaluation(payload: StockfishPayload, turn: str) -> StockfishEvaluation:
    if payload.cp_relative_vec is None or payload.model_move is None:
        return evaluation_from_cp_vec(payload.cp_vec, turn, payload.depth)
    return with_winrates(StockfishEvaluation.from_dict(payload.model_dump()), turn)


@app.post("/position/summary")
def position_summary(body: PositionRequest):
    graph = build_graph(body)
    root = graph.root
    maia_eval = reference_evaluation(root.analysis.maia, body.reference_level)
    stockfish = root.analysis.stockfish

    recommendations = move_recommendations(root, maia_eval, stockfish)
    maia_best, stockfish_best = get_best_moves(root, body.reference_level)
    response = {
        "fen": root.fen,
        "turn": root.turn,
        "blunder_meter": asdict(calculate_blunder_meter(maia_eval, stockfish)),
        "recommendations": {
            "is_black_turn": recommendations["is_black_turn"],
            "maia": [asdict(r) for r in recommendations.get("maia", [])],
            "stockfish": [asdict(r) for r in recommendations.get("stockfish", [])],
        },
        "moves_by_rating": moves_by_rating(root.analysis.maia, stockfish, body.reference_level),
        "move_map": [asdict(p) for p in move_map(maia_eval, stockfish)],
        "colors": color_san_mapping(stockfish, root.fen),
        "best_moves": {"maia": maia_best, "stockfish": stockfish_best},
    }

    if body.move:
        board = chess.Board(root.fen)
        try:
            move = chess.Move.from_uci(body.move)
        except chess.InvalidMoveError:
            raise HTTPException(status_code=400, detail=f"Invalid move: {body.move}")
        if move not in board.legal_moves:
            raise HTTPException(status_code=400, detail=f"Illegal move: {body.move}")
        classification = classify_move(root.analysis, body.move, body.reference_level)
        response["classification"] = asdict(classification)

    return response


@app.post("/position/describe")
def position_describe(body: PositionRequest):
    graph = build_graph(body)
    root = graph.root
    if root.analysis.stockfish is None or not root.analysis.maia:
        return {"fen": root.fen, "description": ""}

    rng = random.Random(body.seed) if body.seed is not None else None
    description = describe_position(
        root.fen,
        root.analysis.stockfish.cp_vec,
        maia_probability_vectors(root.analysis.maia, MAIA_MODELS),
        root.turn == "w",
        rng=rng,
    )
    return {"fen": root.fen, "description": description}


@app.get("/games/{game_id}/analysis")
def get_game_analysis(game_id: str):
    with get_connection() as conn:
        entries = load_cached_analysis(conn, game_id)
    if not entries:
        raise HTTPException(status_code=404, detail="No cached analysis for this game")
    return {"game_id": game_id, "entries": entries}


@app.put("/games/{game_id}/analysis")
def put_game_analysis(game_id: str, entries: list[CachedEntry]):
    payload = [entry.model_dump(exclude_none=True) for entry in entries]
    with get_connection() as conn:
        saved = save_cached_analysis(conn, game_id, payload)
    return {"game_id": game_id, "saved": saved}


@app.get("/health")
def health():
    return {"status": "ok"}
