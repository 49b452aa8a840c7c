"""Data models for the position analysis engine."""

from dataclasses import dataclass, field
from typing import Literal

import chess


@dataclass
class MaiaEvaluation:
    """Move-probability output of one skill level."""

    value: float = 0.0
    policy: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data) -> "MaiaEvaluation":
        if isinstance(data, MaiaEvaluation):
            return data
        return cls(value=data.get("value", 0.0), policy=dict(data.get("policy") or {}))


@dataclass
class StockfishEvaluation:
    """One depth of search-engine output. cp_vec is white-positive."""

    depth: int = 0
    model_move: str = ""
    model_optimal_cp: float = 0.0
    cp_vec: dict[str, float] = field(default_factory=dict)
    cp_relative_vec: dict[str, float] = field(default_factory=dict)
    winrate_vec: dict[str, float] | None = None
    winrate_loss_vec: dict[str, float] | None = None

    @classmethod
    def from_dict(cls, data) -> "StockfishEvaluation":
        if isinstance(data, StockfishEvaluation):
            return data
        winrate_vec = data.get("winrate_vec")
        winrate_loss_vec = data.get("winrate_loss_vec")
        return cls(
            depth=data.get("depth", 0),
            model_move=data.get("model_move", ""),
            model_optimal_cp=data.get("model_optimal_cp", 0.0),
            cp_vec=dict(data.get("cp_vec") or {}),
            cp_relative_vec=dict(data.get("cp_relative_vec") or {}),
            winrate_vec=dict(winrate_vec) if winrate_vec is not None else None,
            winrate_loss_vec=dict(winrate_loss_vec) if winrate_loss_vec is not None else None,
        )


@dataclass
class NodeAnalysis:
    maia: dict[str, MaiaEvaluation] | None = None
    stockfish: StockfishEvaluation | None = None


@dataclass
class MoveClassification:
    blunder: bool = False
    inaccuracy: bool = False
    excellent: bool = False
    best_move: bool = False


@dataclass
class PositionNode:
    """One position in the game tree.

    Structure is expressed through ids into the owning PositionGraph:
    parent_node_id is a back-reference only, child_node_ids are owned.
    Classification flags describe the move that led into this node.
    """

    node_id: int
    fen: str
    move: str | None = None
    san: str | None = None
    parent_node_id: int | None = None
    child_node_ids: list[int] = field(default_factory=list)
    main_child_id: int | None = None
    is_mainline: bool = True
    time: float | None = None
    analysis: NodeAnalysis = field(default_factory=NodeAnalysis)
    blunder: bool = False
    inaccuracy: bool = False
    excellent_move: bool = False
    best_move: bool = False
    turn: Literal["w", "b"] = field(init=False)
    check: bool = field(init=False)
    move_number: int = field(init=False)

    def __post_init__(self):
        board = chess.Board(self.fen)
        self.turn = "w" if board.turn == chess.WHITE else "b"
        self.check = board.is_check()
        self.move_number = board.fullmove_number - (1 if self.turn == "w" else 0)

    def apply_classification(self, classification: MoveClassification) -> None:
        self.blunder = classification.blunder
        self.inaccuracy = classification.inaccuracy
        self.excellent_move = classification.excellent
        self.best_move = classification.best_move


@dataclass
class BlunderInfo:
    move: str
    probability: float


@dataclass
class BlunderBucket:
    probability: int = 0
    moves: list[BlunderInfo] = field(default_factory=list)


@dataclass
class BlunderMeterResult:
    """Good / ok / blunder split of a skill level's probability mass, in percent."""

    good_moves: BlunderBucket = field(default_factory=BlunderBucket)
    ok_moves: BlunderBucket = field(default_factory=BlunderBucket)
    blunder_moves: BlunderBucket = field(default_factory=BlunderBucket)


@dataclass
class MaiaRecommendation:
    move: str
    probability: float


@dataclass
class StockfishRecommendation:
    move: str
    cp: float
    winrate: float = 0.0
    winrate_loss: float = 0.0
    cp_relative: float = 0.0


@dataclass
class MoveMapPoint:
    """Scatter point: x is relative eval in pawns [-4, 0], y is probability in percent."""

    move: str
    x: float
    y: float
    raw_cp: float = 0.0
    winrate: float = 0.0
    raw_probability: float = 0.0
    relative_cp: float = 0.0


@dataclass
class AnalysisProgress:
    """Whole-game analysis progress over the mainline."""

    current_move_index: int = 0
    total_moves: int = 0
    current_move: str = ""
    is_analyzing: bool = False
    is_complete: bool = False
    is_cancelled: bool = False
