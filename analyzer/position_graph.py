"""
Game tree of analyzed positions.

Nodes live in a flat store keyed by node_id. A parent owns its children
through child_node_ids; parent_node_id only points back up. All structural
changes and all evaluation writes go through PositionGraph so the mainline
and classification invariants hold after every call.
"""

import chess
import chess.pgn

from constants import DEFAULT_MAIA_MODEL, MIN_STOCKFISH_DEPTH, STARTING_FEN
from models import MaiaEvaluation, NodeAnalysis, PositionNode, StockfishEvaluation
from move_classifier import classify_move


class PositionGraph:
    def __init__(self, initial_fen: str = STARTING_FEN):
        self._nodes: dict[int, PositionNode] = {}
        self._next_id = 0
        self.headers: dict[str, str] = {}
        self.root = self._create_node(initial_fen)

        if initial_fen != STARTING_FEN:
            self.headers["SetUp"] = "1"
            self.headers["FEN"] = initial_fen

    def _create_node(self, fen: str, **kwargs) -> PositionNode:
        node = PositionNode(node_id=self._next_id, fen=fen, **kwargs)
        self._nodes[node.node_id] = node
        self._next_id += 1
        return node

    def _get(self, node: PositionNode) -> PositionNode:
        stored = self._nodes.get(node.node_id)
        if stored is not node:
            raise KeyError(f"node {node.node_id} does not belong to this graph")
        return stored

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node: PositionNode) -> bool:
        return self._nodes.get(node.node_id) is node

    # Headers

    def set_header(self, key: str, value: str) -> None:
        self.headers[key] = value

    def get_header(self, key: str) -> str | None:
        return self.headers.get(key)

    # Navigation

    def get_node(self, node_id: int) -> PositionNode:
        return self._nodes[node_id]

    def parent(self, node: PositionNode) -> PositionNode | None:
        node = self._get(node)
        if node.parent_node_id is None:
            return None
        return self._nodes[node.parent_node_id]

    def children(self, node: PositionNode) -> list[PositionNode]:
        return [self._nodes[i] for i in self._get(node).child_node_ids]

    def main_child(self, node: PositionNode) -> PositionNode | None:
        node = self._get(node)
        if node.main_child_id is None:
            return None
        return self._nodes[node.main_child_id]

    def get_variations(self, node: PositionNode) -> list[PositionNode]:
        return [child for child in self.children(node) if not child.is_mainline]

    def find_variation(self, node: PositionNode, move: str) -> PositionNode | None:
        for child in self.get_variations(node):
            if child.move == move:
                return child
        return None

    def get_main_line(self, node: PositionNode | None = None) -> list[PositionNode]:
        """Nodes from `node` (default root) following main-child links to a leaf."""
        current = self._get(node) if node is not None else self.root
        line = [current]
        while current.main_child_id is not None:
            current = self._nodes[current.main_child_id]
            line.append(current)
        return line

    def get_last_mainline_node(self) -> PositionNode:
        return self.get_main_line()[-1]

    def get_path(self, node: PositionNode) -> list[PositionNode]:
        """Nodes from the root down to `node`."""
        path = [self._get(node)]
        while path[-1].parent_node_id is not None:
            path.append(self._nodes[path[-1].parent_node_id])
        return path[::-1]

    # Structure

    def _add_child(
        self,
        node: PositionNode,
        fen: str,
        move: str,
        san: str,
        mainline: bool,
        reference_level: str | None,
        time: float | None,
    ) -> PositionNode:
        child = self._create_node(
            fen, move=move, san=san, parent_node_id=node.node_id, is_mainline=mainline, time=time
        )
        node.child_node_ids.append(child.node_id)
        if mainline:
            previous = self.main_child(node)
            if previous is not None:
                previous.is_mainline = False
            node.main_child_id = child.node_id

        child.apply_classification(classify_move(node.analysis, move, reference_level))
        return child

    def add_main_move(
        self,
        node: PositionNode,
        fen: str,
        move: str,
        san: str,
        reference_level: str | None = DEFAULT_MAIA_MODEL,
        time: float | None = None,
    ) -> PositionNode:
        """Attach a new main child. An existing main child is demoted to a variation.

        If the move is already a variation it is promoted and returned instead.
        """
        node = self._get(node)
        current = self.main_child(node)
        if current is not None and current.move == move:
            return current
        if self.promote_variation(node, move):
            return self.main_child(node)
        return self._add_child(node, fen, move, san, True, reference_level, time)

    def add_variation(
        self,
        node: PositionNode,
        fen: str,
        move: str,
        san: str,
        reference_level: str | None = DEFAULT_MAIA_MODEL,
        time: float | None = None,
    ) -> PositionNode:
        node = self._get(node)
        existing = self.find_variation(node, move)
        if existing is not None:
            return existing
        return self._add_child(node, fen, move, san, False, reference_level, time)

    def promote_variation(self, node: PositionNode, move: str) -> bool:
        node = self._get(node)
        variation = self.find_variation(node, move)
        if variation is None:
            return False
        previous = self.main_child(node)
        if previous is not None:
            previous.is_mainline = False
        variation.is_mainline = True
        node.main_child_id = variation.node_id
        return True

    def _discard_subtree(self, node_id: int) -> None:
        stack = [node_id]
        while stack:
            removed = self._nodes.pop(stack.pop())
            stack.extend(removed.child_node_ids)

    def remove_variation(self, node: PositionNode, move: str) -> bool:
        node = self._get(node)
        variation = self.find_variation(node, move)
        if variation is None:
            return False
        node.child_node_ids.remove(variation.node_id)
        self._discard_subtree(variation.node_id)
        return True

    def remove_all_children(self, node: PositionNode) -> None:
        node = self._get(node)
        for child_id in node.child_node_ids:
            self._discard_subtree(child_id)
        node.child_node_ids = []
        node.main_child_id = None

    def set_time(self, node: PositionNode, time: float) -> None:
        self._get(node).time = time

    def add_move_to_main_line(self, move_uci: str, time: float | None = None) -> PositionNode | None:
        """Play a UCI move after the last mainline node. Returns None if it is not legal."""
        last = self.get_last_mainline_node()
        board = chess.Board(last.fen)
        try:
            move = chess.Move.from_uci(move_uci)
        except chess.InvalidMoveError:
            return None
        if move not in board.legal_moves:
            return None
        san = board.san(move)
        board.push(move)
        return self.add_main_move(last, board.fen(), move_uci, san, time=time)

    def add_moves_to_main_line(
        self, moves: list[str], times: list[float] | None = None
    ) -> PositionNode | None:
        current = None
        for i, move in enumerate(moves):
            time = times[i] if times and i < len(times) else None
            current = self.add_move_to_main_line(move, time)
            if current is None:
                return None
        return current

    # Evaluation writes

    def _classify_children(self, node: PositionNode, reference_level: str | None) -> None:
        for child in self.children(node):
            if child.move:
                child.apply_classification(classify_move(node.analysis, child.move, reference_level))

    def add_stockfish_analysis(
        self,
        node: PositionNode,
        evaluation: StockfishEvaluation,
        reference_level: str | None = DEFAULT_MAIA_MODEL,
    ) -> bool:
        """Store a search evaluation unless it is shallower than the stored one."""
        node = self._get(node)
        stored = node.analysis.stockfish
        if stored is not None and evaluation.depth < stored.depth:
            return False
        node.analysis.stockfish = evaluation
        if evaluation.depth >= MIN_STOCKFISH_DEPTH:
            self._classify_children(node, reference_level)
        return True

    def add_maia_analysis(
        self,
        node: PositionNode,
        maia: dict[str, MaiaEvaluation],
        reference_level: str | None = DEFAULT_MAIA_MODEL,
    ) -> None:
        node = self._get(node)
        node.analysis.maia = maia
        stockfish = node.analysis.stockfish
        if stockfish is not None and stockfish.depth >= MIN_STOCKFISH_DEPTH:
            self._classify_children(node, reference_level)

    def clear_analysis(self, node: PositionNode) -> None:
        node = self._get(node)
        node.analysis = NodeAnalysis()
        for child in self.children(node):
            child.blunder = child.inaccuracy = child.excellent_move = child.best_move = False

    # Serialization

    def to_move_array(self) -> list[str]:
        return [node.move for node in self.get_main_line()[1:] if node.move]

    def to_time_array(self) -> list[float]:
        return [node.time or 0 for node in self.get_main_line()[1:]]

    def to_game(self) -> chess.pgn.Game:
        game = chess.pgn.Game()
        board = chess.Board(self.root.fen)
        if self.root.fen != STARTING_FEN:
            game.setup(board)
        for key, value in self.headers.items():
            game.headers[key] = value

        game_node = game
        for node in self.get_main_line()[1:]:
            move = chess.Move.from_uci(node.move)
            game_node = game_node.add_main_variation(move)
        return game

    def to_pgn(self) -> str:
        exporter = chess.pgn.StringExporter(headers=True, variations=False, comments=False)
        return self.to_game().accept(exporter)
