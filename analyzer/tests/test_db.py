"""Tests for db.py"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

from psycopg.types.json import Jsonb

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from db import ensure_schema, get_connection_string, load_cached_analysis, save_cached_analysis

START = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


def make_conn(rows=None):
    conn = MagicMock()
    cur = MagicMock()
    cur.fetchall.return_value = rows or []
    conn.cursor.return_value.__enter__.return_value = cur
    return conn, cur


def test_connection_string_from_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://db:5432/games")
    assert get_connection_string() == "postgresql://db:5432/games"


def test_ensure_schema_creates_table():
    conn, cur = make_conn()
    ensure_schema(conn)
    assert "CREATE TABLE IF NOT EXISTS engine_analysis" in cur.execute.call_args.args[0]


def test_save_wraps_payloads_as_jsonb():
    conn, cur = make_conn()
    entries = [
        {"ply": 0, "fen": START, "stockfish": {"depth": 16, "cp_vec": {"e2e4": 30}}},
        {"ply": 1, "fen": START, "maia": {"maia_kdd_1500": {"value": 0.5, "policy": {}}}},
    ]

    assert save_cached_analysis(conn, "g1", entries) == 2
    assert cur.execute.call_count == 2

    first = cur.execute.call_args_list[0].args[1]
    assert first[:3] == ("g1", 0, START)
    assert first[3] is None
    assert isinstance(first[4], Jsonb)
    second = cur.execute.call_args_list[1].args[1]
    assert isinstance(second[3], Jsonb)
    assert second[4] is None


def test_load_builds_entries_in_ply_order():
    maia = {"maia_kdd_1500": {"value": 0.5, "policy": {"e2e4": 1.0}}}
    stockfish = {"depth": 16, "cp_vec": {"e2e4": 30}}
    conn, cur = make_conn(rows=[(0, START, None, stockfish), (1, START, maia, None)])

    entries = load_cached_analysis(conn, "g1")

    assert entries == [
        {"ply": 0, "fen": START, "stockfish": stockfish},
        {"ply": 1, "fen": START, "maia": maia},
    ]
    assert cur.execute.call_args.args[1] == ("g1",)
