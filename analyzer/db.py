"""Database layer for cached engine analysis."""

import os
from contextlib import contextmanager

import psycopg
from psycopg.types.json import Jsonb

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS engine_analysis (
    game_id TEXT NOT NULL,
    ply INTEGER NOT NULL,
    fen TEXT NOT NULL,
    maia JSONB,
    stockfish JSONB,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (game_id, ply)
)
"""


def get_connection_string() -> str:
    """Get database connection string from environment."""
    return os.environ.get(
        "DATABASE_URL",
        "postgresql://localhost:5432/chess_analysis?user=postgres&password=postgres",
    )


@contextmanager
def get_connection():
    """Context manager for database connections."""
    conn = psycopg.connect(get_connection_string())
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def ensure_schema(conn: psycopg.Connection) -> None:
    with conn.cursor() as cur:
        cur.execute(SCHEMA_SQL)


def save_cached_analysis(conn: psycopg.Connection, game_id: str, entries: list[dict]) -> int:
    """Upsert analysis entries for a game. Deeper stored search results are kept."""
    with conn.cursor() as cur:
        for entry in entries:
            maia = entry.get("maia")
            stockfish = entry.get("stockfish")
            cur.execute(
                """
                INSERT INTO engine_analysis (game_id, ply, fen, maia, stockfish)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (game_id, ply) DO UPDATE SET
                    fen = EXCLUDED.fen,
                    maia = COALESCE(EXCLUDED.maia, engine_analysis.maia),
                    stockfish = CASE
                        WHEN engine_analysis.stockfish IS NULL THEN EXCLUDED.stockfish
                        WHEN EXCLUDED.stockfish IS NULL THEN engine_analysis.stockfish
                        WHEN (EXCLUDED.stockfish->>'depth')::int >= (engine_analysis.stockfish->>'depth')::int
                            THEN EXCLUDED.stockfish
                        ELSE engine_analysis.stockfish
                    END,
                    updated_at = NOW()
                """,
                (
                    game_id,
                    entry["ply"],
                    entry["fen"],
                    Jsonb(maia) if maia else None,
                    Jsonb(stockfish) if stockfish else None,
                ),
            )
    return len(entries)


def load_cached_analysis(conn: psycopg.Connection, game_id: str) -> list[dict]:
    """Entries for a game ordered by ply, in the shape collect_engine_analysis produces."""
    with conn.cursor() as cur:
        cur.execute(
            "SELECT ply, fen, maia, stockfish FROM engine_analysis WHERE game_id = %s ORDER BY ply",
            (game_id,),
        )
        rows = cur.fetchall()
    entries = []
    for ply, fen, maia, stockfish in rows:
        entry = {"ply": ply, "fen": fen}
        if maia:
            entry["maia"] = maia
        if stockfish:
            entry["stockfish"] = stockfish
        entries.append(entry)
    return entries
