"""Database schema initialization for the segment engine."""
from __future__ import annotations

from src.shared.db.connection import ConnectionPool


def init_segments_db(pool: ConnectionPool) -> None:
    """Initialize the segments, strategies, link and event tables."""
    conn = pool.get()
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS segments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            example TEXT,
            project TEXT,
            constraints_json TEXT NOT NULL DEFAULT '[]',
            created_by TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );
        CREATE INDEX IF NOT EXISTS idx_segments_project ON segments(project);

        CREATE TABLE IF NOT EXISTS feature_strategies (
            id TEXT PRIMARY KEY,
            feature_name TEXT NOT NULL,
            project_id TEXT NOT NULL,
            strategy_name TEXT NOT NULL DEFAULT 'default',
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );
        CREATE INDEX IF NOT EXISTS idx_strategies_project ON feature_strategies(project_id);

        CREATE TABLE IF NOT EXISTS feature_strategy_segment (
            feature_strategy_id TEXT NOT NULL
                REFERENCES feature_strategies(id) ON DELETE CASCADE,
            segment_id INTEGER NOT NULL
                REFERENCES segments(id) ON DELETE CASCADE,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            PRIMARY KEY (feature_strategy_id, segment_id)
        );
        CREATE INDEX IF NOT EXISTS idx_fss_segment ON feature_strategy_segment(segment_id);

        CREATE TABLE IF NOT EXISTS events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            type TEXT NOT NULL
                CHECK(type IN ('segment-created','segment-updated','segment-deleted')),
            created_by TEXT NOT NULL,
            data_json TEXT NOT NULL,
            pre_data_json TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );
        CREATE INDEX IF NOT EXISTS idx_events_type ON events(type);
    """)
    conn.commit()
