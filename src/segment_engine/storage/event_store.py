"""Append-only audit event store."""
from __future__ import annotations

import json

from src.shared.db.connection import ConnectionPool
from src.shared.models.segments import EventType, SegmentEvent


class EventStore:
    """Stores :class:`SegmentEvent` rows in the ``events`` table."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def store(self, event: SegmentEvent) -> None:
        with self._pool.transaction() as conn:
            conn.execute(
                """
                INSERT INTO events
                    (type, created_by, data_json, pre_data_json, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    event.type.value,
                    event.created_by,
                    json.dumps(event.data),
                    json.dumps(event.pre_data) if event.pre_data is not None else None,
                    event.created_at.isoformat(),
                ),
            )

    def get_events(self, type: EventType | None = None) -> list[SegmentEvent]:
        """Return stored events oldest first, optionally filtered by type."""
        sql = "SELECT * FROM events"
        params: tuple = ()
        if type is not None:
            sql += " WHERE type = ?"
            params = (type.value,)
        sql += " ORDER BY id"

        with self._pool.transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [
            SegmentEvent(
                type=EventType(row["type"]),
                created_by=row["created_by"],
                data=json.loads(row["data_json"]),
                pre_data=(
                    json.loads(row["pre_data_json"])
                    if row["pre_data_json"] is not None
                    else None
                ),
                created_at=row["created_at"],
            )
            for row in rows
        ]
