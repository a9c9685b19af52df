"""Segment store -- CRUD and strategy links on the ``segments`` tables."""
from __future__ import annotations

import json
import logging
import sqlite3

from src.shared.db.connection import ConnectionPool
from src.shared.errors import NotFoundError
from src.shared.models.segments import (
    Actor,
    ClientSegment,
    Constraint,
    Segment,
    SegmentInput,
)
from src.shared.utils import now_iso

logger = logging.getLogger(__name__)

_SEGMENT_COLUMNS = (
    "s.id, s.name, s.description, s.example, s.project, "
    "s.constraints_json, s.created_by, s.created_at"
)


class SegmentStore:
    """Persists segments and their many-to-many links to strategies."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _dump_constraints(segment: SegmentInput) -> str:
        return json.dumps(
            [constraint.model_dump(mode="json") for constraint in segment.constraints]
        )

    @staticmethod
    def _row_to_segment(row: sqlite3.Row) -> Segment:
        """Convert a ``sqlite3.Row`` into a :class:`Segment`."""
        return Segment(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            example=row["example"],
            project=row["project"],
            constraints=[
                Constraint.model_validate(item)
                for item in json.loads(row["constraints_json"])
            ],
            created_by=row["created_by"],
            created_at=row["created_at"],
        )

    def _select(self, where: str = "", params: tuple = (), order: str = "s.id") -> list[Segment]:
        sql = f"SELECT {_SEGMENT_COLUMNS} FROM segments s {where} ORDER BY {order}"
        with self._pool.transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_segment(row) for row in rows]

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    def get(self, segment_id: int) -> Segment:
        """Return a segment by id.

        Raises :class:`NotFoundError` if no such segment exists.
        """
        segments = self._select("WHERE s.id = ?", (segment_id,))
        if not segments:
            raise NotFoundError(detail=f"Segment not found: {segment_id}")
        return segments[0]

    def get_all(self) -> list[Segment]:
        return self._select()

    def get_active(self) -> list[Segment]:
        """Segments referenced by at least one strategy."""
        return self._select(
            "WHERE EXISTS (SELECT 1 FROM feature_strategy_segment fss "
            "WHERE fss.segment_id = s.id)"
        )

    def get_active_for_client(self) -> list[ClientSegment]:
        return [
            ClientSegment(id=s.id, name=s.name, constraints=s.constraints)
            for s in self.get_active()
        ]

    def get_by_strategy(self, strategy_id: str) -> list[Segment]:
        return self._select(
            "JOIN feature_strategy_segment fss ON fss.segment_id = s.id "
            "WHERE fss.feature_strategy_id = ?",
            (strategy_id,),
            order="fss.rowid",
        )

    def exists_by_name(self, name: str) -> bool:
        with self._pool.transaction() as conn:
            row = conn.execute(
                "SELECT 1 FROM segments WHERE name = ?", (name,)
            ).fetchone()
        return row is not None

    def create(self, segment: SegmentInput, actor: Actor) -> Segment:
        """Insert a segment; the database assigns its id."""
        with self._pool.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO segments
                    (name, description, example, project,
                     constraints_json, created_by, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    segment.name,
                    segment.description,
                    segment.example,
                    segment.project,
                    self._dump_constraints(segment),
                    actor.label,
                    now_iso(),
                ),
            )
            segment_id = cursor.lastrowid
        return self.get(segment_id)

    def update(self, segment_id: int, segment: SegmentInput) -> Segment:
        """Replace every mutable field of a segment."""
        with self._pool.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE segments
                SET name = ?, description = ?, example = ?, project = ?,
                    constraints_json = ?
                WHERE id = ?
                """,
                (
                    segment.name,
                    segment.description,
                    segment.example,
                    segment.project,
                    self._dump_constraints(segment),
                    segment_id,
                ),
            )
            updated = cursor.rowcount
        if updated == 0:
            raise NotFoundError(detail=f"Segment not found: {segment_id}")
        return self.get(segment_id)

    def delete(self, segment_id: int) -> None:
        """Delete a segment; its links go with it via ``ON DELETE CASCADE``."""
        with self._pool.transaction() as conn:
            conn.execute("DELETE FROM segments WHERE id = ?", (segment_id,))

    def add_to_strategy(self, segment_id: int, strategy_id: str) -> None:
        with self._pool.transaction() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO feature_strategy_segment
                    (feature_strategy_id, segment_id, created_at)
                VALUES (?, ?, ?)
                """,
                (strategy_id, segment_id, now_iso()),
            )

    def remove_from_strategy(self, segment_id: int, strategy_id: str) -> None:
        with self._pool.transaction() as conn:
            conn.execute(
                """
                DELETE FROM feature_strategy_segment
                WHERE feature_strategy_id = ? AND segment_id = ?
                """,
                (strategy_id, segment_id),
            )
