"""Feature strategy lookup backed by the ``feature_strategies`` table."""
from __future__ import annotations

from src.shared.db.connection import ConnectionPool
from src.shared.models.segments import FeatureStrategy
from src.shared.utils import now_iso


class FeatureStrategiesStore:
    """Read access to strategies, plus seeding for hosts and tests."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def create(self, strategy: FeatureStrategy) -> FeatureStrategy:
        with self._pool.transaction() as conn:
            conn.execute(
                """
                INSERT INTO feature_strategies
                    (id, feature_name, project_id, strategy_name, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    strategy.id,
                    strategy.feature_name,
                    strategy.project_id,
                    strategy.strategy_name,
                    now_iso(),
                ),
            )
        return strategy

    def get_strategies_by_segment(self, segment_id: int) -> list[FeatureStrategy]:
        """Strategies currently linked to *segment_id*."""
        with self._pool.transaction() as conn:
            rows = conn.execute(
                """
                SELECT fs.id, fs.feature_name, fs.project_id, fs.strategy_name
                FROM feature_strategies fs
                JOIN feature_strategy_segment fss
                    ON fss.feature_strategy_id = fs.id
                WHERE fss.segment_id = ?
                ORDER BY fss.rowid
                """,
                (segment_id,),
            ).fetchall()
        return [
            FeatureStrategy(
                id=row["id"],
                feature_name=row["feature_name"],
                project_id=row["project_id"],
                strategy_name=row["strategy_name"],
            )
            for row in rows
        ]
