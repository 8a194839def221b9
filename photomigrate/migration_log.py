"""
MigrationLog - Append-only record of processing attempts.
"""

import logging
from typing import List, Optional

from sqlalchemy import func, insert, select

from .database import Database
from .models import LogStatus, MigrationLogEntry, utcnow
from .schema import migration_logs


class MigrationLog:
    """Writes one row per attempt and reads recent rows for diagnostics."""

    def __init__(self, db: Database, logger: Optional[logging.Logger] = None):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    def append(self, entry: MigrationLogEntry) -> None:
        """Insert a log entry; ``processed_at`` defaults to now."""
        values = entry.to_dict()
        values.pop('id', None)
        values['processed_at'] = values.get('processed_at') or utcnow()
        with self.db.transaction() as conn:
            conn.execute(insert(migration_logs).values(**values))

    def recent(
        self,
        limit: int = 100,
        status: Optional[LogStatus] = None,
        meta_id: Optional[str] = None
    ) -> List[MigrationLogEntry]:
        """Most recent entries first, optionally filtered."""
        stmt = select(migration_logs)
        if status is not None:
            stmt = stmt.where(migration_logs.c.status == LogStatus(status).value)
        if meta_id is not None:
            stmt = stmt.where(migration_logs.c.migration_meta_id == meta_id)
        stmt = stmt.order_by(
            migration_logs.c.processed_at.desc(),
            migration_logs.c.id.desc()
        ).limit(limit)

        with self.db.transaction() as conn:
            rows = conn.execute(stmt).fetchall()
        return [MigrationLogEntry.from_row(row._mapping) for row in rows]

    def count(self, meta_id: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(migration_logs)
        if meta_id is not None:
            stmt = stmt.where(migration_logs.c.migration_meta_id == meta_id)
        with self.db.transaction() as conn:
            return int(conn.execute(stmt).scalar_one())

    def average_processing_ms(self, meta_id: Optional[str] = None) -> Optional[float]:
        """Mean processing time of successful attempts."""
        stmt = select(func.avg(migration_logs.c.processing_time_ms)).where(
            migration_logs.c.status == LogStatus.DONE.value
        )
        if meta_id is not None:
            stmt = stmt.where(migration_logs.c.migration_meta_id == meta_id)
        with self.db.transaction() as conn:
            value = conn.execute(stmt).scalar_one()
        return float(value) if value is not None else None
