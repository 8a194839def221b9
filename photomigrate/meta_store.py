"""
MigrationMetaStore - Per-tenant run state and aggregate counters.

Counter arithmetic is always expressed inside the UPDATE statement so two
batches finishing at the same time cannot lose each other's deltas.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import case, func, insert, select, update
from sqlalchemy.exc import IntegrityError

from .config import MigrationConfig
from .database import Database
from .media_store import MediaItemStore, truncate_error
from .models import ItemStatus, MigrationMeta, RunStatus, utcnow
from .schema import media_items, migration_meta


def _clamped(column, delta):
    """``max(0, column - delta)`` in portable SQL."""
    return case((column - delta < 0, 0), else_=column - delta)


class MigrationMetaStore:
    """
    Owns one MigrationMeta record per tenant.

    Records are created lazily the first time a tenant is referenced.
    """

    def __init__(
        self,
        db: Database,
        item_store: Optional[MediaItemStore] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.db = db
        self.items = item_store or MediaItemStore(db, logger)
        self.logger = logger or logging.getLogger(__name__)

    def get(self, tenant_id: str) -> Optional[MigrationMeta]:
        """Return the tenant's record, or None if it was never created."""
        with self.db.transaction() as conn:
            row = conn.execute(
                select(migration_meta).where(migration_meta.c.tenant_id == tenant_id)
            ).first()
        return MigrationMeta.from_row(row._mapping) if row else None

    def get_by_id(self, meta_id: str) -> Optional[MigrationMeta]:
        with self.db.transaction() as conn:
            row = conn.execute(
                select(migration_meta).where(migration_meta.c.id == meta_id)
            ).first()
        return MigrationMeta.from_row(row._mapping) if row else None

    def latest(self) -> Optional[MigrationMeta]:
        """Most recently created record across tenants."""
        with self.db.transaction() as conn:
            row = conn.execute(
                select(migration_meta)
                .order_by(migration_meta.c.created_at.desc())
                .limit(1)
            ).first()
        return MigrationMeta.from_row(row._mapping) if row else None

    def tenant_ids(self) -> List[str]:
        """Tenants that have a migration record."""
        with self.db.transaction() as conn:
            return list(conn.execute(
                select(migration_meta.c.tenant_id).order_by(migration_meta.c.tenant_id)
            ).scalars())

    def get_or_create(self, tenant_id: str) -> MigrationMeta:
        """
        Return the tenant's record, creating it if needed.

        A new record counts the tenant's eligible items that are not yet
        migrated: ``none``/``pending``/``processing`` items are pending and
        ``error`` items are errors.
        """
        existing = self.get(tenant_id)
        if existing:
            return existing

        counts = self.items.count_by_status(tenant_id)
        pending = counts.pending + counts.processing
        now = utcnow()
        values = {
            'id': uuid.uuid4().hex,
            'tenant_id': tenant_id,
            'total_photos': pending + counts.errors,
            'processed_photos': 0,
            'pending_photos': pending,
            'error_photos': counts.errors,
            'last_batch_size': 0,
            'status': RunStatus.IDLE.value,
            'batch_size': MigrationConfig.DEFAULT_BATCH_SIZE,
            'concurrency': MigrationConfig.DEFAULT_CONCURRENCY,
            'target_quality': MigrationConfig.DEFAULT_QUALITY,
            'max_width': MigrationConfig.DEFAULT_MAX_WIDTH,
            'created_at': now,
            'last_updated_at': now,
        }
        try:
            with self.db.transaction() as conn:
                conn.execute(insert(migration_meta).values(**values))
        except IntegrityError:
            # Another caller created it first.
            return self.get(tenant_id)

        self.logger.info(
            f"Created migration record for tenant {tenant_id}: "
            f"{values['total_photos']} photos to migrate"
        )
        return MigrationMeta.from_row(values)

    def _update(self, where, **values) -> int:
        values.setdefault('last_updated_at', utcnow())
        with self.db.transaction() as conn:
            result = conn.execute(update(migration_meta).where(where).values(**values))
        return result.rowcount

    def start(
        self,
        tenant_id: str,
        config: Optional[MigrationConfig] = None
    ) -> MigrationMeta:
        """
        Mark the tenant's run as running.

        Args:
            tenant_id: Tenant to start
            config: Optional overrides; unset fields keep stored values

        Returns:
            The updated record
        """
        meta = self.get_or_create(tenant_id)
        overrides = config.overrides() if config else {}
        self._update(
            migration_meta.c.id == meta.id,
            status=RunStatus.RUNNING.value,
            started_at=utcnow(),
            error_message=None,
            **overrides
        )
        self.logger.info(f"Migration started for tenant {tenant_id} {overrides or ''}".rstrip())
        return self.get_by_id(meta.id)

    def pause(self, tenant_id: str) -> None:
        """
        Mark the run as paused.

        In-flight batches finish normally; the next ``run_batch`` is a no-op.
        """
        self._update(
            migration_meta.c.tenant_id == tenant_id,
            status=RunStatus.PAUSED.value,
            paused_at=utcnow(),
        )
        self.logger.info(f"Migration paused for tenant {tenant_id}")

    def complete(self, meta_id: str) -> None:
        self._update(
            migration_meta.c.id == meta_id,
            status=RunStatus.COMPLETED.value,
            completed_at=utcnow(),
        )

    def fail(self, meta_id: str, message: str) -> None:
        self._update(
            migration_meta.c.id == meta_id,
            status=RunStatus.ERROR.value,
            error_message=truncate_error(message),
        )

    def apply_progress(
        self,
        meta_id: str,
        processed_delta: int,
        error_delta: int = 0
    ) -> None:
        """
        Add a finished batch to the counters in one statement.

        ``pending_photos`` is decremented by both deltas and never drops
        below zero.
        """
        c = migration_meta.c
        self._update(
            c.id == meta_id,
            processed_photos=c.processed_photos + processed_delta,
            error_photos=c.error_photos + error_delta,
            pending_photos=_clamped(c.pending_photos, processed_delta + error_delta),
            last_batch_size=processed_delta + error_delta,
        )

    def apply_requeue(self, tenant_id: str, count: int) -> None:
        """Move ``count`` errors back to pending after ``reset_errors``."""
        if count <= 0:
            return
        c = migration_meta.c
        self._update(
            c.tenant_id == tenant_id,
            error_photos=_clamped(c.error_photos, count),
            pending_photos=c.pending_photos + count,
        )

    def refresh_counts(self, tenant_id: str) -> None:
        """
        Recompute pending and error counters from the item rows.

        Used after new items are queued; ``processed_photos`` is kept and
        ``total_photos`` is rebuilt from the three counters.
        """
        status = media_items.c.migration_status
        scope = (
            media_items.c.tenant_id == tenant_id,
            media_items.c.source_file_id.isnot(None),
        )
        pending = (
            select(func.count())
            .select_from(media_items)
            .where(
                status.in_((
                    ItemStatus.NONE.value,
                    ItemStatus.PENDING.value,
                    ItemStatus.PROCESSING.value,
                )),
                *scope
            )
            .scalar_subquery()
        )
        errors = (
            select(func.count())
            .select_from(media_items)
            .where(status == ItemStatus.ERROR.value, *scope)
            .scalar_subquery()
        )
        c = migration_meta.c
        self._update(
            c.tenant_id == tenant_id,
            pending_photos=pending,
            error_photos=errors,
            total_photos=c.processed_photos + pending + errors,
        )
