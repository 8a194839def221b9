"""
MediaItemStore - Per-item migration state.

Every state change is a single UPDATE or INSERT statement so concurrent
batches cannot interleave a read and a write on the same row.
"""

import logging
import uuid
from dataclasses import asdict
from typing import List, Optional, Sequence

from sqlalchemy import and_, case, func, insert, select, true, update
from sqlalchemy.exc import IntegrityError

from .database import Database
from .models import (
    CANONICAL_QUALITY_VERSION,
    CLAIMABLE_STATUSES,
    ItemStatus,
    MediaItem,
    StatusCounts,
    Unit,
    utcnow,
)
from .schema import MAX_ERROR_LENGTH, media_items, units


def truncate_error(message: Optional[str], limit: int = MAX_ERROR_LENGTH) -> str:
    """Bound an error message to the stored column length."""
    return (message or 'Unknown error')[:limit]


class MediaItemStore:
    """
    Owns the migration state of media items.

    Items move ``none|pending -> processing -> done|error``; ``error`` items
    return to ``pending`` only through ``reset_errors``.
    """

    def __init__(self, db: Database, logger: Optional[logging.Logger] = None):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def _tenant_filter(tenant_id: Optional[str]):
        if tenant_id is None:
            return true()
        return media_items.c.tenant_id == tenant_id

    def get(self, item_id: str) -> Optional[MediaItem]:
        with self.db.transaction() as conn:
            row = conn.execute(
                select(media_items).where(media_items.c.id == item_id)
            ).first()
        return MediaItem.from_row(row._mapping) if row else None

    def list_claimable(
        self,
        limit: int,
        tenant_id: Optional[str] = None
    ) -> List[MediaItem]:
        """
        List items eligible for the next batch.

        Args:
            limit: Maximum number of items
            tenant_id: Optional tenant scope

        Returns:
            Items with a source file and status none/pending, oldest first
        """
        stmt = (
            select(media_items)
            .where(
                media_items.c.source_file_id.isnot(None),
                media_items.c.migration_status.in_(CLAIMABLE_STATUSES),
                self._tenant_filter(tenant_id),
            )
            .order_by(media_items.c.created_at, media_items.c.id)
            .limit(limit)
        )
        with self.db.transaction() as conn:
            rows = conn.execute(stmt).fetchall()
        return [MediaItem.from_row(row._mapping) for row in rows]

    def claim(self, item_ids: Sequence[str]) -> List[str]:
        """
        Move items to ``processing`` so no other batch can pick them up.

        The UPDATE only matches rows still in a claimable status and stamps
        them with a token unique to this call, so two overlapping claims
        never both win the same row.

        Args:
            item_ids: Ids returned by ``list_claimable``

        Returns:
            Ids this call actually claimed
        """
        if not item_ids:
            return []

        token = uuid.uuid4().hex
        now = utcnow()
        with self.db.transaction() as conn:
            conn.execute(
                update(media_items)
                .where(
                    media_items.c.id.in_(list(item_ids)),
                    media_items.c.migration_status.in_(CLAIMABLE_STATUSES),
                )
                .values(
                    migration_status=ItemStatus.PROCESSING.value,
                    claim_token=token,
                    claimed_at=now,
                    updated_at=now,
                )
            )
            claimed = conn.execute(
                select(media_items.c.id).where(media_items.c.claim_token == token)
            ).scalars().all()

        if len(claimed) < len(item_ids):
            self.logger.info(
                f"Claimed {len(claimed)} of {len(item_ids)} items "
                f"({len(item_ids) - len(claimed)} taken by another batch)"
            )
        return list(claimed)

    def mark_done(
        self,
        item_id: str,
        storage_url: str,
        storage_path: str,
        width: int,
        height: int,
        byte_size: int
    ) -> None:
        """Record a successful migration."""
        now = utcnow()
        with self.db.transaction() as conn:
            conn.execute(
                update(media_items)
                .where(media_items.c.id == item_id)
                .values(
                    storage_url=storage_url,
                    storage_path=storage_path,
                    width=width,
                    height=height,
                    byte_size=byte_size,
                    quality_version=CANONICAL_QUALITY_VERSION,
                    migration_status=ItemStatus.DONE.value,
                    migration_error=None,
                    migrated_at=now,
                    updated_at=now,
                )
            )

    def mark_error(self, item_id: str, message: str) -> None:
        """Record a failed attempt; the message is truncated."""
        with self.db.transaction() as conn:
            conn.execute(
                update(media_items)
                .where(media_items.c.id == item_id)
                .values(
                    migration_status=ItemStatus.ERROR.value,
                    migration_error=truncate_error(message),
                    updated_at=utcnow(),
                )
            )

    def reset_errors(self, tenant_id: Optional[str] = None) -> int:
        """
        Requeue failed items.

        Args:
            tenant_id: Optional tenant scope (None = all tenants)

        Returns:
            Number of items moved from ``error`` back to ``pending``
        """
        with self.db.transaction() as conn:
            result = conn.execute(
                update(media_items)
                .where(
                    media_items.c.migration_status == ItemStatus.ERROR.value,
                    media_items.c.source_file_id.isnot(None),
                    self._tenant_filter(tenant_id),
                )
                .values(
                    migration_status=ItemStatus.PENDING.value,
                    migration_error=None,
                    updated_at=utcnow(),
                )
            )
        count = result.rowcount
        self.logger.info(f"Reset {count} errored items to pending")
        return count

    def queue_all(self, tenant_id: Optional[str] = None) -> int:
        """Move every never-queued eligible item to ``pending``."""
        with self.db.transaction() as conn:
            result = conn.execute(
                update(media_items)
                .where(
                    media_items.c.migration_status == ItemStatus.NONE.value,
                    media_items.c.source_file_id.isnot(None),
                    self._tenant_filter(tenant_id),
                )
                .values(
                    migration_status=ItemStatus.PENDING.value,
                    updated_at=utcnow(),
                )
            )
        return result.rowcount

    def count_by_status(self, tenant_id: Optional[str] = None) -> StatusCounts:
        """Live counts of eligible items grouped by status."""
        status = media_items.c.migration_status

        def _count(*values):
            return func.coalesce(func.sum(case((status.in_(values), 1), else_=0)), 0)

        stmt = select(
            func.count().label('total'),
            _count(ItemStatus.DONE.value).label('done'),
            _count(*CLAIMABLE_STATUSES).label('pending'),
            _count(ItemStatus.PROCESSING.value).label('processing'),
            _count(ItemStatus.ERROR.value).label('errors'),
        ).where(
            media_items.c.source_file_id.isnot(None),
            self._tenant_filter(tenant_id),
        )
        with self.db.transaction() as conn:
            row = conn.execute(stmt).one()
        return StatusCounts(
            total=int(row.total or 0),
            done=int(row.done),
            pending=int(row.pending),
            processing=int(row.processing),
            errors=int(row.errors),
        )

    def list_errors(self, limit: int = 50, tenant_id: Optional[str] = None) -> List[MediaItem]:
        """Items whose last attempt failed, most recently updated first."""
        stmt = (
            select(media_items)
            .where(
                media_items.c.migration_status == ItemStatus.ERROR.value,
                self._tenant_filter(tenant_id),
            )
            .order_by(media_items.c.updated_at.desc())
            .limit(limit)
        )
        with self.db.transaction() as conn:
            rows = conn.execute(stmt).fetchall()
        return [MediaItem.from_row(row._mapping) for row in rows]

    def find_unit(self, source_row_id: str) -> Optional[Unit]:
        """Look up the unit linked to a sheet row."""
        with self.db.transaction() as conn:
            row = conn.execute(
                select(units).where(units.c.source_row_id == source_row_id)
            ).first()
        return Unit.from_row(row._mapping) if row else None

    def add_unit(self, unit: Unit) -> None:
        with self.db.transaction() as conn:
            conn.execute(insert(units).values(**asdict(unit)))

    def has_sourced_items(self, parent_id: str) -> bool:
        """True if the unit already has any item linked to a source file."""
        stmt = (
            select(media_items.c.id)
            .where(
                media_items.c.parent_id == parent_id,
                media_items.c.source_file_id.isnot(None),
            )
            .limit(1)
        )
        with self.db.transaction() as conn:
            return conn.execute(stmt).first() is not None

    def insert_if_absent(self, item: MediaItem) -> bool:
        """
        Insert a new item unless one with the same id or the same
        (parent, source file) pair already exists.

        Returns:
            True if a row was inserted
        """
        now = utcnow()
        values = item.to_dict()
        values['created_at'] = values.get('created_at') or now
        values['updated_at'] = now

        same_item = media_items.c.id == item.id
        if item.source_file_id is not None:
            same_item = same_item | and_(
                media_items.c.parent_id == item.parent_id,
                media_items.c.source_file_id == item.source_file_id,
            )
        duplicate = select(media_items.c.id).where(same_item)
        try:
            with self.db.transaction() as conn:
                if conn.execute(duplicate.limit(1)).first() is not None:
                    return False
                conn.execute(insert(media_items).values(**values))
        except IntegrityError:
            # Lost an insert race on the primary key.
            return False
        return True
