"""
Records handled by the migration pipeline.

Rows read through SQLAlchemy are converted into these dataclasses so the
worker and the reporting code never touch raw result rows.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional


# Items migrated by this pipeline are stamped with this quality version.
CANONICAL_QUALITY_VERSION = 2


def utcnow() -> datetime:
    """Naive UTC timestamp, the format stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ItemStatus(str, Enum):
    """Migration state of a single media item."""
    NONE = "none"              # Linked to a source file, never queued
    PENDING = "pending"        # Queued for migration
    PROCESSING = "processing"  # Claimed by a batch
    DONE = "done"              # Stored in canonical storage
    ERROR = "error"            # Last attempt failed


class RunStatus(str, Enum):
    """State of a tenant's migration run."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class LogStatus(str, Enum):
    """Outcome recorded for one processing attempt."""
    DONE = "done"
    ERROR = "error"


CLAIMABLE_STATUSES = (ItemStatus.NONE.value, ItemStatus.PENDING.value)


@dataclass
class Unit:
    """A rentable unit; ``source_row_id`` ties it to its sheet row."""
    id: str
    tenant_id: str
    source_row_id: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Unit':
        fields = cls.__dataclass_fields__
        return cls(**{k: v for k, v in row.items() if k in fields})


@dataclass
class MediaItem:
    """
    One externally sourced photograph attached to a unit.

    Attributes:
        id: Opaque unique id
        tenant_id: Owning agency
        parent_id: Owning unit
        source_file_id: External (Drive) file id; None means not eligible
        file_name: Original file name
        migration_status: One of ItemStatus
        slot: UI slot ('primary' / 'secondary'), carried untouched
        position: UI position within the slot, carried untouched
    """
    id: str
    tenant_id: Optional[str]
    parent_id: str
    source_file_id: Optional[str] = None
    file_name: Optional[str] = None
    storage_url: Optional[str] = None
    storage_path: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    byte_size: Optional[int] = None
    quality_version: Optional[int] = None
    migration_status: str = ItemStatus.NONE.value
    migration_error: Optional[str] = None
    migrated_at: Optional[datetime] = None
    slot: Optional[str] = None
    position: Optional[int] = None
    claimed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'MediaItem':
        """Create from a SQLAlchemy row mapping."""
        fields = cls.__dataclass_fields__
        return cls(**{k: v for k, v in row.items() if k in fields})


@dataclass
class MigrationMeta:
    """
    Aggregate migration record for one tenant.

    Counters are a cached summary; the media item rows are authoritative.
    """
    id: str
    tenant_id: str
    total_photos: int = 0
    processed_photos: int = 0
    pending_photos: int = 0
    error_photos: int = 0
    last_batch_size: int = 0
    status: str = RunStatus.IDLE.value
    error_message: Optional[str] = None
    batch_size: int = 100
    concurrency: int = 3
    target_quality: int = 70
    max_width: int = 1600
    started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.status == RunStatus.RUNNING.value

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'MigrationMeta':
        fields = cls.__dataclass_fields__
        return cls(**{k: v for k, v in row.items() if k in fields})


@dataclass
class MigrationLogEntry:
    """One processing attempt of one media item."""
    photo_id: str
    status: str
    migration_meta_id: Optional[str] = None
    error_message: Optional[str] = None
    original_size: Optional[int] = None
    processed_size: Optional[int] = None
    original_width: Optional[int] = None
    original_height: Optional[int] = None
    processed_width: Optional[int] = None
    processed_height: Optional[int] = None
    processing_time_ms: Optional[int] = None
    processed_at: Optional[datetime] = None
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'MigrationLogEntry':
        fields = cls.__dataclass_fields__
        return cls(**{k: v for k, v in row.items() if k in fields})


@dataclass
class StatusCounts:
    """Live item counts grouped by migration status."""
    total: int = 0
    done: int = 0
    pending: int = 0
    processing: int = 0
    errors: int = 0

    @property
    def unmigrated(self) -> int:
        """Eligible items that are not yet stored."""
        return self.total - self.done


@dataclass
class MigrationSnapshot:
    """
    Read-only status snapshot: live item counts combined with the
    stored run state.
    """
    total_photos: int
    processed_photos: int
    pending_photos: int
    error_photos: int
    processing_photos: int
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def percent_complete(self) -> float:
        if self.total_photos == 0:
            return 100.0
        return (self.processed_photos / self.total_photos) * 100

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ('started_at', 'completed_at', 'last_updated_at'):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data
