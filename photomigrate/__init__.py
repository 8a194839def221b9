"""
Photo migration package

Moves Drive-hosted unit photos into canonical S3 storage:
    1. Scan: find Drive folders linked in the unit sheet and queue their photos
    2. Run: claim queued photos in batches, resize, re-encode and upload them

Per-photo state and per-tenant progress live in the database, so runs can
be paused, resumed and retried.
"""

__version__ = "1.0.0"

from .config import S3Config, DatabaseConfig, GoogleConfig, MigrationConfig
from .exceptions import (
    MigrationError,
    ConfigError,
    ItemError,
    ValidationError,
    BatchFatalError,
)
from .models import (
    ItemStatus,
    RunStatus,
    LogStatus,
    Unit,
    MediaItem,
    MigrationMeta,
    MigrationLogEntry,
    MigrationSnapshot,
)
from .database import Database
from .image_transform import ImageTransformer, TransformResult
from .media_store import MediaItemStore
from .meta_store import MigrationMetaStore
from .migration_log import MigrationLog
from .s3_client import S3Client
from .google_client import DriveClient, SheetsClient
from .batch_stats import BatchStats, ItemOutcome
from .batch_progress import BatchProgress
from .batch_worker import BatchWorker
from .scanner import DiscoveryScanner, ScanResult
from .service import MigrationService
from .reporter import Reporter

__all__ = [
    "S3Config",
    "DatabaseConfig",
    "GoogleConfig",
    "MigrationConfig",
    "MigrationError",
    "ConfigError",
    "ItemError",
    "ValidationError",
    "BatchFatalError",
    "ItemStatus",
    "RunStatus",
    "LogStatus",
    "Unit",
    "MediaItem",
    "MigrationMeta",
    "MigrationLogEntry",
    "MigrationSnapshot",
    "Database",
    "ImageTransformer",
    "TransformResult",
    "MediaItemStore",
    "MigrationMetaStore",
    "MigrationLog",
    "S3Client",
    "DriveClient",
    "SheetsClient",
    "BatchStats",
    "ItemOutcome",
    "BatchProgress",
    "BatchWorker",
    "DiscoveryScanner",
    "ScanResult",
    "MigrationService",
    "Reporter",
]
