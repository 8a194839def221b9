"""
MigrationService - In-process control surface for the photo migration.

Wires the stores, the batch worker and the scanner together and exposes
the operations operators use: start, pause, run, scan, reset errors and
status queries.
"""

import logging
from typing import List, Optional

from .batch_progress import BatchProgress
from .batch_stats import BatchStats
from .batch_worker import BatchWorker
from .config import DatabaseConfig, GoogleConfig, MigrationConfig, S3Config
from .database import Database
from .exceptions import ConfigError
from .google_client import DriveClient, SheetsClient
from .image_transform import ImageTransformer
from .media_store import MediaItemStore
from .meta_store import MigrationMetaStore
from .migration_log import MigrationLog
from .models import (
    LogStatus,
    MediaItem,
    MigrationLogEntry,
    MigrationMeta,
    MigrationSnapshot,
    RunStatus,
)
from .s3_client import S3Client
from .scanner import DiscoveryScanner, ScanResult


class MigrationService:
    """
    Control surface over one database.

    The worker and the scanner are optional so status and maintenance
    commands work without storage or Google credentials.
    """

    def __init__(
        self,
        db: Database,
        worker: Optional[BatchWorker] = None,
        scanner: Optional[DiscoveryScanner] = None,
        item_store: Optional[MediaItemStore] = None,
        meta_store: Optional[MigrationMetaStore] = None,
        migration_log: Optional[MigrationLog] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)
        self.items = item_store or MediaItemStore(db, self.logger)
        self.meta = meta_store or MigrationMetaStore(db, self.items, self.logger)
        self.log = migration_log or MigrationLog(db, self.logger)
        self.worker = worker
        self.scanner = scanner

    @classmethod
    def from_config(
        cls,
        db_config: DatabaseConfig,
        s3_config: Optional[S3Config] = None,
        google_config: Optional[GoogleConfig] = None,
        logger: Optional[logging.Logger] = None
    ) -> 'MigrationService':
        """
        Build a service and the collaborators its configuration allows.

        The worker needs both S3 and a Google token; the scanner needs a
        Google token and a spreadsheet id.
        """
        logger = logger or logging.getLogger(__name__)
        db = Database(db_config, logger=logger)
        service = cls(db, logger=logger)

        drive = None
        if google_config is not None and not google_config.validate():
            drive = DriveClient(google_config, logger=logger)
            if not google_config.validate(require_sheet=True):
                service.scanner = DiscoveryScanner(
                    SheetsClient(google_config, logger=logger),
                    drive,
                    service.items,
                    service.meta,
                    config=google_config,
                    logger=logger,
                )

        if drive is not None and s3_config is not None and not s3_config.validate():
            service.worker = BatchWorker(
                service.items,
                service.meta,
                service.log,
                source=drive,
                storage=S3Client(s3_config, logger),
                transformer=ImageTransformer(logger),
                logger=logger,
            )
        return service

    def _require_worker(self) -> BatchWorker:
        if self.worker is None:
            raise ConfigError("Batch worker is not configured (S3 and Google settings required)")
        return self.worker

    def start(self, tenant_id: str, config: Optional[MigrationConfig] = None) -> MigrationMeta:
        """Mark the tenant's run as running, applying any overrides."""
        if config is not None:
            errors = config.validate()
            if errors:
                raise ConfigError("; ".join(errors))
        return self.meta.start(tenant_id, config)

    def pause(self, tenant_id: str) -> Optional[MigrationMeta]:
        self.meta.pause(tenant_id)
        return self.meta.get(tenant_id)

    def reset_errors(self, tenant_id: Optional[str] = None) -> int:
        """
        Requeue errored items and move them back into the pending counters.

        Args:
            tenant_id: Optional tenant scope (None = all tenants)

        Returns:
            Number of items requeued
        """
        count = self.items.reset_errors(tenant_id)
        if tenant_id is not None:
            self.meta.apply_requeue(tenant_id, count)
        elif count:
            for tenant in self.meta.tenant_ids():
                self.meta.refresh_counts(tenant)
        return count

    def queue_all(self, tenant_id: Optional[str] = None) -> int:
        """Queue every never-queued eligible item."""
        count = self.items.queue_all(tenant_id)
        tenants = [tenant_id] if tenant_id is not None else self.meta.tenant_ids()
        for tenant in tenants:
            self.meta.refresh_counts(tenant)
        self.logger.info(f"Queued {count} photos for migration")
        return count

    def scan(self, limit: Optional[int] = None) -> ScanResult:
        if self.scanner is None:
            raise ConfigError("Scanner is not configured (Google token and spreadsheet id required)")
        return self.scanner.scan(limit=limit)

    def run_batch(self, tenant_id: str, progress: Optional[BatchProgress] = None) -> BatchStats:
        """Run one batch for the tenant's current run."""
        return self._require_worker().run_batch(tenant_id, progress)

    def run(
        self,
        tenant_id: str,
        config: Optional[MigrationConfig] = None,
        max_batches: Optional[int] = None,
        progress: Optional[BatchProgress] = None
    ) -> List[BatchStats]:
        """
        Start (or resume) the tenant's run and drive it until it stops.

        A dry-run worker leaves the run state as it is and only previews
        the next batch.

        Returns:
            Stats of every batch that ran
        """
        worker = self._require_worker()
        if worker.dry_run:
            self.logger.info(f"[DRY RUN] Not starting run for tenant {tenant_id}")
        else:
            self.start(tenant_id, config)
        return worker.run_until_idle(tenant_id, max_batches=max_batches, progress=progress)

    def get_status(self, tenant_id: Optional[str] = None) -> MigrationSnapshot:
        """
        Live item counts combined with the stored run state.

        Without a tenant, counts cover every tenant and the run state is
        taken from the most recently created record.
        """
        counts = self.items.count_by_status(tenant_id)
        meta = self.meta.get(tenant_id) if tenant_id is not None else self.meta.latest()
        return MigrationSnapshot(
            total_photos=counts.total,
            processed_photos=counts.done,
            pending_photos=counts.pending,
            error_photos=counts.errors,
            processing_photos=counts.processing,
            status=meta.status if meta else RunStatus.IDLE.value,
            started_at=meta.started_at if meta else None,
            completed_at=meta.completed_at if meta else None,
            last_updated_at=meta.last_updated_at if meta else None,
            error_message=meta.error_message if meta else None,
        )

    def get_meta(self, tenant_id: Optional[str] = None) -> Optional[MigrationMeta]:
        return self.meta.get(tenant_id) if tenant_id is not None else self.meta.latest()

    def recent_logs(
        self,
        limit: int = 100,
        status: Optional[LogStatus] = None
    ) -> List[MigrationLogEntry]:
        return self.log.recent(limit=limit, status=status)

    def errored_items(self, limit: int = 50, tenant_id: Optional[str] = None) -> List[MediaItem]:
        return self.items.list_errors(limit=limit, tenant_id=tenant_id)

    def average_processing_ms(self, tenant_id: Optional[str] = None) -> Optional[float]:
        meta = self.get_meta(tenant_id)
        return self.log.average_processing_ms(meta.id if meta else None)

    def close(self) -> None:
        self.db.dispose()
