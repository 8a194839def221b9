"""
BatchWorker - Claims and migrates media items in bounded batches.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional

from .batch_progress import BatchProgress
from .batch_stats import BatchStats, ItemOutcome
from .exceptions import BatchFatalError
from .google_client import DriveClient
from .image_transform import ImageTransformer
from .media_store import MediaItemStore, truncate_error
from .meta_store import MigrationMetaStore
from .migration_log import MigrationLog
from .models import LogStatus, MediaItem, MigrationLogEntry, MigrationMeta
from .s3_client import S3Client


class BatchWorker:
    """
    Migrates one batch of items per ``run_batch`` call.

    A batch lists claimable items, claims them, processes the claimed ones
    on a thread pool bounded by the run's ``concurrency``, and adds the
    outcome totals to the tenant's counters. The caller decides when to
    run the next batch.
    """

    def __init__(
        self,
        item_store: MediaItemStore,
        meta_store: MigrationMetaStore,
        migration_log: MigrationLog,
        source: DriveClient,
        storage: S3Client,
        transformer: Optional[ImageTransformer] = None,
        cadence: float = 0.0,
        dry_run: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize worker.

        Args:
            item_store: Per-item state
            meta_store: Per-tenant run state and counters
            migration_log: Attempt log
            source: Source file client (download by file id)
            storage: Canonical storage client
            transformer: Image transformer
            cadence: Seconds to wait between batches in ``run_until_idle``
            dry_run: If True, list what would be claimed without claiming
            logger: Optional logger instance
        """
        self.items = item_store
        self.meta = meta_store
        self.log = migration_log
        self.source = source
        self.storage = storage
        self.cadence = cadence
        self.dry_run = dry_run
        self.logger = logger or logging.getLogger(__name__)
        self.transformer = transformer or ImageTransformer(self.logger)
        self._stop_requested = False

    def stop(self) -> None:
        """Request the worker to stop after the current batch."""
        self._stop_requested = True

    def run_batch(
        self,
        tenant_id: str,
        progress: Optional[BatchProgress] = None
    ) -> BatchStats:
        """
        Run one batch for a tenant.

        Args:
            tenant_id: Tenant whose run is advanced
            progress: Optional progress tracker

        Returns:
            BatchStats for this batch

        Raises:
            BatchFatalError: If listing, claiming or persisting progress failed.
                The run is marked ``error`` before this is raised.
        """
        stats = BatchStats(tenant_id=tenant_id)

        meta = self.meta.get(tenant_id)
        if meta is None or not meta.is_running:
            stats.skipped_reason = f"run is {meta.status if meta else 'not started'}"
            self.logger.debug(f"Batch skipped for tenant {tenant_id}: {stats.skipped_reason}")
            return stats.finish()

        try:
            candidates = self.items.list_claimable(meta.batch_size, tenant_id)
        except Exception as e:
            self._fail(meta, f"Failed to list claimable items: {e}", e)
        stats.listed = len(candidates)

        if self.dry_run:
            for item in candidates:
                self.logger.info(f"[DRY RUN] Would migrate: {item.id} ({item.file_name})")
            stats.skipped_reason = 'dry run'
            return stats.finish()

        if not candidates:
            self.meta.complete(meta.id)
            stats.run_completed = True
            self.logger.info(f"Migration complete for tenant {tenant_id}")
            return stats.finish()

        try:
            claimed_ids = set(self.items.claim([item.id for item in candidates]))
        except Exception as e:
            self._fail(meta, f"Failed to claim items: {e}", e)

        claimed = [item for item in candidates if item.id in claimed_ids]
        stats.claimed = len(claimed)
        if not claimed:
            self.logger.info("All listed items were claimed by another batch")
            return stats.finish()

        self.logger.info(
            f"Processing batch of {len(claimed)} items for tenant {tenant_id} "
            f"(concurrency {meta.concurrency})"
        )

        for item, outcome in self._process_all(claimed, meta):
            stats.add(outcome)
            if progress:
                progress.on_item_processed(item, outcome)

        try:
            self.meta.apply_progress(meta.id, stats.processed, stats.errors)
        except Exception as e:
            self._fail(meta, f"Failed to update progress: {e}", e)

        stats.finish()
        self.logger.info(
            f"Batch complete: {stats.processed} migrated, {stats.errors} errors "
            f"({stats.elapsed_seconds:.1f}s)"
        )
        if progress:
            progress.on_batch_complete(stats)
        return stats

    def run_until_idle(
        self,
        tenant_id: str,
        max_batches: Optional[int] = None,
        progress: Optional[BatchProgress] = None
    ) -> List[BatchStats]:
        """
        Run batches until the run stops being ``running``.

        Stops early on ``stop()``, after ``max_batches``, or when a batch
        claims nothing because every listed item was taken elsewhere.

        Returns:
            Stats of every batch that ran
        """
        results = []
        while not self._stop_requested:
            if max_batches is not None and len(results) >= max_batches:
                self.logger.info(f"Reached batch limit ({max_batches})")
                break

            stats = self.run_batch(tenant_id, progress)
            results.append(stats)
            if stats.skipped_reason or stats.run_completed or not stats.did_work:
                break

            if self.cadence > 0:
                time.sleep(self.cadence)
        else:
            self.logger.info("Stop requested, halting migration")
        return results

    def _fail(self, meta: MigrationMeta, message: str, cause: Exception) -> None:
        self.logger.error(message)
        try:
            self.meta.fail(meta.id, message)
        except Exception as e:
            self.logger.error(f"Could not record run failure: {e}")
        raise BatchFatalError(message) from cause

    def _process_all(self, items: List[MediaItem], meta: MigrationMeta):
        """Yield (item, outcome) pairs as pool tasks finish."""
        with ThreadPoolExecutor(max_workers=max(1, meta.concurrency)) as pool:
            futures = {pool.submit(self._process_item, item, meta): item for item in items}
            for future in as_completed(futures):
                item = futures[future]
                try:
                    outcome = future.result()
                except Exception as e:
                    self.logger.exception(f"Unexpected failure on item {item.id}")
                    outcome = ItemOutcome.failure(item.id, str(e) or type(e).__name__)
                yield item, outcome

    def _process_item(self, item: MediaItem, meta: MigrationMeta) -> ItemOutcome:
        """Download, transform and upload one item, then record the outcome."""
        started = time.monotonic()
        try:
            data = self.source.download(item.source_file_id)
            result = self.transformer.process(data, meta.max_width, meta.target_quality)
            key = self.storage.build_key(
                meta.tenant_id, item.parent_id, f"{item.id}{ImageTransformer.EXTENSION}"
            )
            stored = self.storage.upload(key, result.data, result.content_type)
        except Exception as e:
            error_msg = str(e) or type(e).__name__
            self.logger.error(f"Error migrating {item.id}: {error_msg}")
            outcome = ItemOutcome.failure(item.id, error_msg, self._elapsed_ms(started))
        else:
            outcome = ItemOutcome(
                item_id=item.id,
                success=True,
                storage_url=stored.url,
                storage_path=stored.path,
                original_size=result.original_size,
                processed_size=result.processed_size,
                original_width=result.original_width,
                original_height=result.original_height,
                processed_width=result.width,
                processed_height=result.height,
                processing_time_ms=self._elapsed_ms(started),
            )
        return self._record(item, meta, outcome)

    def _record(self, item: MediaItem, meta: MigrationMeta, outcome: ItemOutcome) -> ItemOutcome:
        """
        Persist an outcome on the item and in the log.

        A success that cannot be persisted is counted as an error and the
        item is marked failed if possible; if no state can be written the
        item stays ``processing``.
        """
        try:
            if outcome.success:
                self.items.mark_done(
                    item.id,
                    storage_url=outcome.storage_url,
                    storage_path=outcome.storage_path,
                    width=outcome.processed_width,
                    height=outcome.processed_height,
                    byte_size=outcome.processed_size,
                )
            else:
                self.items.mark_error(item.id, outcome.error)
        except Exception as e:
            self.logger.error(f"Failed to record outcome of {item.id}: {e}")
            if outcome.success:
                outcome = ItemOutcome.failure(
                    item.id, f"Failed to record result: {e}", outcome.processing_time_ms
                )
                try:
                    self.items.mark_error(item.id, outcome.error)
                except Exception as mark_exc:
                    self.logger.error(f"Failed to mark {item.id} as errored: {mark_exc}")

        try:
            self.log.append(self._log_entry(meta, outcome))
        except Exception as e:
            self.logger.error(f"Failed to write migration log for {item.id}: {e}")
        return outcome

    @staticmethod
    def _log_entry(meta: MigrationMeta, outcome: ItemOutcome) -> MigrationLogEntry:
        return MigrationLogEntry(
            photo_id=outcome.item_id,
            migration_meta_id=meta.id,
            status=LogStatus.DONE.value if outcome.success else LogStatus.ERROR.value,
            error_message=None if outcome.success else truncate_error(outcome.error),
            original_size=outcome.original_size,
            processed_size=outcome.processed_size,
            original_width=outcome.original_width,
            original_height=outcome.original_height,
            processed_width=outcome.processed_width,
            processed_height=outcome.processed_height,
            processing_time_ms=outcome.processing_time_ms,
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
