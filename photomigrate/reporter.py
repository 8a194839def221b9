"""
Reporter - Human-readable status, log and scan reports.
"""

import logging
import sys
from typing import List, Optional, TextIO

from .batch_stats import BatchStats
from .models import MediaItem, MigrationLogEntry, MigrationMeta, MigrationSnapshot
from .scanner import ScanResult


class Reporter:
    """
    Prints reports for operators.
    """

    def __init__(
        self,
        output: Optional[TextIO] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize reporter.

        Args:
            output: Output stream (default: stdout)
            logger: Optional logger instance
        """
        self.output = output or sys.stdout
        self.logger = logger or logging.getLogger(__name__)

    def _print(self, text: str = "") -> None:
        """Print to output stream."""
        print(text, file=self.output)

    def _format_bytes(self, bytes_val: int) -> str:
        """Format bytes as human-readable string."""
        for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
            if bytes_val < 1024:
                return f"{bytes_val:.1f} {unit}"
            bytes_val /= 1024
        return f"{bytes_val:.1f} PB"

    def _format_duration(self, seconds: float) -> str:
        """Format duration as human-readable string."""
        if seconds < 60:
            return f"{seconds:.1f} seconds"
        elif seconds < 3600:
            return f"{seconds / 60:.1f} minutes"
        else:
            return f"{seconds / 3600:.1f} hours"

    @staticmethod
    def estimate_seconds(
        remaining: int,
        average_ms: Optional[float],
        concurrency: int = 1
    ) -> Optional[float]:
        """Rough time left: average item time spread over the worker pool."""
        if not remaining or not average_ms:
            return None
        return remaining * (average_ms / 1000) / max(1, concurrency)

    def report_status(
        self,
        snapshot: MigrationSnapshot,
        meta: Optional[MigrationMeta] = None,
        average_ms: Optional[float] = None,
        tenant_id: Optional[str] = None
    ) -> None:
        """Generate the status report."""
        self._print("=" * 70)
        self._print("PHOTO MIGRATION STATUS")
        self._print("=" * 70)
        self._print()

        self._print("Run:")
        self._print(f"  Tenant:      {tenant_id or 'all'}")
        self._print(f"  Status:      {snapshot.status}")
        if snapshot.started_at:
            self._print(f"  Started:     {snapshot.started_at:%Y-%m-%d %H:%M:%S}")
        if snapshot.completed_at:
            self._print(f"  Completed:   {snapshot.completed_at:%Y-%m-%d %H:%M:%S}")
        if snapshot.last_updated_at:
            self._print(f"  Updated:     {snapshot.last_updated_at:%Y-%m-%d %H:%M:%S}")
        if snapshot.error_message:
            self._print(f"  Error:       {snapshot.error_message}")
        self._print()

        self._print("Photos:")
        self._print(f"  Total:       {snapshot.total_photos:,}")
        self._print(f"  Migrated:    {snapshot.processed_photos:,}")
        self._print(f"  Pending:     {snapshot.pending_photos:,}")
        self._print(f"  Processing:  {snapshot.processing_photos:,}")
        self._print(f"  Errors:      {snapshot.error_photos:,}")
        self._print(f"  Complete:    {snapshot.percent_complete:.1f}%")
        self._print()

        if meta is not None:
            self._print("Settings:")
            self._print(f"  Batch Size:  {meta.batch_size}")
            self._print(f"  Concurrency: {meta.concurrency}")
            self._print(f"  Quality:     {meta.target_quality}")
            self._print(f"  Max Width:   {meta.max_width}px")
            self._print(f"  Last Batch:  {meta.last_batch_size}")
            self._print()

        remaining = snapshot.pending_photos + snapshot.processing_photos
        eta = self.estimate_seconds(remaining, average_ms, meta.concurrency if meta else 1)
        if eta is not None:
            self._print("Time Estimate:")
            self._print(f"  Average per photo: {average_ms:.0f} ms")
            self._print(f"  Remaining:         {self._format_duration(eta)}")
            self._print()

    def report_logs(self, entries: List[MigrationLogEntry]) -> None:
        """Print recent log entries, newest first."""
        if not entries:
            self._print("No migration attempts logged.")
            return

        self._print(f"{'Processed':<20} {'Photo':<34} {'Status':<7} {'Size':>10} {'Time':>8}")
        self._print("-" * 83)
        for entry in entries:
            when = f"{entry.processed_at:%Y-%m-%d %H:%M:%S}" if entry.processed_at else '-'
            size = self._format_bytes(entry.processed_size) if entry.processed_size else '-'
            took = f"{entry.processing_time_ms} ms" if entry.processing_time_ms is not None else '-'
            self._print(f"{when:<20} {entry.photo_id:<34} {entry.status:<7} {size:>10} {took:>8}")
            if entry.error_message:
                self._print(f"    {entry.error_message}")

    def report_errors(self, items: List[MediaItem]) -> None:
        """Print items whose last attempt failed."""
        if not items:
            self._print("✓ No photos in error state.")
            return

        self._print(f"Photos with errors ({len(items)}):")
        self._print("-" * 70)
        for item in items:
            self._print(f"  {item.id}  {item.file_name or ''}")
            self._print(f"    {item.migration_error or 'Unknown error'}")

    def report_scan(self, result: ScanResult) -> None:
        self._print(f"Rows scanned:   {result.rows_scanned:,}")
        self._print(f"Units matched:  {result.units_matched:,}")
        self._print(f"Photos queued:  {result.items_queued:,}")
        self._print(f"Errors:         {len(result.errors):,}")
        for error in result.errors:
            self._print(f"  {error}")

    def report_run(self, batches: List[BatchStats]) -> None:
        """Summarize the batches of one ``run`` invocation."""
        processed = sum(b.processed for b in batches)
        errors = sum(b.errors for b in batches)
        elapsed = sum(b.elapsed_seconds for b in batches)
        bytes_in = sum(b.bytes_in for b in batches)
        bytes_out = sum(b.bytes_out for b in batches)

        self._print(f"Batches:   {len(batches)}")
        self._print(f"Migrated:  {processed}")
        self._print(f"Errors:    {errors}")
        self._print(f"Time:      {self._format_duration(elapsed)}")
        if bytes_in:
            self._print(
                f"Size:      {self._format_bytes(bytes_in)} -> {self._format_bytes(bytes_out)} "
                f"({bytes_out / bytes_in * 100:.0f}%)"
            )
        if batches and batches[-1].run_completed:
            self._print("✓ Migration complete")
        elif batches and batches[-1].skipped_reason:
            self._print(f"Stopped: {batches[-1].skipped_reason}")
