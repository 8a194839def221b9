"""
BatchProgress - Reports batch progress while a run is driven.
"""

import logging
import threading
from typing import Optional

from .batch_stats import BatchStats, ItemOutcome
from .models import MediaItem


class BatchProgress:
    """
    Tracks and displays progress with optional per-item output.

    Item callbacks arrive from worker threads.
    """

    def __init__(
        self,
        show_files: bool = False,
        log_interval: int = 50,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize progress tracker.

        Args:
            show_files: If True, print each item as it's processed
            log_interval: Log summary progress every N items (when not show_files)
            logger: Optional logger instance
        """
        self.show_files = show_files
        self.log_interval = log_interval
        self.logger = logger or logging.getLogger(__name__)
        self.total_done = 0
        self.total_errors = 0
        self.last_logged = 0
        self._lock = threading.Lock()

    def on_item_processed(self, item: MediaItem, outcome: ItemOutcome) -> None:
        """
        Called when an item finishes.

        Args:
            item: The media item
            outcome: Its outcome
        """
        with self._lock:
            if outcome.success:
                self.total_done += 1
            else:
                self.total_errors += 1

        name = item.file_name or item.id
        if self.show_files:
            if outcome.success:
                size_str = self._format_bytes(outcome.processed_size)
                print(f"  [OK] {name} -> {outcome.processed_width}x{outcome.processed_height} "
                      f"({size_str}, {outcome.processing_time_ms} ms)")
            else:
                print(f"  [ERROR] {name} -> {outcome.error or 'failed'}")

    def on_batch_complete(self, stats: BatchStats) -> None:
        """
        Called after each batch to report overall progress.

        Args:
            stats: Statistics of the batch that just finished
        """
        completed = self.total_done + self.total_errors
        if not self.show_files and completed - self.last_logged >= self.log_interval:
            self.last_logged = completed
            self.logger.info(
                f"Progress: {self.total_done} migrated, {self.total_errors} errors "
                f"(last batch {stats.completed_count} in {stats.elapsed_seconds:.1f}s, "
                f"{stats.rate_per_minute:.1f}/min)"
            )

    @staticmethod
    def _format_bytes(bytes_val: Optional[int]) -> str:
        """Format bytes as human-readable string."""
        if bytes_val is None:
            return "unknown"
        for unit in ['B', 'KB', 'MB', 'GB']:
            if bytes_val < 1024:
                return f"{bytes_val:.1f} {unit}"
            bytes_val /= 1024
        return f"{bytes_val:.1f} TB"
