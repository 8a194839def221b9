"""
BatchStats - Statistics for one batch, and per-item outcomes.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ItemOutcome:
    """
    Tagged result of processing one item.

    Attributes:
        item_id: Media item id
        success: True if the item was stored
        error: Error message (if failed)
        storage_url: URL of the stored object (if success)
        storage_path: Path of the stored object (if success)
        original_size: Source size in bytes
        processed_size: Output size in bytes
        processing_time_ms: Wall time spent on the item
    """
    item_id: str
    success: bool
    error: Optional[str] = None
    storage_url: Optional[str] = None
    storage_path: Optional[str] = None
    original_size: Optional[int] = None
    processed_size: Optional[int] = None
    original_width: Optional[int] = None
    original_height: Optional[int] = None
    processed_width: Optional[int] = None
    processed_height: Optional[int] = None
    processing_time_ms: int = 0

    @classmethod
    def failure(cls, item_id: str, error: str, processing_time_ms: int = 0) -> 'ItemOutcome':
        return cls(item_id=item_id, success=False, error=error,
                   processing_time_ms=processing_time_ms)


@dataclass
class BatchStats:
    """
    Statistics for one ``run_batch`` invocation.

    Attributes:
        tenant_id: Tenant the batch ran for
        listed: Items returned by the claimable query
        claimed: Items this batch claimed
        processed: Items stored successfully
        errors: Items that failed
        bytes_in: Total source bytes downloaded
        bytes_out: Total processed bytes uploaded
        run_completed: True if the batch found nothing left and completed the run
        skipped_reason: Why the batch did nothing (e.g. run not running)
        start_time: Start timestamp
        error_details: Error messages of failed items
    """
    tenant_id: str
    listed: int = 0
    claimed: int = 0
    processed: int = 0
    errors: int = 0
    bytes_in: int = 0
    bytes_out: int = 0
    run_completed: bool = False
    skipped_reason: Optional[str] = None
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    error_details: List[str] = field(default_factory=list)

    def add(self, outcome: ItemOutcome) -> None:
        """Fold an item outcome into the totals."""
        if outcome.success:
            self.processed += 1
            self.bytes_in += outcome.original_size or 0
            self.bytes_out += outcome.processed_size or 0
        else:
            self.errors += 1
            self.error_details.append(f"{outcome.item_id}: {outcome.error}")

    def finish(self) -> 'BatchStats':
        self.end_time = time.time()
        return self

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time in seconds."""
        return (self.end_time or time.time()) - self.start_time

    @property
    def rate_per_minute(self) -> float:
        """Items completed per minute."""
        if self.elapsed_seconds > 0:
            return self.completed_count / self.elapsed_seconds * 60
        return 0.0

    @property
    def completed_count(self) -> int:
        """Total completed (processed + errors)."""
        return self.processed + self.errors

    @property
    def remaining_count(self) -> int:
        """Claimed items without an outcome yet."""
        return self.claimed - self.completed_count

    @property
    def did_work(self) -> bool:
        return self.claimed > 0
