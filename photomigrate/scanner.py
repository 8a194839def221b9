"""
DiscoveryScanner - Finds Drive folders in the unit sheet and queues their photos.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Set

from .config import GoogleConfig
from .exceptions import ValidationError
from .folder_reference import extract_drive_link, extract_folder_id, is_drive_url
from .google_client import DriveClient, SheetsClient
from .media_store import MediaItemStore
from .meta_store import MigrationMetaStore
from .models import ItemStatus, MediaItem


# Photos queued per unit, and how many of them fill the primary slot.
MAX_ITEMS_PER_UNIT = 25
PRIMARY_SLOT_SIZE = 5

# Column AA holds the unit's Drive folder link when it was entered directly.
DRIVE_COLUMN_INDEX = 26


@dataclass
class ScanResult:
    """
    Summary of a scan.

    Attributes:
        rows_scanned: Rows that carried a row id
        items_queued: Items actually inserted
        errors: Per-row error messages
        units_matched: Rows whose folder was listed
        duration_seconds: Wall time of the scan
    """
    rows_scanned: int = 0
    items_queued: int = 0
    errors: List[str] = field(default_factory=list)
    units_matched: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            'rows_scanned': self.rows_scanned,
            'items_queued': self.items_queued,
            'errors': list(self.errors),
        }


class DiscoveryScanner:
    """
    Reads the unit sheet and queues Drive photos for migration.

    A unit is only scanned while it has no item linked to a source file,
    so running the scanner again never queues the same photos twice.
    """

    def __init__(
        self,
        sheets: SheetsClient,
        drive: DriveClient,
        item_store: MediaItemStore,
        meta_store: Optional[MigrationMetaStore] = None,
        config: Optional[GoogleConfig] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize scanner.

        Args:
            sheets: Sheets client for the unit listing
            drive: Drive client for folder listings
            item_store: Item store receiving the new items
            meta_store: If given, counters of affected tenants are refreshed
            config: Google configuration (sheet name and ranges)
            logger: Optional logger instance
        """
        self.sheets = sheets
        self.drive = drive
        self.items = item_store
        self.meta = meta_store
        self.config = config or sheets.config
        self.logger = logger or logging.getLogger(__name__)

    def scan(self, limit: Optional[int] = None) -> ScanResult:
        """
        Scan the sheet and queue new photos.

        Args:
            limit: Optional limit on number of rows to scan (for testing)

        Returns:
            ScanResult with counts and per-row errors
        """
        start_time = time.time()
        result = ScanResult()

        rows = self.sheets.read_values(self.config.sheet_range(self.config.values_range))
        notes = self.sheets.read_notes(self.config.sheet_range(self.config.notes_range))
        self.logger.info(f"Read {len(rows)} rows and {len(notes)} notes from '{self.config.sheet_name}'")

        tenants: Set[str] = set()
        for index, row in enumerate(rows):
            row_id = (row[0] if row else '').strip()
            if not row_id:
                continue
            if limit and result.rows_scanned >= limit:
                self.logger.info(f"Limit of {limit} reached, stopping scan")
                break
            result.rows_scanned += 1

            note = notes[index] if index < len(notes) else ''
            folder_url = self.folder_link(row, note)
            if not folder_url:
                continue

            try:
                queued = self._scan_row(row_id, folder_url, tenants)
                if queued is not None:
                    result.units_matched += 1
                    result.items_queued += queued
            except Exception as e:
                message = f"Row {row_id}: {e}"
                self.logger.warning(message)
                result.errors.append(message)

        if self.meta is not None:
            for tenant_id in sorted(tenants):
                self.meta.refresh_counts(tenant_id)

        result.duration_seconds = time.time() - start_time
        self.logger.info(
            f"Scan complete: {result.rows_scanned} rows, {result.items_queued} photos queued, "
            f"{len(result.errors)} errors ({result.duration_seconds:.1f}s)"
        )
        return result

    @staticmethod
    def folder_link(row: List[str], note: str) -> Optional[str]:
        """The row's Drive folder link: the Drive column first, then the note."""
        column = row[DRIVE_COLUMN_INDEX].strip() if len(row) > DRIVE_COLUMN_INDEX else ''
        if is_drive_url(column):
            return column
        return extract_drive_link(note)

    def _scan_row(self, row_id: str, folder_url: str, tenants: Set[str]) -> Optional[int]:
        """
        Queue the photos of one row's folder.

        Returns:
            Number of items inserted, or None if the row was skipped
        """
        unit = self.items.find_unit(row_id)
        if unit is None:
            self.logger.debug(f"Row {row_id}: no matching unit")
            return None

        if self.items.has_sourced_items(unit.id):
            self.logger.debug(f"Row {row_id}: unit {unit.id} already has Drive photos")
            return None

        folder_id = extract_folder_id(folder_url)
        if not folder_id:
            raise ValidationError("Invalid Drive URL format", row_id=row_id)

        images = self.drive.list_images(folder_id)
        queued = 0
        for position, image in enumerate(images[:MAX_ITEMS_PER_UNIT]):
            primary = position < PRIMARY_SLOT_SIZE
            item = MediaItem(
                id=uuid.uuid4().hex,
                tenant_id=unit.tenant_id,
                parent_id=unit.id,
                source_file_id=image.id,
                file_name=image.name or f"photo_{position + 1}.jpg",
                migration_status=ItemStatus.PENDING.value,
                slot='primary' if primary else 'secondary',
                position=position if primary else position - PRIMARY_SLOT_SIZE,
            )
            if self.items.insert_if_absent(item):
                queued += 1

        if queued:
            tenants.add(unit.tenant_id)
        self.logger.info(f"Row {row_id}: queued {queued} of {len(images)} photos")
        return queued
