"""
Google Drive and Sheets REST clients.

Drive supplies the source photos (download by file id, list a folder);
Sheets supplies the unit listing scanned for folder links.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote

import requests

from .config import GoogleConfig
from .exceptions import ConfigError


DRIVE_API = 'https://www.googleapis.com/drive/v3'
SHEETS_API = 'https://sheets.googleapis.com/v4'


@dataclass
class DriveFile:
    """A file entry returned by a folder listing."""
    id: str
    name: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None


class _GoogleSession:
    """Shared bearer-token session."""

    def __init__(
        self,
        config: GoogleConfig,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        if not config.access_token:
            raise ConfigError("GOOGLE_ACCESS_TOKEN is not set")
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.session = session or requests.Session()
        self.session.headers['Authorization'] = f"Bearer {config.access_token}"

    def _get(self, url: str, params: Optional[dict] = None) -> requests.Response:
        response = self.session.get(url, params=params, timeout=self.config.timeout)
        response.raise_for_status()
        return response


class DriveClient(_GoogleSession):
    """Source file access through the Drive v3 API."""

    PAGE_SIZE = 100

    def download(self, file_id: str) -> bytes:
        """Download a file's raw bytes."""
        self.logger.debug(f"Downloading Drive file: {file_id}")
        response = self._get(f"{DRIVE_API}/files/{quote(file_id, safe='')}", {'alt': 'media'})
        return response.content

    def list_images(self, folder_id: str) -> List[DriveFile]:
        """
        List image files directly inside a folder, ordered by name.

        Args:
            folder_id: Drive folder id

        Returns:
            List of DriveFile entries
        """
        params = {
            'q': f"'{folder_id}' in parents and mimeType contains 'image/' and trashed = false",
            'fields': 'nextPageToken, files(id, name, mimeType, size)',
            'pageSize': self.PAGE_SIZE,
            'orderBy': 'name',
        }
        files = []
        while True:
            data = self._get(f"{DRIVE_API}/files", params).json()
            for entry in data.get('files', []):
                if not entry.get('id'):
                    continue
                size = entry.get('size')
                files.append(DriveFile(
                    id=entry['id'],
                    name=entry.get('name'),
                    mime_type=entry.get('mimeType'),
                    size=int(size) if size is not None else None,
                ))
            token = data.get('nextPageToken')
            if not token:
                break
            params['pageToken'] = token
        return files


class SheetsClient(_GoogleSession):
    """Tabular source reader through the Sheets v4 API."""

    def read_values(self, cell_range: str, spreadsheet_id: Optional[str] = None) -> List[List[str]]:
        """Return the rows of cell values in a range."""
        sheet_id = self._spreadsheet_id(spreadsheet_id)
        url = f"{SHEETS_API}/spreadsheets/{sheet_id}/values/{quote(cell_range, safe='')}"
        return self._get(url).json().get('values', [])

    def read_notes(self, cell_range: str, spreadsheet_id: Optional[str] = None) -> List[str]:
        """
        Return the note attached to the first cell of each row in a range.

        Rows without a note yield an empty string so indexes line up with
        ``read_values``.
        """
        sheet_id = self._spreadsheet_id(spreadsheet_id)
        data = self._get(
            f"{SHEETS_API}/spreadsheets/{sheet_id}",
            {'ranges': cell_range, 'fields': 'sheets.data.rowData.values.note'},
        ).json()

        sheets = data.get('sheets') or [{}]
        grid = (sheets[0].get('data') or [{}])[0]
        notes = []
        for row in grid.get('rowData', []):
            values = row.get('values') or [{}]
            notes.append(values[0].get('note', '') or '')
        return notes

    def _spreadsheet_id(self, spreadsheet_id: Optional[str]) -> str:
        sheet_id = spreadsheet_id or self.config.spreadsheet_id
        if not sheet_id:
            raise ConfigError("SOURCE_SPREADSHEET_ID is not set")
        return sheet_id
