"""
Helpers for locating Drive folder links in sheet cells and notes.
"""

import re
from typing import Optional


DRIVE_HOST = 'drive.google.com'

DRIVE_LINK_PATTERN = re.compile(r'https?://[^\s]*drive\.google\.com[^\s]*')
TRAILING_PUNCTUATION = ')]}>.,;:!?\'"'

FOLDER_ID_PATTERNS = [
    re.compile(r'/folders/([a-zA-Z0-9_-]+)'),
    re.compile(r'id=([a-zA-Z0-9_-]+)'),
    re.compile(r'^([a-zA-Z0-9_-]+)$'),
]


def extract_drive_link(text: Optional[str]) -> Optional[str]:
    """
    Return the first Drive URL found in free text.

    Punctuation glued to the end of the link (closing brackets, periods,
    quotes) is removed.
    """
    if not text:
        return None
    match = DRIVE_LINK_PATTERN.search(text)
    if not match:
        return None
    return match.group(0).rstrip(TRAILING_PUNCTUATION) or None


def extract_folder_id(url: Optional[str]) -> Optional[str]:
    """
    Extract a folder id from a Drive folder URL, an ``id=`` URL or a bare id.

    Returns:
        The folder id, or None if the text matches none of the forms
    """
    if not url:
        return None
    url = url.strip()
    for pattern in FOLDER_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def is_drive_url(value: Optional[str]) -> bool:
    return bool(value) and DRIVE_HOST in value
