"""Naming helpers for staged photos and delivered archives."""

import re
from datetime import datetime
from typing import Hashable, Optional

ARCHIVE_EXTENSION = ".zip"
TIMESTAMP_FORMAT = "%Y-%m-%d:%H:%M"

_ENTRY_PATTERN = re.compile(r"^image_(\d+)\.jpg$")
_UNSAFE_CHARS = re.compile(r"[\\/\x00]")


def photo_entry_name(index: int) -> str:
    """Return the staged file name for the 1-based photo `index`."""
    if index < 1:
        raise ValueError("Photo indexes start at 1.")
    return f"image_{index}.jpg"


def entry_index(name: str) -> Optional[int]:
    """Return the numeric index encoded in a staged file name, or None."""
    match = _ENTRY_PATTERN.match(name)
    return int(match.group(1)) if match else None


def archive_file_name(
    archive_name: Optional[str],
    conversation_id: Hashable,
    now: Optional[datetime] = None,
) -> str:
    """Return the display name of the archive sent to the conversation.

    A user-supplied base name wins; path separators are replaced so the name
    can never escape into a directory. Without one, the name is built from
    the local time and the conversation id.
    """
    base = (archive_name or "").strip()
    if base:
        return f"{_UNSAFE_CHARS.sub('_', base)}{ARCHIVE_EXTENSION}"
    stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    return f"images_{stamp}_{conversation_id}{ARCHIVE_EXTENSION}"
