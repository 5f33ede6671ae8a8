from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Hashable, List


@dataclass(frozen=True)
class ResolvedPhoto:
    """A photo whose platform handle has been turned into a download URL.

    Attributes:
        index: 1-based position in resolution order; drives the staged file name.
        file_id: Platform handle the URL was resolved from.
        url: Fully qualified URL to fetch the photo bytes from.
    """

    index: int
    file_id: str
    url: str


@dataclass
class ArchiveResult:
    """Outcome of a delivered archive.

    Attributes:
        conversation_id: Conversation the archive was sent to.
        photo_count: Number of photos stored in the archive.
        file_name: Display name used for the delivered document.
        entries: Archive entry names in the order they were written.
    """

    conversation_id: Hashable
    photo_count: int
    file_name: str
    entries: List[str]


@dataclass(frozen=True)
class StagingArea:
    """Scratch directory and archive path owned by one pipeline run."""

    scratch_dir: Path
    archive_path: Path
