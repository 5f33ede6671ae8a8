"""Commands understood by the bot and photo selection for collectable content."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Tuple

from models.session_models import PhotoReference, PhotoVariant


class Command(str, Enum):
    """Commands understood by the bot; values are the lowercase command names."""

    START = "start"
    HELP = "help"
    START_COLLECT = "startcollect"
    STOP_COLLECT = "stopcollect"
    VERSION = "version"
    FILE_NAME = "filename"


COMMAND_DESCRIPTIONS: Tuple[Tuple[Command, str], ...] = (
    (Command.START, "Show this help message"),
    (Command.HELP, "Show this help message"),
    (Command.START_COLLECT, "Start collecting photos"),
    (Command.STOP_COLLECT, "Stop collecting and download all photos as a zip"),
    (Command.VERSION, "Show the bot version"),
    (Command.FILE_NAME, "Set the zip file name"),
)


def select_photo(variants: Iterable[PhotoVariant]) -> Optional[PhotoReference]:
    """Pick the variant with the largest area; the first one wins ties."""
    best: Optional[PhotoVariant] = None
    for variant in variants:
        if best is None or variant.area > best.area:
            best = variant
    if best is None:
        return None
    return PhotoReference(file_id=best.file_id, width=best.width, height=best.height)
