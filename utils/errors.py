"""Exception hierarchy for the photo collector.

User-facing failures carry a `user_message` that the dispatcher sends back to
the conversation verbatim. Everything else is reported with a generic text.
"""

from __future__ import annotations

from typing import Optional


class CollectorError(Exception):
    """Base class for every error raised by the collector."""

    user_message: str = "❌ Processing failed, please try again later."

    def __init__(self, detail: Optional[str] = None, *, user_message: Optional[str] = None) -> None:
        super().__init__(detail or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class UserInputError(CollectorError):
    """Invalid command sequence or input; recovered locally."""


class NotCollectingError(UserInputError):
    user_message = "🤔 You have not started collecting yet, send /startcollect first."


class EmptyFileNameError(UserInputError):
    user_message = "❌ File name cannot be empty."


class NotAwaitingFileNameError(UserInputError):
    user_message = "🤔 Send /filename first, then reply with the archive name."


class NoContentError(CollectorError):
    """A stopped batch has nothing to archive."""

    user_message = "🤷 No photos were found in the messages you sent."


class PipelineError(CollectorError):
    """Fail-fast error raised while building an archive."""


class ResourceResolutionError(PipelineError):
    """The platform could not resolve a photo to a downloadable URL."""


class FetchError(PipelineError):
    """Downloading a resolved photo failed."""


class DeliveryError(CollectorError):
    """Sending a message or the archive back to the conversation failed."""


class PlatformError(CollectorError):
    """Transport-level failure (command registration, polling, connectivity)."""
