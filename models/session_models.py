"""Session domain models for photo collection."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Hashable, List, Optional, Tuple


class SessionMode(str, Enum):
	"""Reported mode of a conversation session."""

	IDLE = "idle"
	COLLECTING = "collecting"
	AWAITING_FILE_NAME = "awaiting_file_name"


@dataclass(frozen=True)
class PhotoVariant:
	"""One resolution of a photo attached to a message."""

	file_id: str
	width: int
	height: int
	file_unique_id: Optional[str] = None
	file_size: Optional[int] = None

	@property
	def area(self) -> int:
		return self.width * self.height


@dataclass(frozen=True)
class PhotoReference:
	"""The highest-resolution variant selected from a message."""

	file_id: str
	width: int
	height: int


@dataclass(frozen=True)
class InboundMessage:
	"""Transport-neutral view of one chat message."""

	conversation_id: Hashable
	message_id: int
	text: Optional[str] = None
	photos: Tuple[PhotoVariant, ...] = ()
	date: Optional[datetime] = None

	@property
	def has_photo(self) -> bool:
		return bool(self.photos)


@dataclass(frozen=True)
class Batch:
	"""Immutable snapshot handed to the archive pipeline on stop."""

	conversation_id: Hashable
	messages: Tuple[InboundMessage, ...]
	archive_name: Optional[str] = None


@dataclass
class SessionState:
	"""In-memory state for one conversation."""

	conversation_id: Hashable
	collecting: bool = False
	awaiting_file_name: bool = False
	messages: List[InboundMessage] = field(default_factory=list)
	archive_name: Optional[str] = None

	@property
	def mode(self) -> SessionMode:
		if self.collecting:
			return SessionMode.COLLECTING
		if self.awaiting_file_name:
			return SessionMode.AWAITING_FILE_NAME
		return SessionMode.IDLE
