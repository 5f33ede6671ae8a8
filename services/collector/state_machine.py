"""Per-conversation collection state machine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Hashable, Optional

from models.session_models import Batch, InboundMessage, SessionState
from services.collector.session_store import SessionStore
from utils.errors import EmptyFileNameError, NotAwaitingFileNameError, NotCollectingError

LOGGER = logging.getLogger(__name__)


class ContentAction(str, Enum):
    BUFFERED = "buffered"
    FILE_NAME_SET = "file_name_set"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ContentResult:
    action: ContentAction
    archive_name: Optional[str] = None


class CollectorStateMachine:
    """Apply legal transitions to sessions held by a `SessionStore`.

    Every operation runs entirely under the conversation's lock and performs
    no I/O, so the dispatcher is free to send replies after it returns.
    """

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    def start_collecting(self, conversation_id: Hashable) -> int:
        """Enter collecting mode with an empty buffer.

        Any messages buffered by an earlier, unfinished collection are
        discarded. Returns how many were dropped.
        """
        with self.store.session(conversation_id) as state:
            dropped = len(state.messages)
            state.collecting = True
            state.messages = []
        LOGGER.info("Conversation %s started collecting (dropped %d buffered)", conversation_id, dropped)
        return dropped

    def stop(self, conversation_id: Hashable) -> Batch:
        """Leave collecting mode and hand the buffered messages over as a Batch.

        The buffer is moved out, not copied: the session receives a fresh
        list, so messages appended afterwards can never reach this batch.
        The pending archive name is consumed by the batch.

        Raises:
            NotCollectingError: If the conversation is not collecting.
        """
        with self.store.session(conversation_id) as state:
            if not state.collecting:
                raise NotCollectingError(f"Conversation {conversation_id} is not collecting")
            messages, state.messages = state.messages, []
            archive_name, state.archive_name = state.archive_name, None
            state.collecting = False
        LOGGER.info("Conversation %s stopped collecting with %d messages", conversation_id, len(messages))
        return Batch(conversation_id=conversation_id, messages=tuple(messages), archive_name=archive_name)

    def request_file_name(self, conversation_id: Hashable) -> None:
        """Wait for the next text message to be used as the archive name."""
        with self.store.session(conversation_id) as state:
            state.awaiting_file_name = True

    def receive_file_name(self, conversation_id: Hashable, text: Optional[str]) -> str:
        """Store `text` as the archive base name.

        Raises:
            NotAwaitingFileNameError: If no file name was requested.
            EmptyFileNameError: If `text` is blank; the request stays open.
        """
        with self.store.session(conversation_id) as state:
            name = self._receive_file_name(state, text)
        LOGGER.info("Conversation %s set archive name %r", conversation_id, name)
        return name

    def append_if_collecting(self, conversation_id: Hashable, message: InboundMessage) -> bool:
        """Buffer `message` when collecting; returns whether it was kept."""
        with self.store.session(conversation_id) as state:
            count = self._append_if_collecting(state, message)
        if count is None:
            return False
        LOGGER.debug("Conversation %s buffered message %s (%d total)", conversation_id, message.message_id, count)
        return True

    def accept_content(self, conversation_id: Hashable, message: InboundMessage) -> ContentResult:
        """Route a non-command message according to the session's flags.

        A pending file name request takes a text-only message even while
        collecting; photo messages are buffered while collecting. A photo sent
        while idle can still answer the request through its caption. The
        decision and the transition happen under one hold of the lock.

        Raises:
            EmptyFileNameError: If the message answering a file name request is blank.
        """
        count = None
        with self.store.session(conversation_id) as state:
            if state.awaiting_file_name and not (state.collecting and message.has_photo):
                result = ContentResult(ContentAction.FILE_NAME_SET, self._receive_file_name(state, message.text))
            else:
                count = self._append_if_collecting(state, message)
                result = ContentResult(ContentAction.IGNORED if count is None else ContentAction.BUFFERED)
        if result.action is ContentAction.FILE_NAME_SET:
            LOGGER.info("Conversation %s set archive name %r", conversation_id, result.archive_name)
        elif result.action is ContentAction.BUFFERED:
            LOGGER.debug("Conversation %s buffered message %s (%d total)", conversation_id, message.message_id, count)
        return result

    @staticmethod
    def _append_if_collecting(state: SessionState, message: InboundMessage) -> Optional[int]:
        # Caller holds the conversation lock. Returns the new buffer size, or None when idle.
        if not state.collecting:
            return None
        state.messages.append(message)
        return len(state.messages)

    @staticmethod
    def _receive_file_name(state: SessionState, text: Optional[str]) -> str:
        # Caller holds the conversation lock.
        if not state.awaiting_file_name:
            raise NotAwaitingFileNameError(f"Conversation {state.conversation_id} did not request a file name")
        name = (text or "").strip()
        if not name:
            raise EmptyFileNameError("Archive name is empty")
        state.archive_name = name
        state.awaiting_file_name = False
        return name
