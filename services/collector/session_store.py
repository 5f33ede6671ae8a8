"""In-memory store for per-conversation collection sessions."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, Tuple

from models.session_models import SessionMode, SessionState


class SessionStore:
	"""Own all session state and serialize access per conversation.

	Sessions are created lazily on first access and live for the lifetime of
	the process. Each conversation has its own lock, so operations on one
	conversation never contend with another; the registry lock is held only
	while looking up or creating an entry. Callers must not perform I/O while
	holding a session.
	"""

	def __init__(self) -> None:
		self._sessions: Dict[Hashable, SessionState] = {}
		self._locks: Dict[Hashable, threading.Lock] = {}
		self._registry_lock = threading.Lock()

	def _entry(self, conversation_id: Hashable) -> Tuple[SessionState, threading.Lock]:
		with self._registry_lock:
			state = self._sessions.get(conversation_id)
			if state is None:
				state = SessionState(conversation_id=conversation_id)
				self._sessions[conversation_id] = state
				self._locks[conversation_id] = threading.Lock()
			return state, self._locks[conversation_id]

	@contextmanager
	def session(self, conversation_id: Hashable) -> Iterator[SessionState]:
		"""Yield the session for `conversation_id` while holding its lock."""
		state, lock = self._entry(conversation_id)
		with lock:
			yield state

	def mode(self, conversation_id: Hashable) -> SessionMode:
		"""Return the current mode of a conversation."""
		with self.session(conversation_id) as state:
			return state.mode

	def buffered_count(self, conversation_id: Hashable) -> int:
		"""Return how many messages are buffered for a conversation."""
		with self.session(conversation_id) as state:
			return len(state.messages)

	def __contains__(self, conversation_id: object) -> bool:
		with self._registry_lock:
			return conversation_id in self._sessions

	def __len__(self) -> int:
		with self._registry_lock:
			return len(self._sessions)
