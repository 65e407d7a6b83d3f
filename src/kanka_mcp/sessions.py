"""Registry of open legacy SSE sessions, keyed by session ID."""

from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
	"""No open session for the given ID."""


def new_session_id() -> str:
	return uuid4().hex


class SessionRegistry:
	"""Maps session IDs to open connections.

	Entries are added when a subscribe connection is accepted and removed
	when that connection closes. All access happens on the event loop.
	"""

	def __init__(self) -> None:
		self._sessions: dict[str, Any] = {}

	def register(self, session_id: str, connection: Any) -> None:
		if session_id in self._sessions:
			raise ValueError(f"Session already registered: {session_id}")
		self._sessions[session_id] = connection
		logger.info("Session %s opened (%d open)", session_id, len(self._sessions))

	def get(self, session_id: str) -> Any | None:
		return self._sessions.get(session_id)

	def lookup(self, session_id: str) -> Any:
		try:
			return self._sessions[session_id]
		except KeyError:
			raise SessionNotFound(session_id) from None

	def unregister(self, session_id: str) -> None:
		if self._sessions.pop(session_id, None) is not None:
			logger.info("Session %s closed (%d open)", session_id, len(self._sessions))

	def session_ids(self) -> list[str]:
		return list(self._sessions)

	def __contains__(self, session_id: object) -> bool:
		return session_id in self._sessions

	def __len__(self) -> int:
		return len(self._sessions)
