"""ASGI endpoints for the two MCP transports.

The streamable endpoint delegates to the SDK's session manager. The legacy
SSE endpoint keeps one SseSession per open subscribe connection: messages
POSTed by the client are pushed into the session's read stream, and whatever
the MCP server writes is sent back down the event stream.

The SDK's SseServerTransport keeps its sessions private and registers them
inside its own connect context. Here every session goes into an explicit
SessionRegistry before the server reads its first message, so /messages
can look it up and the registry is emptied when the stream closes.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import anyio
from mcp.server import Server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from mcp.shared.message import SessionMessage
from sse_starlette import EventSourceResponse
from starlette.types import Receive, Scope, Send

from kanka_mcp.sessions import SessionRegistry, new_session_id

logger = logging.getLogger(__name__)


class SseSession:
	"""One open legacy SSE connection and its in-memory MCP streams."""

	def __init__(self, session_id: str, message_path: str) -> None:
		self.session_id = session_id
		self.message_path = message_path
		self._read_writer, self.read_stream = anyio.create_memory_object_stream[SessionMessage | Exception](0)
		self.write_stream, self._write_reader = anyio.create_memory_object_stream[SessionMessage](0)

	def endpoint_url(self, root_path: str = "") -> str:
		"""URL the client must POST its messages to."""
		path = quote(root_path.rstrip("/") + self.message_path)
		return f"{path}?sessionId={self.session_id}"

	async def deliver(self, message: SessionMessage | Exception) -> None:
		"""Hand an inbound client message (or parse error) to the MCP server.

		The POST has already been answered by the time this runs, so a session
		that closed in between just drops the message.
		"""
		try:
			await self._read_writer.send(message)
		except (anyio.ClosedResourceError, anyio.BrokenResourceError):
			logger.debug("Session %s closed before delivery; message dropped", self.session_id)

	async def stream(self, scope: Scope, receive: Receive, send: Send) -> None:
		"""Serve the event stream until the client disconnects."""
		event_writer, event_reader = anyio.create_memory_object_stream[dict[str, Any]](0)
		endpoint = self.endpoint_url(scope.get("root_path", ""))

		async def pump() -> None:
			async with event_writer, self._write_reader:
				await event_writer.send({"event": "endpoint", "data": endpoint})
				async for session_message in self._write_reader:
					await event_writer.send({
						"event": "message",
						"data": session_message.message.model_dump_json(by_alias=True, exclude_none=True),
					})

		response = EventSourceResponse(content=event_reader, data_sender_callable=pump)
		await response(scope, receive, send)

	async def aclose(self) -> None:
		await self._read_writer.aclose()
		await self._write_reader.aclose()


class SseEndpoint:
	"""ASGI app for `GET /sse`: open a session and run the MCP server over it."""

	def __init__(self, server: Server, registry: SessionRegistry, message_path: str) -> None:
		self._server = server
		self._registry = registry
		self._message_path = message_path

	async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
		session = SseSession(new_session_id(), self._message_path)
		self._registry.register(session.session_id, session)
		try:
			async with anyio.create_task_group() as tg:
				tg.start_soon(self._run_server, session)
				await session.stream(scope, receive, send)
				logger.debug("SSE client for session %s disconnected", session.session_id)
				tg.cancel_scope.cancel()
		finally:
			self._registry.unregister(session.session_id)
			await session.aclose()

	async def _run_server(self, session: SseSession) -> None:
		await self._server.run(
			session.read_stream,
			session.write_stream,
			self._server.create_initialization_options(),
		)


class StreamableHTTPEndpoint:
	"""ASGI app for `/mcp`: each request gets its own transport from the session manager."""

	def __init__(self, session_manager: StreamableHTTPSessionManager) -> None:
		self._session_manager = session_manager

	async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
		await self._session_manager.handle_request(scope, receive, send)
