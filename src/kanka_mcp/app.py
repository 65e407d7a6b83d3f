"""FastAPI front end serving the Kanka tools over streamable HTTP and legacy SSE."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import pydantic
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from mcp.shared.message import SessionMessage
from mcp.types import JSONRPCMessage
from starlette.background import BackgroundTask
from starlette.routing import Route

from kanka_mcp import __version__
from kanka_mcp.client import KankaClient
from kanka_mcp.config import AppConfig
from kanka_mcp.sessions import SessionNotFound, SessionRegistry
from kanka_mcp.tools import ToolRegistry, build_server
from kanka_mcp.transport import SseEndpoint, StreamableHTTPEndpoint

logger = logging.getLogger(__name__)


def create_app(
	config: AppConfig,
	client: KankaClient | None = None,
	registry: SessionRegistry | None = None,
) -> FastAPI:
	"""Factory: build the HTTP app around one shared MCP server.

	A client passed in stays owned by the caller; otherwise the app creates
	one and closes it on shutdown.
	"""
	owns_client = client is None
	kanka = KankaClient(config.kanka) if client is None else client
	sessions = SessionRegistry() if registry is None else registry
	tools = ToolRegistry(kanka, config.kanka)
	server = build_server(tools)
	session_manager = StreamableHTTPSessionManager(
		app=server,
		json_response=config.server.json_response,
		stateless=True,
	)
	message_path = config.server.message_path

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		try:
			async with session_manager.run():
				yield
		finally:
			if owns_client:
				await kanka.aclose()

	app = FastAPI(title="kanka-mcp", version=__version__, lifespan=lifespan)
	app.state.client = kanka
	app.state.sessions = sessions
	app.state.tools = tools

	# -- MCP transports --

	app.router.routes.append(Route("/mcp", endpoint=StreamableHTTPEndpoint(session_manager)))
	app.router.routes.append(
		Route("/sse", endpoint=SseEndpoint(server, sessions, message_path), methods=["GET"]),
	)

	@app.post(message_path)
	async def post_message(request: Request) -> Response:
		session_id = request.query_params.get("sessionId") or request.query_params.get("session_id")
		if not session_id:
			return PlainTextResponse("Missing sessionId", status_code=400)

		try:
			session = sessions.lookup(session_id)
		except SessionNotFound:
			logger.warning("Message posted for unknown session %s", session_id)
			return PlainTextResponse("No transport for sessionId", status_code=400)

		body = await request.body()
		try:
			message = JSONRPCMessage.model_validate_json(body)
		except pydantic.ValidationError as exc:
			logger.warning("Unparseable message for session %s", session_id)
			return PlainTextResponse(
				"Could not parse message",
				status_code=400,
				background=BackgroundTask(session.deliver, exc),
			)

		return PlainTextResponse(
			"Accepted",
			status_code=202,
			background=BackgroundTask(session.deliver, SessionMessage(message)),
		)

	# -- Status --

	@app.get("/health")
	async def health() -> dict[str, bool]:
		return {"ok": True}

	return app
