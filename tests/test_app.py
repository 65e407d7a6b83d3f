"""Tests for the HTTP front end (health, legacy message posts, streamable /mcp)."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import patch

import anyio
import pydantic
import pytest
from fastapi.testclient import TestClient
from mcp.shared.message import SessionMessage

from kanka_mcp.app import create_app
from kanka_mcp.client import KankaClient
from kanka_mcp.config import AppConfig
from kanka_mcp.sessions import SessionRegistry
from kanka_mcp.transport import SseSession

MCP_HEADERS = {
	"Accept": "application/json, text/event-stream",
	"Content-Type": "application/json",
	"MCP-Protocol-Version": "2025-03-26",
}


class FakeSession:
	"""Collects messages delivered by the /messages endpoint."""

	def __init__(self) -> None:
		self.delivered: list[Any] = []

	async def deliver(self, message: Any) -> None:
		self.delivered.append(message)


@pytest.fixture
def sessions() -> SessionRegistry:
	return SessionRegistry()


@pytest.fixture
def http(app_config: AppConfig, client: KankaClient, sessions: SessionRegistry):
	app = create_app(app_config, client=client, registry=sessions)
	with TestClient(app) as c:
		yield c


def _rpc(method: str, params: dict[str, Any] | None = None, request_id: int = 1) -> dict[str, Any]:
	return {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or {}}


class TestHealth:
	def test_health(self, http: TestClient) -> None:
		resp = http.get("/health")
		assert resp.status_code == 200
		assert resp.json() == {"ok": True}


class TestLegacyMessages:
	def test_unknown_session_is_400(self, http: TestClient) -> None:
		resp = http.post("/messages?sessionId=nope", json=_rpc("tools/list"))
		assert resp.status_code == 400
		assert resp.text == "No transport for sessionId"

	def test_missing_session_id_is_400(self, http: TestClient) -> None:
		resp = http.post("/messages", json=_rpc("tools/list"))
		assert resp.status_code == 400
		assert resp.text == "Missing sessionId"

	def test_known_session_accepts(self, http: TestClient, sessions: SessionRegistry) -> None:
		fake = FakeSession()
		sessions.register("s1", fake)
		resp = http.post("/messages?sessionId=s1", json=_rpc("tools/list"))
		assert resp.status_code == 202
		assert len(fake.delivered) == 1
		message = fake.delivered[0]
		assert isinstance(message, SessionMessage)
		assert message.message.root.method == "tools/list"

	def test_session_id_alias(self, http: TestClient, sessions: SessionRegistry) -> None:
		fake = FakeSession()
		sessions.register("s2", fake)
		resp = http.post("/messages?session_id=s2", json=_rpc("tools/list"))
		assert resp.status_code == 202
		assert len(fake.delivered) == 1

	def test_unparseable_body(self, http: TestClient, sessions: SessionRegistry) -> None:
		fake = FakeSession()
		sessions.register("s3", fake)
		resp = http.post("/messages?sessionId=s3", content=b"{not json")
		assert resp.status_code == 400
		assert resp.text == "Could not parse message"
		assert isinstance(fake.delivered[0], pydantic.ValidationError)

	def test_closed_session_rejected(self, http: TestClient, sessions: SessionRegistry) -> None:
		sessions.register("s4", FakeSession())
		sessions.unregister("s4")
		resp = http.post("/messages?sessionId=s4", json=_rpc("tools/list"))
		assert resp.status_code == 400

	def test_session_closed_before_delivery(self, http: TestClient, sessions: SessionRegistry) -> None:
		session = SseSession("s5", "/messages")
		anyio.run(session.aclose)
		sessions.register("s5", session)
		resp = http.post("/messages?sessionId=s5", json=_rpc("tools/list"))
		assert resp.status_code == 202


class TestLifespan:
	def test_owned_client_closed_on_shutdown(self, app_config: AppConfig) -> None:
		app = create_app(app_config)
		with TestClient(app) as c:
			assert c.get("/health").status_code == 200
			assert not app.state.client._client.is_closed
		assert app.state.client._client.is_closed

	def test_owned_client_closed_when_startup_fails(self, app_config: AppConfig) -> None:
		app = create_app(app_config)
		with patch("kanka_mcp.app.StreamableHTTPSessionManager.run", side_effect=RuntimeError("boom")):
			with pytest.raises(RuntimeError, match="boom"):
				with TestClient(app):
					pass
		assert app.state.client._client.is_closed

	def test_passed_client_left_open(self, app_config: AppConfig, client: KankaClient) -> None:
		app = create_app(app_config, client=client)
		with TestClient(app):
			pass
		assert not client._client.is_closed


class TestStreamableHTTP:
	def test_list_tools(self, http: TestClient) -> None:
		resp = http.post("/mcp", json=_rpc("tools/list"), headers=MCP_HEADERS)
		assert resp.status_code == 200
		names = [t["name"] for t in resp.json()["result"]["tools"]]
		assert names == ["list_campaigns", "list_entities", "get_entity", "search_by_name", "raw_get"]

	def test_call_tool(self, http: TestClient, kanka) -> None:
		kanka.add("/campaigns/777/characters/42", {"data": {"id": 42, "name": "Strahd"}})
		resp = http.post(
			"/mcp",
			json=_rpc("tools/call", {"name": "get_entity", "arguments": {"entity": "characters", "id": 42}}),
			headers=MCP_HEADERS,
		)
		assert resp.status_code == 200
		result = resp.json()["result"]
		assert result["isError"] is False
		assert json.loads(result["content"][0]["text"]) == {"data": {"id": 42, "name": "Strahd"}}
		assert kanka.paths == ["/campaigns/777/characters/42"]

	def test_call_tool_upstream_error(self, http: TestClient, kanka) -> None:
		kanka.add("/campaigns/777/items/5", "Not found", status=404)
		resp = http.post(
			"/mcp",
			json=_rpc("tools/call", {"name": "get_entity", "arguments": {"entity": "items", "id": 5}}),
			headers=MCP_HEADERS,
		)
		result = resp.json()["result"]
		assert result["isError"] is True
		assert "404" in result["content"][0]["text"]

	def test_requests_are_independent(self, http: TestClient) -> None:
		for request_id in (1, 2):
			resp = http.post("/mcp", json=_rpc("tools/list", request_id=request_id), headers=MCP_HEADERS)
			assert resp.status_code == 200
			assert resp.json()["id"] == request_id
			assert "mcp-session-id" not in resp.headers
