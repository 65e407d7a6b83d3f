"""Shared pytest fixtures and a fake Kanka API for kanka-mcp tests."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from kanka_mcp.client import KankaClient
from kanka_mcp.config import AppConfig, KankaConfig, ServerConfig

API_PREFIX = "/api/1.0"


class FakeKanka:
	"""Records requests and answers from a path -> (status, payload) table.

	Paths are matched without the /api/1.0 prefix and include the query string.
	"""

	def __init__(self) -> None:
		self.requests: list[httpx.Request] = []
		self.routes: dict[str, tuple[int, Any]] = {}
		self.default: tuple[int, Any] = (200, {"data": []})

	def add(self, path: str, payload: Any, status: int = 200) -> None:
		self.routes[path] = (status, payload)

	@property
	def paths(self) -> list[str]:
		return [_api_path(r) for r in self.requests]

	def handler(self, request: httpx.Request) -> httpx.Response:
		self.requests.append(request)
		status, payload = self.routes.get(_api_path(request), self.default)
		if isinstance(payload, str | bytes):
			return httpx.Response(status, content=payload)
		return httpx.Response(status, json=payload)

	@property
	def transport(self) -> httpx.MockTransport:
		return httpx.MockTransport(self.handler)


def _api_path(request: httpx.Request) -> str:
	return request.url.raw_path.decode().removeprefix(API_PREFIX)


@pytest.fixture()
def kanka() -> FakeKanka:
	return FakeKanka()


@pytest.fixture()
def kanka_config() -> KankaConfig:
	"""KankaConfig with a token and a default campaign."""
	return KankaConfig(token="test-token", campaign_id="777")


@pytest.fixture()
def app_config(kanka_config: KankaConfig) -> AppConfig:
	return AppConfig(kanka=kanka_config, server=ServerConfig(json_response=True))


@pytest.fixture()
def client(kanka: FakeKanka, kanka_config: KankaConfig) -> KankaClient:
	return KankaClient(kanka_config, transport=kanka.transport)
