"""Async Kanka REST API client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from kanka_mcp.config import KankaConfig

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
	"""Kanka answered with a non-2xx status."""

	def __init__(self, status_code: int, reason: str, body: str = "") -> None:
		self.status_code = status_code
		self.reason = reason
		self.body = body
		super().__init__(f"Kanka {status_code} {reason}: {body}")


class KankaClient:
	"""Thin authenticated wrapper around httpx for the Kanka API."""

	def __init__(self, config: KankaConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
		self._token = config.token
		self._base_url = config.base_url.rstrip("/")
		self._client = httpx.AsyncClient(timeout=config.request_timeout, transport=transport)

	def _headers(self, extra: dict[str, str] | None) -> httpx.Headers:
		headers = httpx.Headers({
			"Authorization": f"Bearer {self._token}",
			"Content-Type": "application/json",
		})
		if extra:
			headers.update(extra)
		return headers

	async def call(
		self,
		path: str,
		method: str = "GET",
		json: Any = None,
		headers: dict[str, str] | None = None,
	) -> Any:
		"""Send a request to `path` (query string included) and return the parsed JSON body."""
		request = self._client.build_request(
			method,
			f"{self._base_url}{path}",
			json=json,
			headers=self._headers(headers),
		)
		response = await self._client.send(request, stream=True)
		try:
			if not response.is_success:
				try:
					await response.aread()
					body = response.text
				except httpx.HTTPError as exc:
					logger.debug("Could not read error body for %s %s: %s", method, path, exc)
					body = ""
				logger.warning("Kanka %s %s -> %d", method, path, response.status_code)
				raise UpstreamError(response.status_code, response.reason_phrase, body)
			await response.aread()
		finally:
			await response.aclose()
		return response.json()

	async def get(self, path: str) -> Any:
		return await self.call(path)

	async def aclose(self) -> None:
		"""Close the underlying HTTP client."""
		await self._client.aclose()

	async def __aenter__(self) -> KankaClient:
		return self

	async def __aexit__(self, *exc: object) -> None:
		await self.aclose()
