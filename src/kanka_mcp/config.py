"""TOML + environment configuration loader for kanka-mcp."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

KANKA_API_BASE = "https://kanka.io/api/1.0"
DEFAULT_PORT = 3030


class ConfigError(Exception):
	"""Required configuration is missing or malformed."""


@dataclass
class KankaConfig:
	"""Upstream Kanka API settings."""

	token: str = ""
	campaign_id: str | None = None  # default campaign when a tool omits campaign_id
	base_url: str = KANKA_API_BASE
	request_timeout: float = 30.0


@dataclass
class ServerConfig:
	"""HTTP front end settings."""

	host: str = "0.0.0.0"
	port: int = DEFAULT_PORT
	json_response: bool = False  # streamable transport replies with JSON instead of SSE
	message_path: str = "/messages"


@dataclass
class AppConfig:
	"""Top-level kanka-mcp configuration."""

	kanka: KankaConfig = field(default_factory=KankaConfig)
	server: ServerConfig = field(default_factory=ServerConfig)


def _build_kanka(data: dict[str, Any]) -> KankaConfig:
	kc = KankaConfig()
	for key in ("token", "base_url"):
		if key in data:
			setattr(kc, key, str(data[key]))
	if "campaign_id" in data:
		kc.campaign_id = str(data["campaign_id"]) or None
	if "request_timeout" in data:
		kc.request_timeout = float(data["request_timeout"])
	return kc


def _build_server(data: dict[str, Any]) -> ServerConfig:
	sc = ServerConfig()
	if "host" in data:
		sc.host = str(data["host"])
	if "port" in data:
		sc.port = _parse_port(data["port"])
	if "json_response" in data:
		sc.json_response = bool(data["json_response"])
	if "message_path" in data:
		sc.message_path = str(data["message_path"])
	return sc


def _parse_port(value: Any) -> int:
	try:
		port = int(value)
	except (TypeError, ValueError):
		raise ConfigError(f"Invalid port: {value!r}") from None
	if not 0 < port < 65536:
		raise ConfigError(f"Port out of range: {port}")
	return port


def _apply_env(config: AppConfig, environ: Mapping[str, str]) -> None:
	"""Environment variables take precedence over the TOML file."""
	if environ.get("KANKA_TOKEN"):
		config.kanka.token = environ["KANKA_TOKEN"]
	if "KANKA_CAMPAIGN_ID" in environ:
		config.kanka.campaign_id = environ["KANKA_CAMPAIGN_ID"] or None
	if environ.get("KANKA_API_BASE"):
		config.kanka.base_url = environ["KANKA_API_BASE"]
	if environ.get("HOST"):
		config.server.host = environ["HOST"]
	if environ.get("PORT"):
		config.server.port = _parse_port(environ["PORT"])


def load_config(path: str | Path | None = None, environ: Mapping[str, str] | None = None) -> AppConfig:
	"""Build an AppConfig from an optional TOML file and the environment.

	Raises ConfigError when the file is missing, a value is malformed,
	or no Kanka token is available from either source.
	"""
	config = AppConfig()

	if path is not None:
		p = Path(path)
		if not p.exists():
			raise ConfigError(f"Config file not found: {p}")
		with open(p, "rb") as f:
			data = tomllib.load(f)
		if "kanka" in data:
			config.kanka = _build_kanka(data["kanka"])
		if "server" in data:
			config.server = _build_server(data["server"])

	_apply_env(config, os.environ if environ is None else environ)

	if not config.kanka.token:
		raise ConfigError("KANKA_TOKEN is not set")
	return config


def resolve_campaign_id(explicit: str | None, config: KankaConfig) -> str:
	"""Pick the campaign for a tool call: explicit parameter, then configured default."""
	campaign_id = explicit or config.campaign_id
	if not campaign_id:
		raise ConfigError("campaign_id missing and KANKA_CAMPAIGN_ID not set")
	return campaign_id
