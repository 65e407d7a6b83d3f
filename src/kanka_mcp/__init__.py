"""MCP server exposing the Kanka campaign API as tools."""

from __future__ import annotations

__version__ = "0.2.0"

from kanka_mcp.client import KankaClient, UpstreamError
from kanka_mcp.config import AppConfig, ConfigError, KankaConfig, ServerConfig, load_config
from kanka_mcp.sessions import SessionNotFound, SessionRegistry
from kanka_mcp.tools import TOOLS, ToolDefinition, ToolRegistry, ToolValidationError, build_server

__all__ = [
	"TOOLS",
	"AppConfig",
	"ConfigError",
	"KankaClient",
	"KankaConfig",
	"ServerConfig",
	"SessionNotFound",
	"SessionRegistry",
	"ToolDefinition",
	"ToolRegistry",
	"ToolValidationError",
	"UpstreamError",
	"__version__",
	"build_server",
	"load_config",
]
