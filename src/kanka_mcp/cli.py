"""CLI interface for kanka-mcp."""

from __future__ import annotations

import argparse
import asyncio
import logging

import uvicorn
from dotenv import load_dotenv

from kanka_mcp.client import KankaClient
from kanka_mcp.config import AppConfig, ConfigError, _parse_port, load_config
from kanka_mcp.tools import TOOLS, ToolRegistry, build_server


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="kanka-mcp",
		description="MCP server for the Kanka campaign API",
	)
	sub = parser.add_subparsers(dest="command")

	# kanka-mcp serve
	serve = sub.add_parser("serve", help="Serve over streamable HTTP (/mcp) and legacy SSE (/sse)")
	serve.add_argument("--config", default=None, help="Optional TOML config file")
	serve.add_argument("--host", default=None, help="Bind address (overrides HOST)")
	serve.add_argument("--port", type=int, default=None, help="Listen port (overrides PORT)")

	# kanka-mcp stdio
	stdio = sub.add_parser("stdio", help="Serve over stdio")
	stdio.add_argument("--config", default=None, help="Optional TOML config file")

	# kanka-mcp tools
	sub.add_parser("tools", help="List available tools")

	return parser


def _load(args: argparse.Namespace) -> AppConfig | None:
	try:
		return load_config(args.config)
	except ConfigError as e:
		print(f"Error: {e}")
		return None


def cmd_serve(args: argparse.Namespace) -> int:
	"""Run the HTTP server. Exits before binding if the config is unusable."""
	config = _load(args)
	if config is None:
		return 1
	if args.host:
		config.server.host = args.host
	if args.port is not None:
		try:
			config.server.port = _parse_port(args.port)
		except ConfigError as e:
			print(f"Error: {e}")
			return 1

	from kanka_mcp.app import create_app

	app = create_app(config)
	base = f"http://localhost:{config.server.port}"
	print("kanka-mcp server started:")
	print(f"  Streamable HTTP: {base}/mcp")
	print(f"  SSE (legacy):    {base}/sse")
	uvicorn.run(app, host=config.server.host, port=config.server.port, log_level="info")
	return 0


def cmd_stdio(args: argparse.Namespace) -> int:
	"""Run the tools over the stdio transport."""
	from mcp.server.stdio import stdio_server

	config = _load(args)
	if config is None:
		return 1

	async def _run() -> None:
		async with KankaClient(config.kanka) as client:
			server = build_server(ToolRegistry(client, config.kanka))
			async with stdio_server() as (read_stream, write_stream):
				await server.run(read_stream, write_stream, server.create_initialization_options())

	asyncio.run(_run())
	return 0


def cmd_tools(args: argparse.Namespace) -> int:
	"""List tool names and titles."""
	for definition in TOOLS:
		print(f"  {definition.name}: {definition.title}")
	return 0


COMMANDS = {
	"serve": cmd_serve,
	"stdio": cmd_stdio,
	"tools": cmd_tools,
}


def main(argv: list[str] | None = None) -> int:
	logging.basicConfig(
		level=logging.INFO,
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
		datefmt="%H:%M:%S",
		force=True,
	)
	load_dotenv()
	parser = build_parser()
	args = parser.parse_args(argv)

	if args.command is None:
		parser.print_help()
		return 0

	handler = COMMANDS.get(args.command)
	if handler is None:
		print(f"Unknown command: {args.command}")
		return 1
	return handler(args)


if __name__ == "__main__":
	raise SystemExit(main())
