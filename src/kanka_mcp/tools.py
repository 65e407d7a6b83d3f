"""Kanka MCP tools: parameter models, handlers and the MCP server binding."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal, get_args
from urllib.parse import quote, urlencode

import pydantic
from mcp.server import Server
from mcp.types import TextContent, Tool
from pydantic import BaseModel, Field, StrictInt, StrictStr, field_validator

from kanka_mcp import __version__
from kanka_mcp.client import KankaClient
from kanka_mcp.config import KankaConfig, resolve_campaign_id

logger = logging.getLogger(__name__)

SERVER_NAME = "kanka-mcp"

LIST_PAGE_SIZE = 100
SEARCH_PAGE_SIZE = 50

EntityType = Literal[
	"characters", "locations", "items", "families", "notes", "journals", "quests",
	"organizations", "races", "events", "tags", "abilities", "calendars", "dice_rolls",
]
ENTITY_TYPES: tuple[str, ...] = get_args(EntityType)


class ToolValidationError(Exception):
	"""Tool arguments did not match the tool's parameter schema."""

	def __init__(self, tool_name: str, message: str, errors: list[dict[str, Any]] | None = None) -> None:
		self.tool_name = tool_name
		self.errors = errors or []
		super().__init__(f"Invalid arguments for {tool_name}: {message}")


# -- Parameter models --

class ListCampaignsParams(BaseModel, extra="forbid"):
	pass


class CampaignScopedParams(BaseModel, extra="forbid"):
	"""Parameters shared by tools that operate inside one campaign."""

	campaign_id: StrictStr | StrictInt | None = Field(
		default=None, description="Campaign ID (defaults to KANKA_CAMPAIGN_ID)",
	)
	entity: EntityType = Field(description=" | ".join(ENTITY_TYPES))

	@field_validator("campaign_id")
	@classmethod
	def _campaign_id_as_str(cls, value: str | int | None) -> str | None:
		if value is None:
			return None
		return str(value)


class ListEntitiesParams(CampaignScopedParams):
	pass


class GetEntityParams(CampaignScopedParams):
	id: StrictInt = Field(description="Entity ID")


class SearchByNameParams(CampaignScopedParams):
	name: StrictStr = Field(description="Partial name to match")


class RawGetParams(BaseModel, extra="forbid"):
	path: StrictStr = Field(min_length=1, description="Path and query string, e.g. /campaigns/123/characters?page=2")


# -- Handlers --

Handler = Callable[[KankaClient, KankaConfig, Any], Awaitable[Any]]


async def _list_campaigns(client: KankaClient, config: KankaConfig, params: ListCampaignsParams) -> Any:
	return await client.get("/campaigns")


async def _list_entities(client: KankaClient, config: KankaConfig, params: ListEntitiesParams) -> Any:
	campaign_id = resolve_campaign_id(params.campaign_id, config)
	query = urlencode({"page": 1, "limit": LIST_PAGE_SIZE})
	return await client.get(f"/campaigns/{campaign_id}/{params.entity}?{query}")


async def _get_entity(client: KankaClient, config: KankaConfig, params: GetEntityParams) -> Any:
	campaign_id = resolve_campaign_id(params.campaign_id, config)
	return await client.get(f"/campaigns/{campaign_id}/{params.entity}/{params.id}")


async def _search_by_name(client: KankaClient, config: KankaConfig, params: SearchByNameParams) -> Any:
	campaign_id = resolve_campaign_id(params.campaign_id, config)
	query = urlencode({"name": params.name, "page": 1, "limit": SEARCH_PAGE_SIZE}, quote_via=quote)
	return await client.get(f"/campaigns/{campaign_id}/{params.entity}?{query}")


async def _raw_get(client: KankaClient, config: KankaConfig, params: RawGetParams) -> Any:
	return await client.get(params.path)


# -- Definitions --

@dataclass(frozen=True)
class ToolDefinition:
	"""A named tool: metadata, parameter model and handler."""

	name: str
	title: str
	description: str
	params: type[BaseModel]
	handler: Handler

	@property
	def input_schema(self) -> dict[str, Any]:
		return self.params.model_json_schema()

	def to_mcp_tool(self) -> Tool:
		return Tool(
			name=self.name,
			title=self.title,
			description=self.description,
			inputSchema=self.input_schema,
		)


TOOLS = [
	ToolDefinition(
		name="list_campaigns",
		title="List Campaigns",
		description="List every campaign the token can access.",
		params=ListCampaignsParams,
		handler=_list_campaigns,
	),
	ToolDefinition(
		name="list_entities",
		title="List Entities",
		description="List entities of one type (characters, locations, items, ...) in a campaign.",
		params=ListEntitiesParams,
		handler=_list_entities,
	),
	ToolDefinition(
		name="get_entity",
		title="Get Entity",
		description="Get one entity by type and ID.",
		params=GetEntityParams,
		handler=_get_entity,
	),
	ToolDefinition(
		name="search_by_name",
		title="Search by Name",
		description="Search entities of one type by partial name match.",
		params=SearchByNameParams,
		handler=_search_by_name,
	),
	ToolDefinition(
		name="raw_get",
		title="Raw GET",
		description="GET a Kanka path not covered by the other tools.",
		params=RawGetParams,
		handler=_raw_get,
	),
]


def render_result(data: Any) -> list[TextContent]:
	"""Wrap upstream JSON as a single pretty-printed text block."""
	return [TextContent(type="text", text=json.dumps(data, indent=2, ensure_ascii=False))]


class ToolRegistry:
	"""Named tools bound to one Kanka client and config."""

	def __init__(self, client: KankaClient, config: KankaConfig, definitions: list[ToolDefinition] | None = None) -> None:
		self._client = client
		self._config = config
		self._tools: dict[str, ToolDefinition] = {}
		for definition in TOOLS if definitions is None else definitions:
			self.register(definition)

	def register(self, definition: ToolDefinition) -> None:
		if definition.name in self._tools:
			raise ValueError(f"Tool already registered: {definition.name}")
		self._tools[definition.name] = definition

	def get(self, name: str) -> ToolDefinition | None:
		return self._tools.get(name)

	def definitions(self) -> list[ToolDefinition]:
		return list(self._tools.values())

	def list_tools(self) -> list[Tool]:
		return [d.to_mcp_tool() for d in self._tools.values()]

	def validate(self, name: str, arguments: dict[str, Any] | None) -> BaseModel:
		"""Check arguments against the tool's parameter model."""
		definition = self._tools.get(name)
		if definition is None:
			raise ToolValidationError(name, "unknown tool")
		try:
			return definition.params.model_validate(arguments or {})
		except pydantic.ValidationError as exc:
			raise ToolValidationError(name, str(exc), exc.errors(include_url=False)) from exc

	async def call(self, name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
		params = self.validate(name, arguments)
		definition = self._tools[name]
		try:
			data = await definition.handler(self._client, self._config, params)
		except Exception as e:
			logger.warning("Tool %s failed: %s", name, e)
			raise
		return render_result(data)


def build_server(registry: ToolRegistry) -> Server:
	"""Bind the tool registry to a low-level MCP server."""
	server = Server(SERVER_NAME, version=__version__)

	@server.list_tools()
	async def list_tools() -> list[Tool]:
		return registry.list_tools()

	@server.call_tool()
	async def call_tool(name: str, arguments: dict) -> list[TextContent]:
		return await registry.call(name, arguments)

	return server
