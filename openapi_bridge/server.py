"""FastMCP server exposing every OpenAPI operation as a tool.

Operation tools follow the default environment's spec. Each call is
validated against the tool's argument model, checked against the global
rate limit, and forwarded to the chosen environment, where the operation is
looked up again by tool name so a refreshed spec takes effect immediately.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Annotated, Any

import httpx
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools.tool import Tool, ToolResult
from pydantic import Field, ValidationError

from .config import VERSION, Settings
from .environments import EnvironmentManager
from .errors import BridgeError, OperationNotFoundError, RateLimitExceededError, SpecFetchError
from .log import get_logger
from .rate_limiter import RateLimiter
from .render import render
from .schema_parser import ENVIRONMENT_ARGUMENT
from .toolset import ToolDefinition

logger = get_logger("server")

SERVER_INFO_URI = "api://info"

OptionalEnvironment = Annotated[
    str | None,
    Field(description="Environment to use. Defaults to the current default environment."),
]
RequiredEnvironment = Annotated[str, Field(description="One of the configured environments.")]

MANAGEMENT_TOOLS: dict[str, str] = {
    "refresh_openapi_spec": (
        "Refetch the OpenAPI specification from the configured URL and register any new operations"
    ),
    "list_environments": "List all configured API environments",
    "get_current_environment": "Get the current default environment",
    "set_default_environment": "Set the default environment for API operations",
    "check_server_status": (
        "Check server health and status including environment reachability, "
        "rate limits, and tool availability"
    ),
}


class OperationTool(Tool):
    """MCP tool backed by one OpenAPI operation."""

    def __init__(self, bridge: Bridge, definition: ToolDefinition):
        super().__init__(
            name=definition.name,
            description=definition.description,
            parameters=definition.input_schema,
            tags={"openapi", definition.operation.method.lower()},
        )
        self._bridge = bridge
        self._definition = definition

    def __repr__(self) -> str:
        return f"OperationTool(name={self.name!r})"

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        return await self._bridge.call_operation(self._definition, arguments)


def _minutes_ago(moment: datetime | None) -> str:
    if moment is None:
        return "Never"
    minutes = int((datetime.now(timezone.utc) - moment).total_seconds() // 60)
    if minutes == 0:
        return "just now"
    if minutes == 1:
        return "1 minute ago"
    return f"{minutes} minutes ago"


class Bridge:
    """Owns the FastMCP server, the environments and the rate limiter."""

    def __init__(self, settings: Settings, environments: EnvironmentManager):
        self.settings = settings
        self.environments = environments
        self.rate_limiter = (
            RateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window_seconds)
            if settings.rate_limit_enabled
            else None
        )
        self.mcp = FastMCP(settings.server_name)
        self._operation_tools: set[str] = set()

        if self.rate_limiter:
            logger.info(
                "Rate limiting enabled",
                max_requests=settings.rate_limit_max_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )
        else:
            logger.info("Rate limiting disabled")

    @property
    def operation_tools(self) -> set[str]:
        return set(self._operation_tools)

    async def start(self) -> None:
        """Fetch every spec and register all tools and resources."""
        try:
            await self.environments.initialize_all()
        except BridgeError as e:
            raise SpecFetchError(
                f"Cannot start MCP server without valid OpenAPI specifications. {e}",
                e.action,
            ) from e

        info = await self.environments.get_service().api_info()
        logger.info("Default environment API", title=info["title"], version=info["version"])

        await self.sync_operation_tools()
        self._register_management_tools()
        self._register_resources()
        logger.info("MCP server initialization complete", tools=len(self._operation_tools))

    def _enforce_rate_limit(self) -> None:
        if self.rate_limiter is None:
            return
        decision = self.rate_limiter.check()
        if not decision.allowed:
            raise RateLimitExceededError(
                f"Rate limit exceeded. Maximum {self.rate_limiter.max_requests} requests per "
                f"{self.rate_limiter.window:g} seconds. Please retry after {decision.retry_after} seconds.",
                retry_after=decision.retry_after or 1,
            )

    async def sync_operation_tools(self) -> int:
        """Replace the registered operation tools with the default environment's toolset.

        Returns:
            Number of tool names that were not registered before
        """
        tools = await self.environments.get_service().toolset()
        current = {name for name in tools if name not in MANAGEMENT_TOOLS}

        for name in tools:
            if name in MANAGEMENT_TOOLS:
                logger.warning("Operation tool name clashes with a management tool, skipping", tool=name)

        for name in self._operation_tools:
            self.mcp.remove_tool(name)

        for name in current:
            definition = tools[name]
            self.mcp.add_tool(OperationTool(self, definition))
            logger.debug(
                "Registered tool",
                tool=name,
                method=definition.operation.method,
                path=definition.operation.path,
            )

        new_tools = len(current - self._operation_tools)
        self._operation_tools = current
        return new_tools

    async def call_operation(self, definition: ToolDefinition, arguments: dict[str, Any]) -> ToolResult:
        """Validate, rate-limit and forward one tool call."""
        tool_name = definition.name
        try:
            validated = definition.input_model.model_validate(arguments or {})
        except ValidationError as e:
            raise ToolError(f"Invalid arguments for {tool_name}: {e}") from e

        params = validated.model_dump(by_alias=True, exclude_none=True, mode="json")
        environment = self.environments.default_environment
        if definition.routes_environment:
            environment = params.pop(ENVIRONMENT_ARGUMENT, None) or environment
        logger.info("Executing tool", tool=tool_name, environment=environment)

        try:
            self._enforce_rate_limit()
            service = self.environments.get_service(environment)
            operation = await service.get_operation(tool_name)
            if operation is None:
                raise OperationNotFoundError(
                    f'Operation "{tool_name}" not found in current spec for environment "{environment}".',
                    'Run the "refresh_openapi_spec" tool to update available operations.',
                )
            result = await service.execute_operation(operation, params)
        except BridgeError as e:
            logger.error("Tool execution failed", tool=tool_name, error=str(e))
            raise ToolError(f"Error executing operation: {e.to_message()}") from e

        text = result if isinstance(result, str) else json.dumps(result, indent=2)
        return ToolResult(content=text)

    async def refresh(self, environment: str | None = None) -> str:
        """Refetch one environment's spec; re-register tools if it is the default."""
        env = environment or self.environments.default_environment
        logger.info("Refreshing OpenAPI spec", environment=env)
        self._enforce_rate_limit()

        service = self.environments.get_service(env)
        await service.fetch_spec()
        new_tools = 0
        if env == self.environments.default_environment:
            new_tools = await self.sync_operation_tools()

        return render(
            "refresh.txt.j2",
            environment=env,
            api=await service.api_info(),
            operations_count=len(await service.operations()),
            new_tools=new_tools,
        )

    async def status(self) -> str:
        reachability: dict[str, bool] = {}
        for env in self.environments.environments:
            try:
                reachability[env] = await self.environments.get_service(env).check_reachability()
            except (BridgeError, httpx.HTTPError):
                reachability[env] = False

        return render(
            "status.txt.j2",
            reachability=reachability,
            rate_limit=self.rate_limiter.stats() if self.rate_limiter else None,
            tools_available=len(self._operation_tools) + len(MANAGEMENT_TOOLS),
            last_refresh=_minutes_ago(self.environments.get_service().last_fetch),
        )

    async def server_info(self) -> str:
        service = self.environments.get_service()
        tools = await service.toolset()
        return render(
            "server_info.txt.j2",
            server_name=self.settings.server_name,
            api=await service.api_info(),
            base_url=service.base_url,
            tools=list(tools.values()),
            environments=self.environments.environments,
            default_environment=self.environments.default_environment,
            management_tools=MANAGEMENT_TOOLS,
            version=VERSION,
        )

    def _register_management_tools(self) -> None:
        @self.mcp.tool(name="refresh_openapi_spec", description=MANAGEMENT_TOOLS["refresh_openapi_spec"])
        async def refresh_openapi_spec(
            environment: OptionalEnvironment = None,
        ) -> str:
            try:
                return await self.refresh(environment)
            except BridgeError as e:
                logger.error("Error refreshing OpenAPI spec", error=str(e))
                raise ToolError(f"Failed to refresh OpenAPI spec: {e.to_message()}") from e

        @self.mcp.tool(name="list_environments", description=MANAGEMENT_TOOLS["list_environments"])
        async def list_environments() -> str:
            try:
                infos = [await self.environments.environment_info(env) for env in self.environments.environments]
            except BridgeError as e:
                raise ToolError(f"Error listing environments: {e.to_message()}") from e
            return render(
                "environments.txt.j2",
                environments=infos,
                default_environment=self.environments.default_environment,
            )

        @self.mcp.tool(name="get_current_environment", description=MANAGEMENT_TOOLS["get_current_environment"])
        async def get_current_environment() -> str:
            env = self.environments.default_environment
            try:
                info = await self.environments.environment_info(env)
            except BridgeError as e:
                raise ToolError(f"Error getting current environment: {e.to_message()}") from e
            return render("environment.txt.j2", headline=f"Current default environment: {env}", info=info)

        @self.mcp.tool(name="set_default_environment", description=MANAGEMENT_TOOLS["set_default_environment"])
        async def set_default_environment(
            environment: RequiredEnvironment,
        ) -> str:
            try:
                self.environments.set_default_environment(environment)
                await self.sync_operation_tools()
                info = await self.environments.environment_info(environment)
            except BridgeError as e:
                raise ToolError(f"Error setting default environment: {e.to_message()}") from e
            return render("environment.txt.j2", headline=f"Default environment changed to: {environment}", info=info)

        @self.mcp.tool(name="check_server_status", description=MANAGEMENT_TOOLS["check_server_status"])
        async def check_server_status() -> str:
            try:
                return await self.status()
            except BridgeError as e:
                raise ToolError(f"Error checking server status: {e.to_message()}") from e

    def _register_resources(self) -> None:
        @self.mcp.resource(
            SERVER_INFO_URI,
            name="Server Information",
            description="Information about the bridged API and its tools",
            mime_type="text/plain",
        )
        async def server_info() -> str:
            return await self.server_info()

    async def aclose(self) -> None:
        await self.environments.aclose()


async def create_server(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Bridge:
    """Build and start a bridge for ``settings``.

    Args:
        settings: Loaded settings
        transport: Optional httpx transport shared by every environment's client
    """
    bridge = Bridge(settings, EnvironmentManager(settings, transport=transport))
    await bridge.start()
    return bridge
