"""Fetch one environment's OpenAPI spec and forward tool calls to its API."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import quote, urlparse

import httpx

from .errors import ApiCallError, ConfigurationError, SpecFetchError
from .loader import Operation, extract_operations, get_api_info, get_server_url, parse_document
from .log import get_logger
from .toolset import ToolDefinition, build_toolset
from .vocabulary import ACTION_WORDS

logger = get_logger("service")

_STATUS_HINTS: dict[int, str] = {
    401: "Authentication required. Check if your API requires authentication headers or credentials.",
    403: "Access forbidden. You may not have permission to access this endpoint.",
    404: "Endpoint not found. The API path may be incorrect or the endpoint may not exist.",
    429: "Rate limit exceeded. Too many requests were made to the API. Wait before retrying.",
    500: "The API server encountered an error. Check the API server logs for more details.",
    502: "The API server encountered an error. Check the API server logs for more details.",
    503: "The API server encountered an error. Check the API server logs for more details.",
}

_SPEC_STATUS_HINTS: dict[int, str] = {
    404: (
        "Verify the OpenAPI spec URL path is correct and that the API version in the URL "
        "matches your deployment."
    ),
    401: (
        "The OpenAPI spec endpoint requires authentication. Allow public access to the "
        "spec or contact your API administrator."
    ),
}
_SPEC_STATUS_HINTS[403] = _SPEC_STATUS_HINTS[401]


def _is_local(spec_url: str) -> bool:
    return urlparse(spec_url).scheme in ("", "file")


class ApiService:
    """OpenAPI spec cache plus HTTP forwarding for one environment."""

    def __init__(
        self,
        spec_url: str,
        base_url: str | None = None,
        *,
        timeout: float = 30.0,
        refresh_interval: float = 0.0,
        verify_tls: bool = True,
        environments: list[str] | tuple[str, ...] = (),
        default_environment: str | None = None,
        vocabulary: frozenset[str] = ACTION_WORDS,
        client: httpx.AsyncClient | None = None,
    ):
        if not spec_url:
            raise ConfigurationError(
                "API_SPEC_URL is required.",
                "Set API_SPEC_URL (or API_SPEC_URL_<ENVIRONMENT>) in your .env file.",
            )
        self.spec_url = spec_url
        self._base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self.refresh_interval = refresh_interval
        self.environments = tuple(environments)
        self.default_environment = default_environment
        self.vocabulary = vocabulary
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            verify=verify_tls,
            headers={"Content-Type": "application/json"},
        )
        self._spec: dict[str, Any] | None = None
        self._tools: dict[str, ToolDefinition] = {}
        self._fetched_at: float | None = None
        self.last_fetch: datetime | None = None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _read_spec_text(self) -> str:
        if _is_local(self.spec_url):
            path = Path(self.spec_url.removeprefix("file://"))
            try:
                return path.read_text(encoding="utf-8")
            except OSError as e:
                raise SpecFetchError(
                    f"Failed to read OpenAPI spec from {path}: {e}",
                    "Verify the file path in API_SPEC_URL.",
                ) from e

        try:
            response = await self._client.get(self.spec_url, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise SpecFetchError(
                f"Failed to fetch OpenAPI spec: HTTP {status}",
                _SPEC_STATUS_HINTS.get(status, f"Test the URL in your browser: {self.spec_url}"),
            ) from e
        except httpx.ConnectError as e:
            raise SpecFetchError(
                f"Failed to fetch OpenAPI spec: {e}",
                "Verify the API server is running and the URL in your .env file is correct.",
            ) from e
        except httpx.TimeoutException as e:
            raise SpecFetchError(
                f"Failed to fetch OpenAPI spec: timed out after {self.timeout}s",
                "Check your network connection or increase API_TIMEOUT.",
            ) from e
        except httpx.HTTPError as e:
            action = "Verify API_SPEC_URL is correct in your .env file."
            if "certificate" in str(e).lower():
                action = "For self-signed certificates set VERIFY_TLS=false."
            raise SpecFetchError(f"Failed to fetch OpenAPI spec: {e}", action) from e
        return response.text

    async def fetch_spec(self) -> dict[str, Any]:
        """Fetch the spec and re-run the naming pass from scratch."""
        logger.info("Fetching OpenAPI spec", url=self.spec_url)
        spec = parse_document(await self._read_spec_text())
        operations = extract_operations(spec)

        self._spec = spec
        self._tools = build_toolset(
            spec,
            operations,
            vocabulary=self.vocabulary,
            environments=self.environments,
            default_environment=self.default_environment,
        )
        self._fetched_at = time.monotonic()
        self.last_fetch = datetime.now(timezone.utc)

        info = get_api_info(spec)
        logger.info(
            "OpenAPI spec loaded",
            title=info["title"],
            version=info["version"],
            operations=len(operations),
            tools=len(self._tools),
        )
        return spec

    async def get_spec(self) -> dict[str, Any]:
        """Cached spec, refetched once the refresh interval has elapsed."""
        if self._spec is None:
            await self.fetch_spec()
        elif (
            self.refresh_interval > 0
            and self._fetched_at is not None
            and time.monotonic() - self._fetched_at > self.refresh_interval
        ):
            logger.info("Refreshing OpenAPI spec", url=self.spec_url)
            await self.fetch_spec()
        return self._spec  # type: ignore[return-value]

    async def operations(self) -> list[Operation]:
        return extract_operations(await self.get_spec())

    async def toolset(self) -> dict[str, ToolDefinition]:
        """Tool definitions of the current spec, keyed by tool name."""
        await self.get_spec()
        return self._tools

    async def get_operation(self, tool_name: str) -> Operation | None:
        tool = (await self.toolset()).get(tool_name)
        return tool.operation if tool else None

    async def api_info(self) -> dict[str, Any]:
        return get_api_info(await self.get_spec())

    @property
    def base_url(self) -> str | None:
        """Configured base URL, else the first absolute server URL of the spec."""
        if self._base_url:
            return self._base_url
        if self._spec is not None:
            return get_server_url(self._spec)
        return None

    async def execute_operation(self, operation: Operation, arguments: dict[str, Any]) -> Any:
        """Forward a validated call and return parsed JSON or text."""
        base_url = self.base_url
        if not base_url:
            raise ConfigurationError(
                "API_BASE_URL is not configured and the spec declares no absolute server URL.",
                "Set API_BASE_URL (or API_BASE_URL_<ENVIRONMENT>) in your .env file.",
            )

        path = operation.path
        query: dict[str, Any] = {}
        headers: dict[str, str] = {}
        cookies: list[str] = []

        for param in operation.parameters:
            name = param["name"]
            value = arguments.get(name)
            if value is None:
                continue
            location = param.get("in", "query")
            if location == "path":
                path = path.replace(f"{{{name}}}", quote(str(value), safe=""))
            elif location == "query":
                query[name] = value
            elif location == "header":
                headers[name] = str(value)
            elif location == "cookie":
                cookies.append(f"{name}={value}")
        if cookies:
            headers["Cookie"] = "; ".join(cookies)

        body = arguments.get("body")
        url = base_url + path

        logger.info("Executing operation", method=operation.method, url=url)
        try:
            response = await self._client.request(
                operation.method,
                url,
                params=query,
                headers=headers,
                json=body,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise ApiCallError(
                f"API call failed ({status} {e.response.reason_phrase}): {e.response.text}",
                status=status,
                action=_STATUS_HINTS.get(status),
            ) from e
        except httpx.ConnectError as e:
            raise ApiCallError(
                f"API call failed: {e}",
                action="The API server is not reachable. Verify the API is running and the base URL is correct.",
            ) from e
        except httpx.TimeoutException as e:
            raise ApiCallError(
                f"API call failed: timed out after {self.timeout}s",
                action="The API request timed out. The server may be slow or overloaded.",
            ) from e
        except httpx.HTTPError as e:
            raise ApiCallError(f"API call failed: {e}") from e

        if not response.content:
            return ""
        try:
            return response.json()
        except ValueError:
            return response.text

    async def check_reachability(self) -> bool:
        """True if the spec source answers within five seconds."""
        if _is_local(self.spec_url):
            return Path(self.spec_url.removeprefix("file://")).exists()
        try:
            response = await self._client.get(self.spec_url, timeout=5.0)
        except httpx.HTTPError:
            return False
        return response.is_success
