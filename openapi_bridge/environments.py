"""One ApiService per configured environment (dev, qa, prod, ...)."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from .config import Settings
from .errors import BridgeError, ConfigurationError, EnvironmentNotFoundError, SpecFetchError
from .log import get_logger
from .service import ApiService
from .vocabulary import build_vocabulary

logger = get_logger("environments")


def _troubleshooting(error: BaseException) -> str:
    message = str(error).lower()
    if "connect" in message or "not reachable" in message:
        return "Check if the API server is running and accessible."
    if "certificate" in message:
        return "For self-signed certificates set VERIFY_TLS=false."
    if "timed out" in message or "timeout" in message:
        return "The server is taking too long to respond. Check API_TIMEOUT or your network connection."
    return "Verify API_SPEC_URL is correct and the endpoint returns a valid OpenAPI specification."


class EnvironmentManager:
    """Route tool calls to the right environment's spec and API."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self._services: dict[str, ApiService] = {}
        vocabulary = build_vocabulary(settings.extra_action_words)

        configs = {}
        for name in settings.environment_names:
            config = settings.environment_configs.get(name)
            if config is None or not config.spec_url:
                logger.warning("Environment is missing API_SPEC_URL, skipping", environment=name)
                continue
            configs[name] = config

        if not configs:
            raise ConfigurationError(
                "No valid environments configured.",
                "Set ENVIRONMENTS (e.g. ENVIRONMENTS=prod) and API_SPEC_URL_<ENVIRONMENT> for each "
                "one, or API_SPEC_URL for a single environment, then restart the server.",
            )

        default = settings.effective_default_environment
        if default not in configs:
            default = next(iter(configs))
            logger.warning("Default environment unavailable, falling back", environment=default)
        self._default = default

        for name, config in configs.items():
            client = None
            if transport is not None:
                client = httpx.AsyncClient(transport=transport, timeout=settings.api_timeout)
            self._services[name] = ApiService(
                config.spec_url,
                config.base_url,
                timeout=settings.api_timeout,
                refresh_interval=settings.spec_refresh_interval,
                verify_tls=settings.verify_tls,
                environments=list(configs),
                default_environment=default,
                vocabulary=vocabulary,
                client=client,
            )

        logger.info(
            "Configured environments",
            environments=list(self._services),
            default=self._default,
        )

    async def initialize_all(self) -> None:
        """Fetch every environment's spec concurrently."""

        async def _initialize(name: str, service: ApiService) -> None:
            try:
                await service.fetch_spec()
            except BridgeError as e:
                logger.error("Failed to initialize environment", environment=name, error=str(e))
                raise SpecFetchError(
                    f'Failed to initialize environment "{name}": {e}',
                    e.action or _troubleshooting(e),
                ) from e
            logger.info("Environment initialized", environment=name)

        await asyncio.gather(*(_initialize(n, s) for n, s in self._services.items()))

    @property
    def environments(self) -> list[str]:
        return list(self._services)

    @property
    def default_environment(self) -> str:
        return self._default

    def has_environment(self, environment: str) -> bool:
        return environment in self._services

    def get_service(self, environment: str | None = None) -> ApiService:
        env = environment or self._default
        service = self._services.get(env)
        if service is None:
            raise EnvironmentNotFoundError(
                f'Environment "{env}" not found. Available environments: {", ".join(self.environments)}',
                f'Use one of the available environments, or add "{env}" to ENVIRONMENTS.',
            )
        return service

    def set_default_environment(self, environment: str) -> None:
        if not self.has_environment(environment):
            raise EnvironmentNotFoundError(
                f'Environment "{environment}" not found. '
                f"Available environments: {', '.join(self.environments)}",
                "Choose one of the available environments.",
            )
        self._default = environment
        logger.info("Default environment changed", environment=environment)

    async def environment_info(self, environment: str | None = None) -> dict[str, Any]:
        env = environment or self._default
        service = self.get_service(env)
        info = await service.api_info()
        return {
            "environment": env,
            "api_title": info["title"],
            "api_version": info["version"],
            "base_url": service.base_url,
            "operations_count": len(await service.operations()),
        }

    async def aclose(self) -> None:
        for service in self._services.values():
            await service.aclose()
