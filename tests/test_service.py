"""Tests for ApiService: spec fetching, toolset building and request forwarding."""

import json

import httpx
import pytest
from conftest import FIXTURES, SPEC_URL, USER_TOOLS, FakeApi

from openapi_bridge.errors import ApiCallError, ConfigurationError, SpecFetchError, SpecFormatError
from openapi_bridge.service import ApiService


def make_service(api: FakeApi, **kwargs) -> ApiService:
    return ApiService(SPEC_URL, client=httpx.AsyncClient(transport=api.transport), **kwargs)


class TestFetchSpec:
    """Test spec retrieval and the derived toolset."""

    async def test_toolset(self, fake_api):
        service = make_service(fake_api)
        tools = await service.toolset()
        assert list(tools) == USER_TOOLS
        assert tools["activate_user"].description == "Activate user. Requires: id."
        assert tools["delete_user"].description == "Remove a user. Requires: id."
        assert service.last_fetch is not None

    async def test_cached_until_refresh(self, fake_api):
        service = make_service(fake_api)
        await service.toolset()
        fake_api.spec["paths"]["/teams"] = {"get": {"operationId": "listTeams"}}
        assert "list_teams" not in await service.toolset()
        await service.fetch_spec()
        assert "list_teams" in await service.toolset()

    async def test_refresh_interval(self, fake_api):
        service = make_service(fake_api, refresh_interval=60)
        await service.toolset()
        fake_api.spec["paths"]["/teams"] = {"get": {"operationId": "listTeams"}}
        service._fetched_at -= 61
        assert "list_teams" in await service.toolset()

    async def test_refetch_renames_from_scratch(self, fake_api):
        """Names depend only on the current spec, not on earlier fetches."""
        service = make_service(fake_api)
        await service.toolset()
        del fake_api.spec["paths"]["/users/{id}"]
        await service.fetch_spec()
        tools = await service.toolset()
        assert list(tools) == ["list_users", "create_user", "activate_user"]
        assert await service.get_operation("get_user_by_id") is None

    async def test_environment_field(self, fake_api):
        service = make_service(fake_api, environments=["dev", "prod"], default_environment="dev")
        tools = await service.toolset()
        assert "environment" in tools["list_users"].input_schema["properties"]

    async def test_http_error(self, fake_api):
        fake_api.spec_status = 404
        with pytest.raises(SpecFetchError, match="HTTP 404") as exc:
            await make_service(fake_api).fetch_spec()
        assert "path is correct" in exc.value.action

    async def test_connect_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        service = ApiService(SPEC_URL, client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)))
        with pytest.raises(SpecFetchError) as exc:
            await service.fetch_spec()
        assert "running" in exc.value.action

    async def test_not_openapi(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html></html>"))
        service = ApiService(SPEC_URL, client=httpx.AsyncClient(transport=transport))
        with pytest.raises(SpecFormatError):
            await service.fetch_spec()

    async def test_local_file(self):
        service = ApiService(str(FIXTURES / "petstore.yaml"))
        try:
            tools = await service.toolset()
            assert "get_pet_v2" in tools
            assert service.base_url == "https://pets.example.com"
            assert await service.check_reachability()
        finally:
            await service.aclose()

    async def test_missing_local_file(self, tmp_path):
        service = ApiService(f"file://{tmp_path / 'missing.json'}")
        try:
            with pytest.raises(SpecFetchError, match="Failed to read"):
                await service.fetch_spec()
        finally:
            await service.aclose()

    def test_spec_url_required(self):
        with pytest.raises(ConfigurationError):
            ApiService("")


class TestExecuteOperation:
    """Test request construction and error mapping."""

    async def _operation(self, service, name):
        return await service.get_operation(name)

    async def test_path_parameter(self, fake_api):
        service = make_service(fake_api)
        op = await self._operation(service, "get_user_by_id")
        await service.execute_operation(op, {"id": "a b/c"})
        assert fake_api.requests[-1].url.raw_path == b"/users/a%20b%2Fc"

    async def test_base_url_from_spec_servers(self, fake_api):
        service = make_service(fake_api)
        op = await self._operation(service, "list_users")
        await service.execute_operation(op, {})
        assert str(fake_api.requests[-1].url) == "https://api.example.com/users"

    async def test_configured_base_url_wins(self, fake_api):
        service = make_service(fake_api, base_url="https://staging.example.com/")
        op = await self._operation(service, "list_users")
        result = await service.execute_operation(op, {"limit": 5})
        request = fake_api.requests[-1]
        assert request.url.host == "staging.example.com"
        assert request.url.params["limit"] == "5"
        assert result[0]["host"] == "staging.example.com"

    async def test_headers_and_cookies(self):
        api = FakeApi({
            "openapi": "3.0.0",
            "paths": {
                "/reports": {
                    "get": {
                        "operationId": "listReports",
                        "parameters": [
                            {"name": "X-Tenant", "in": "header"},
                            {"name": "session", "in": "cookie"},
                            {"name": "theme", "in": "cookie"},
                        ],
                    },
                },
            },
        })
        api.respond("GET", "/reports", httpx.Response(200, json=[]))
        service = make_service(api, base_url="https://api.example.com")
        op = await self._operation(service, "list_reports")
        await service.execute_operation(op, {"X-Tenant": "acme", "session": "s1", "theme": "dark"})
        request = api.requests[-1]
        assert request.headers["X-Tenant"] == "acme"
        assert request.headers["Cookie"] == "session=s1; theme=dark"

    async def test_json_body(self, fake_api):
        service = make_service(fake_api)
        op = await self._operation(service, "create_user")
        result = await service.execute_operation(op, {"body": {"name": "Ada", "role": "admin"}})
        assert result == {"id": "2", "name": "Ada", "role": "admin"}
        assert json.loads(fake_api.requests[-1].content) == {"name": "Ada", "role": "admin"}

    async def test_empty_response(self, fake_api):
        service = make_service(fake_api)
        op = await self._operation(service, "delete_user")
        assert await service.execute_operation(op, {"id": "1"}) == ""

    async def test_text_response(self, fake_api):
        service = make_service(fake_api)
        op = await self._operation(service, "activate_user")
        assert await service.execute_operation(op, {"id": "1"}) == "activated"

    async def test_status_error(self, fake_api):
        service = make_service(fake_api)
        op = await self._operation(service, "get_user_by_id")
        with pytest.raises(ApiCallError) as exc:
            await service.execute_operation(op, {"id": "missing"})
        assert exc.value.status == 404
        assert "user not found" in str(exc.value)
        assert "Endpoint not found" in exc.value.action

    async def test_no_base_url(self):
        api = FakeApi({"openapi": "3.0.0", "paths": {"/users": {"get": {"operationId": "listUsers"}}}})
        service = make_service(api)
        op = await self._operation(service, "list_users")
        with pytest.raises(ConfigurationError, match="API_BASE_URL"):
            await service.execute_operation(op, {})

    async def test_api_info(self, fake_api):
        info = await make_service(fake_api).api_info()
        assert info["title"] == "Users API"
        assert len(await make_service(fake_api).operations()) == 5
