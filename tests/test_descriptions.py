"""Tests for tool descriptions."""

from conftest import make_operation

from openapi_bridge.descriptions import build_tool_description, required_inputs

_ID = {"name": "id", "in": "path", "required": True}


class TestBaseDescription:
    """Summary first, then description, then a generated phrase."""

    def test_summary(self):
        op = make_operation(summary="Retrieve user details", description="Ignored")
        assert build_tool_description(op) == "Retrieve user details"

    def test_first_description_line(self):
        op = make_operation(description="Get user information\nIncludes profile fields.")
        assert build_tool_description(op) == "Get user information"

    def test_get_item(self):
        assert build_tool_description(make_operation("GET", "/users/{id}")) == "Get a single user"

    def test_list(self):
        assert build_tool_description(make_operation("GET", "/user-profiles")) == "List user-profiles"

    def test_create(self):
        assert build_tool_description(make_operation("POST", "/users")) == "Create a new user"

    def test_action(self):
        assert build_tool_description(make_operation("POST", "/orders/cancel")) == "Cancel order"

    def test_action_only(self):
        assert build_tool_description(make_operation("POST", "/calculate")) == "Calculate"

    def test_update(self):
        assert build_tool_description(make_operation("PUT", "/users/{id}")) == "Update a user"
        assert build_tool_description(make_operation("PATCH", "/users/{id}")) == "Update a user"

    def test_delete(self):
        assert build_tool_description(make_operation("DELETE", "/users/{id}")) == "Delete a user"

    def test_other_method(self):
        assert build_tool_description(make_operation("OPTIONS", "/users")) == "OPTIONS /users"


class TestRequiredInputs:
    """Required parameters and bodies are appended."""

    def test_required_parameter(self):
        op = make_operation(summary="Get user", parameters=(_ID,))
        assert build_tool_description(op) == "Get user. Requires: id."

    def test_required_body(self):
        op = make_operation("POST", summary="Create user", request_body={"required": True})
        assert build_tool_description(op) == "Create user. Requires: body."

    def test_no_double_period(self):
        op = make_operation(summary="Get user.", parameters=(_ID,))
        assert build_tool_description(op) == "Get user. Requires: id."

    def test_generated_phrase_with_requirements(self):
        op = make_operation("POST", "/users/{id}/activate", parameters=(_ID,))
        assert build_tool_description(op) == "Activate user. Requires: id."

    def test_optional_inputs_not_listed(self):
        op = make_operation(
            "POST",
            summary="Create user",
            parameters=({"name": "dryRun", "in": "query"}, {"name": "trace", "in": "header", "required": False}),
            request_body={"required": False},
        )
        assert required_inputs(op) == []
        assert build_tool_description(op) == "Create user"

    def test_order(self):
        op = make_operation(
            "PUT",
            "/orgs/{org}/users/{id}",
            parameters=({"name": "org", "in": "path", "required": True}, _ID),
            request_body={"required": True},
        )
        assert required_inputs(op) == ["org", "id", "body"]

    def test_swagger2_body_parameter_named_body(self):
        op = make_operation(
            "POST",
            summary="Create user",
            parameters=({"name": "payload", "in": "body", "required": True, "schema": {"type": "object"}},),
        )
        assert build_tool_description(op) == "Create user. Requires: body."

    def test_form_parameters_listed_once_as_body(self):
        op = make_operation(
            "POST",
            "/uploads",
            parameters=(
                _ID,
                {"name": "file", "in": "formData", "type": "string", "required": True},
                {"name": "name", "in": "formData", "type": "string", "required": True},
            ),
        )
        assert required_inputs(op) == ["id", "body"]
