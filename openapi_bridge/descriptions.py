"""Build the one-line description shown to the assistant for each tool."""

from __future__ import annotations

from .loader import Operation
from .naming import extract_resource_and_action, has_path_params
from .vocabulary import ACTION_WORDS


def _describe_from_path(operation: Operation, vocabulary: frozenset[str]) -> str:
    """Generate a phrase when the spec gives neither summary nor description."""
    resource, action = extract_resource_and_action(operation.path, vocabulary)
    readable = resource.replace("_", " ")
    method = operation.method.upper()

    if method == "GET":
        if has_path_params(operation.path):
            return f"Get a single {readable}"
        return f"List {readable}s"
    if method == "POST":
        if action is None:
            return f"Create a new {readable}"
        if action == resource:
            return action.capitalize()
        return f"{action.capitalize()} {readable}"
    if method in ("PUT", "PATCH"):
        return f"Update a {readable}"
    if method == "DELETE":
        return f"Delete a {readable}"
    return f"{method} {operation.path}"


def required_inputs(operation: Operation) -> list[str]:
    """Names of required parameters, plus ``body`` for a required request body."""
    names = []
    body_required = bool(operation.request_body and operation.request_body.get("required") is True)
    for param in operation.parameters:
        if param.get("required") is not True:
            continue
        # Swagger 2 body and form parameters are passed as the ``body`` argument
        if param.get("in") in ("body", "formData"):
            body_required = True
        else:
            names.append(param["name"])
    if body_required:
        names.append("body")
    return names


def build_tool_description(
    operation: Operation,
    vocabulary: frozenset[str] = ACTION_WORDS,
) -> str:
    """Summary, first description line, or a generated phrase; then required inputs."""
    if operation.summary:
        base = operation.summary
    elif operation.description:
        base = operation.description.split("\n")[0]
    else:
        base = _describe_from_path(operation, vocabulary)

    required = required_inputs(operation)
    if not required:
        return base

    if not base.endswith("."):
        base += "."
    return " ".join([base, f"Requires: {', '.join(required)}."])
