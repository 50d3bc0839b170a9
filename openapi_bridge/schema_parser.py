"""Turn OpenAPI parameter and body schemas into pydantic input models.

Handles:
- Path, query, header and cookie parameters
- JSON request bodies (OpenAPI 3 requestBody, Swagger 2 body parameter)
- Swagger 2 formData parameters collected into one body object
- $ref resolution, with cycles cut off at MAX_DEPTH
- allOf merging, oneOf/anyOf first usable branch
- enum values as Literal types
- readOnly properties dropped from request bodies
- numeric bounds and array length bounds
- nested objects as nested models
- parameter names that are not Python identifiers (kept as aliases)
"""

from __future__ import annotations

import keyword
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, create_model

from .loader import Operation, resolve_ref

MAX_DEPTH = 4

_RESERVED_NAMES = frozenset(dir(BaseModel))
_JSON_CONTENT = re.compile(r"^application/(.+\+)?json")


def _strip_html(text: str) -> str:
    """Strip HTML tags and collapse whitespace."""
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text


def _camel(name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[^A-Za-z0-9]+", name) if part)


def field_name(name: str) -> str:
    """Python-safe field name for an OpenAPI property or parameter name."""
    safe = re.sub(r"\W", "_", name)
    if not safe or safe[0].isdigit() or safe.startswith("_"):
        safe = f"f_{safe.lstrip('_')}"
    if keyword.iskeyword(safe) or safe in _RESERVED_NAMES or safe.startswith("model_"):
        safe = f"{safe}_"
    return safe


def _merge_all_of(spec: dict[str, Any], schema: dict[str, Any]) -> dict[str, Any]:
    """Flatten an allOf composition into one object schema."""
    merged_props: dict[str, Any] = {}
    merged_required: list[str] = []
    description = schema.get("description")
    for sub in schema["allOf"]:
        if "$ref" in sub:
            sub = resolve_ref(spec, sub["$ref"])
        if "allOf" in sub:
            sub = _merge_all_of(spec, sub)
        merged_props.update(sub.get("properties", {}))
        merged_required.extend(sub.get("required", []))
        description = description or sub.get("description")
    merged: dict[str, Any] = {"type": "object", "properties": merged_props, "required": merged_required}
    if description:
        merged["description"] = description
    return merged


def _schema_type(schema: dict[str, Any]) -> str | None:
    """The declared type; OpenAPI 3.1 type lists pick the first non-null entry."""
    declared = schema.get("type")
    if isinstance(declared, list):
        declared = next((t for t in declared if t != "null"), None)
    return declared


def resolve_schema_type(
    spec: dict[str, Any],
    schema: dict[str, Any] | None,
    name: str = "Value",
    depth: int = 0,
) -> Any:
    """Resolve an OpenAPI schema to a Python type annotation."""
    if not schema:
        return Any

    if "$ref" in schema:
        if depth >= MAX_DEPTH:
            return dict[str, Any]
        return resolve_schema_type(spec, resolve_ref(spec, schema["$ref"]), name, depth + 1)

    if "allOf" in schema:
        return resolve_schema_type(spec, _merge_all_of(spec, schema), name, depth + 1)

    for key in ("oneOf", "anyOf"):
        if key in schema:
            for sub in schema[key]:
                resolved = resolve_schema_type(spec, sub, name, depth + 1)
                if resolved is not Any:
                    return resolved
            return Any

    values = [v for v in schema.get("enum") or [] if v is not None]
    if values and all(isinstance(v, (str, int, bool)) for v in values):
        return Literal[tuple(values)]

    schema_type = _schema_type(schema)
    if schema_type == "string":
        return str
    if schema_type == "integer":
        return int
    if schema_type == "number":
        return float
    if schema_type == "boolean":
        return bool
    if schema_type == "array":
        item_type = resolve_schema_type(spec, schema.get("items"), f"{name}Item", depth + 1)
        return list[item_type]
    if schema_type == "object" or "properties" in schema:
        if schema.get("properties") and depth < MAX_DEPTH:
            return build_object_model(spec, schema, name, depth + 1)
        return dict[str, Any]

    return Any


def _constraints(spec: dict[str, Any], schema: dict[str, Any]) -> dict[str, Any]:
    """Field constraints for numeric bounds and array lengths."""
    if "$ref" in schema:
        schema = resolve_ref(spec, schema["$ref"])
    schema_type = _schema_type(schema)
    constraints: dict[str, Any] = {}
    if schema_type in ("integer", "number"):
        if isinstance(schema.get("minimum"), (int, float)):
            constraints["ge"] = schema["minimum"]
        if isinstance(schema.get("maximum"), (int, float)):
            constraints["le"] = schema["maximum"]
    elif schema_type == "array":
        if isinstance(schema.get("minItems"), int):
            constraints["min_length"] = schema["minItems"]
        if isinstance(schema.get("maxItems"), int):
            constraints["max_length"] = schema["maxItems"]
    return constraints


def _field(
    spec: dict[str, Any],
    schema: dict[str, Any] | None,
    *,
    alias: str,
    required: bool,
    description: str | None,
    model_name: str,
    depth: int = 0,
) -> tuple[Any, Any]:
    """A (type, FieldInfo) pair for create_model."""
    schema = schema or {}
    annotation = resolve_schema_type(spec, schema, model_name, depth)
    extra = _constraints(spec, schema)
    if description:
        extra["description"] = _strip_html(description)
    if required:
        return annotation, Field(..., alias=alias, **extra)
    if annotation is not Any:
        annotation = annotation | None
    return annotation, Field(default=None, alias=alias, **extra)


def build_object_model(
    spec: dict[str, Any],
    schema: dict[str, Any],
    name: str,
    depth: int = 0,
) -> type[BaseModel]:
    """Build a nested model for an object schema with properties."""
    required = set(schema.get("required", []))
    fields: dict[str, Any] = {}
    for prop_name, prop_schema in schema.get("properties", {}).items():
        if (prop_schema or {}).get("readOnly"):
            continue
        fields[field_name(prop_name)] = _field(
            spec,
            prop_schema,
            alias=prop_name,
            required=prop_name in required,
            description=(prop_schema or {}).get("description"),
            model_name=f"{name}{_camel(prop_name)}",
            depth=depth,
        )
    return create_model(
        _camel(name) or "Object",
        __config__=ConfigDict(populate_by_name=True),
        **fields,
    )


def get_body_schema(operation: Operation) -> dict[str, Any] | None:
    """JSON schema of the request body, if the operation takes one."""
    content = (operation.request_body or {}).get("content") or {}
    for media_type, media in content.items():
        if _JSON_CONTENT.match(media_type) and isinstance(media, dict):
            return media.get("schema") or {}
    for param in operation.parameters:
        if param.get("in") == "body":
            return param.get("schema") or {}

    form = [p for p in operation.parameters if p.get("in") == "formData"]
    if not form:
        return None
    return {
        "type": "object",
        "properties": {
            p["name"]: {k: v for k, v in p.items() if k not in ("name", "in", "required")} for p in form
        },
        "required": [p["name"] for p in form if p.get("required") is True],
    }


ENVIRONMENT_ARGUMENT = "environment"


def declares_environment(operation: Operation) -> bool:
    """True if the API itself has a parameter that maps to the routing argument."""
    return any(
        field_name(p["name"]) == ENVIRONMENT_ARGUMENT
        for p in operation.parameters
        if p.get("in", "query") not in ("body", "formData")
    )


def build_input_model(
    spec: dict[str, Any],
    operation: Operation,
    tool_name: str,
    environments: list[str] | tuple[str, ...] = (),
    default_environment: str | None = None,
) -> type[BaseModel]:
    """Build the argument model of one tool; its JSON schema is the tool's inputSchema."""
    model_name = f"{_camel(tool_name)}Arguments"
    fields: dict[str, Any] = {}

    for param in operation.parameters:
        location = param.get("in", "query")
        if location in ("body", "formData"):
            continue
        name = param["name"]
        # Swagger 2 keeps the type on the parameter itself
        schema = param.get("schema") or {k: v for k, v in param.items() if k not in ("name", "in")}
        description = param.get("description") or schema.get("description") or f"{name} parameter"
        fields.setdefault(field_name(name), _field(
            spec,
            schema,
            alias=name,
            required=param.get("required") is True,
            description=description,
            model_name=f"{model_name}{_camel(name)}",
        ))

    body_schema = get_body_schema(operation)
    if body_schema is not None and "body" not in fields:
        body_required = bool((operation.request_body or {}).get("required")) or any(
            p.get("in") in ("body", "formData") and p.get("required") for p in operation.parameters
        )
        fields["body"] = _field(
            spec,
            body_schema,
            alias="body",
            required=body_required,
            description=(operation.request_body or {}).get("description") or "Request body",
            model_name=f"{model_name}Body",
        )

    if environments and not declares_environment(operation):
        fields[ENVIRONMENT_ARGUMENT] = (
            Literal[tuple(environments)] | None,
            Field(
                default=None,
                description=(
                    "Environment to execute the operation in. "
                    f"Available: {', '.join(environments)}. Default: {default_environment or environments[0]}"
                ),
            ),
        )

    return create_model(model_name, __config__=ConfigDict(populate_by_name=True), **fields)
