"""Parse an OpenAPI/Swagger document and extract its operations.

Operations come out in document order: paths as declared, and within a
path get, post, put, delete, patch, options, head. That order decides
which operation keeps a contested tool name.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import SpecFormatError

HTTP_METHODS = ("get", "post", "put", "delete", "patch", "options", "head")


@dataclass(frozen=True)
class Operation:
    """One documented (method, path) endpoint."""

    identifier: str
    method: str
    path: str
    summary: str | None = None
    description: str | None = None
    parameters: tuple[dict[str, Any], ...] = ()
    request_body: dict[str, Any] | None = None


def parse_document(text: str) -> dict[str, Any]:
    """Parse JSON or YAML text into an OpenAPI document."""
    try:
        document = json.loads(text)
    except json.JSONDecodeError:
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise SpecFormatError(
                f"Document is neither JSON nor YAML: {e}",
                "Verify the spec URL returns an OpenAPI document.",
            ) from e

    if not isinstance(document, dict) or not (
        "paths" in document or "openapi" in document or "swagger" in document
    ):
        raise SpecFormatError(
            "Document does not look like an OpenAPI/Swagger specification.",
            "Verify the spec URL points at the OpenAPI JSON/YAML, not at the docs UI.",
        )
    return document


def load_spec(path: Path) -> dict[str, Any]:
    """Load an OpenAPI document from disk."""
    return parse_document(path.read_text(encoding="utf-8"))


def get_paths(spec: dict[str, Any]) -> dict[str, Any]:
    """Extract paths from the spec."""
    return spec.get("paths") or {}


def resolve_ref(spec: dict[str, Any], ref: str) -> dict[str, Any]:
    """Resolve a local $ref pointer in the spec."""
    parts = ref.lstrip("#/").split("/")
    node: Any = spec
    for part in parts:
        node = node[part.replace("~1", "/").replace("~0", "~")]
    return node


def _resolve(spec: dict[str, Any], node: dict[str, Any]) -> dict[str, Any]:
    seen: set[str] = set()
    while isinstance(node, dict) and "$ref" in node and node["$ref"] not in seen:
        seen.add(node["$ref"])
        node = resolve_ref(spec, node["$ref"])
    return node


def _merge_parameters(
    spec: dict[str, Any],
    path_level: list[dict[str, Any]],
    operation_level: list[dict[str, Any]],
) -> tuple[dict[str, Any], ...]:
    """Path-level parameters first; an operation-level one replaces a same name+location entry."""
    merged: dict[tuple[str, str], dict[str, Any]] = {}
    for raw in [*path_level, *operation_level]:
        param = _resolve(spec, raw)
        if "name" not in param:
            continue
        merged[(param["name"], param.get("in", "query"))] = param
    return tuple(merged.values())


def derive_identifier(method: str, path: str) -> str:
    """Identifier used when the document has no operationId."""
    return f"{method.lower()}_{re.sub(r'[^a-zA-Z0-9]', '_', path)}"


def extract_operations(spec: dict[str, Any]) -> list[Operation]:
    """Extract every operation in document order."""
    operations: list[Operation] = []
    for path, path_item in get_paths(spec).items():
        if not isinstance(path_item, dict):
            continue
        path_item = _resolve(spec, path_item)
        path_params = path_item.get("parameters") or []

        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if not isinstance(operation, dict):
                continue

            request_body = operation.get("requestBody")
            operations.append(Operation(
                identifier=operation.get("operationId") or derive_identifier(method, path),
                method=method.upper(),
                path=path,
                summary=operation.get("summary"),
                description=operation.get("description"),
                parameters=_merge_parameters(spec, path_params, operation.get("parameters") or []),
                request_body=_resolve(spec, request_body) if request_body else None,
            ))
    return operations


def get_api_info(spec: dict[str, Any]) -> dict[str, Any]:
    """Title, version and description of the API."""
    info = spec.get("info") or {}
    return {
        "title": info.get("title") or "Unknown API",
        "version": info.get("version") or "Unknown",
        "description": info.get("description"),
    }


def get_server_url(spec: dict[str, Any]) -> str | None:
    """First absolute URL in ``servers``, if any."""
    for server in spec.get("servers") or []:
        url = server.get("url", "") if isinstance(server, dict) else ""
        if url.startswith(("http://", "https://")):
            return url.rstrip("/")
    return None
