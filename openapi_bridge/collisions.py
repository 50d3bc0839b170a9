"""Keep tool names unique within one generation pass.

The first operation to reach a base name keeps it. Later operations get a
suffix from the first strategy that yields a free name:

  1. version tag of the new path        get_user_v2
  2. last word of a differing operationId
  3. a path segment the other path lacks  get_user_admin
  4. the HTTP method, if the paths differ get_user_post
  5. literal fallback                     get_user_alt, get_user_alt2, ...
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .loader import Operation
from .log import get_logger
from .naming import build_tool_name, sanitize_tool_name, split_identifier, tokenize
from .vocabulary import ACTION_WORDS

logger = get_logger("collisions")

_VERSION_TAG = re.compile(r"/(v\d+(?:\.\d+)?)(?=/|$)", re.IGNORECASE)


def extract_version(path: str) -> str | None:
    """Return the ``vN`` or ``vN.M`` segment of a path, lower-cased."""
    match = _VERSION_TAG.search(path)
    return match.group(1).lower() if match else None


def _candidates(base_name: str, new_op: Operation, existing_op: Operation) -> Iterable[str]:
    """Yield suffixes in strategy order."""
    last_segment = base_name.rsplit("_", 1)[-1]

    version = extract_version(new_op.path)
    if version:
        yield version

    if new_op.identifier and existing_op.identifier and new_op.identifier != existing_op.identifier:
        tokens = split_identifier(new_op.identifier)
        if tokens and tokens[-1] != last_segment:
            yield tokens[-1]

    existing_tokens = set(tokenize(existing_op.path))
    for token in tokenize(new_op.path):
        if token not in existing_tokens and token != last_segment:
            yield token

    if new_op.path != existing_op.path:
        yield new_op.method.lower()


def resolve_collision(
    base_name: str,
    new_op: Operation,
    existing_op: Operation,
    taken: Iterable[str] = (),
) -> str:
    """Derive a free name for ``new_op`` when ``base_name`` is already registered."""
    used = set(taken)
    used.add(base_name)

    for suffix in _candidates(base_name, new_op, existing_op):
        candidate = sanitize_tool_name(f"{base_name}_{suffix}")
        if candidate and candidate not in used:
            return candidate

    candidate = f"{base_name}_alt"
    counter = 2
    while candidate in used:
        candidate = f"{base_name}_alt{counter}"
        counter += 1
    return candidate


def assign_tool_names(
    operations: Iterable[Operation],
    vocabulary: frozenset[str] = ACTION_WORDS,
) -> dict[str, Operation]:
    """Name every operation, in declaration order, from an empty registry."""
    registry: dict[str, Operation] = {}
    for operation in operations:
        base_name = build_tool_name(operation, vocabulary)
        if not base_name:
            logger.warning(
                "Skipping operation without a usable name",
                method=operation.method,
                path=operation.path,
            )
            continue

        name = base_name
        if base_name in registry:
            name = resolve_collision(base_name, operation, registry[base_name], registry)
            logger.debug(
                "Resolved tool name collision",
                base_name=base_name,
                name=name,
                path=operation.path,
            )
        registry[name] = operation
    return registry
