"""Convert an OpenAPI operation to an MCP tool name.

Friendly operationIds win, converted to snake_case:
  getUserById                      -> get_user_by_id

Otherwise the name comes from method + path:
  GET    /users/{id}               -> get_user
  GET    /users                    -> list_users
  POST   /users                    -> create_user
  POST   /users/search             -> search_user
  POST   /users/{id}/activate      -> activate_user
  POST   /calculate                -> calculate
  PUT    /users/{id}               -> update_user
  PATCH  /users/{id}               -> patch_user
  DELETE /users/{id}               -> delete_user

``/api``, ``/apis`` and bare ``/vN`` segments never contribute to a name.
"""

from __future__ import annotations

import re

from .loader import Operation
from .vocabulary import ACTION_WORDS, is_action_word

_GENERIC_SEGMENTS = frozenset({"api", "apis"})
_VERSION_MARKER = re.compile(r"^v\d+$", re.IGNORECASE)
_AUTO_GENERATED = re.compile(r"^(get|post|put|patch|delete)_.*_")
_WORD_SHAPE = re.compile(r"[a-z\d][A-Z]|[A-Za-z\d][-_][A-Za-z]")


def _is_path_param(segment: str) -> bool:
    return segment.startswith("{") and segment.endswith("}")


def path_segments(path: str) -> list[str]:
    """Return the meaningful segments of a path template, original case kept."""
    segments = []
    for segment in path.split("/"):
        if not segment or _is_path_param(segment):
            continue
        if segment.lower() in _GENERIC_SEGMENTS or _VERSION_MARKER.match(segment):
            continue
        segments.append(segment)
    return segments


def split_identifier(identifier: str) -> list[str]:
    """Split a camelCase, PascalCase, kebab-case or snake_case identifier."""
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", identifier)
    s2 = re.sub(r"([a-z\d])([A-Z])", r"\1 \2", s1)
    return [token.lower() for token in re.split(r"[\s_\-]+", s2) if token]


def tokenize(value: str) -> list[str]:
    """Lower-case word tokens of a path template or an identifier."""
    if "/" in value:
        return [segment.lower() for segment in path_segments(value)]
    return split_identifier(value)


def singularize(word: str) -> str:
    """Naive singular form; exactly one rule applies."""
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("es") and len(word) > 2:
        return word[:-2]
    if word.endswith("s") and len(word) > 1:
        return word[:-1]
    return word


def _find_action(
    segments: list[str],
    vocabulary: frozenset[str],
) -> tuple[int, str, str] | None:
    """Locate the first action word as (segment index, matched token, verb).

    Exact matches on whole segments or their sub-tokens are tried first,
    left to right; then a second pass accepts any sub-token that starts
    with a verb ("exports" -> "export", "searching" -> "search").
    """
    for index, segment in enumerate(segments):
        if is_action_word(segment, vocabulary):
            return index, segment.lower(), segment.lower()
        for token in split_identifier(segment):
            if is_action_word(token, vocabulary):
                return index, token, token

    verbs = sorted(vocabulary, key=len, reverse=True)
    for index, segment in enumerate(segments):
        for token in split_identifier(segment):
            for verb in verbs:
                if token.startswith(verb):
                    return index, token, verb
    return None


def extract_resource_and_action(
    path: str,
    vocabulary: frozenset[str] = ACTION_WORDS,
) -> tuple[str, str | None]:
    """Return the (singular resource, action word or None) of a path."""
    segments = path_segments(path)
    if not segments:
        return "root", None

    found = _find_action(segments, vocabulary)
    if found is None:
        return singularize(segments[-1].lower()), None

    action_index, matched, action = found
    others = [s for i, s in enumerate(segments) if i != action_index]
    if others:
        return singularize(others[-1].lower()), action

    remainder = [t for t in split_identifier(segments[action_index]) if t != matched]
    if remainder:
        return singularize("_".join(remainder)), action
    # Degenerate path made of the action alone, e.g. /calculate
    return action, action


def has_path_params(path: str) -> bool:
    return any(_is_path_param(segment) for segment in path.split("/") if segment)


def looks_auto_generated(identifier: str, method: str) -> bool:
    """True for operationIds shaped like ``get_api_v1_users`` or ``post__users_``."""
    lowered = identifier.lower()
    return (
        lowered.startswith(f"{method.lower()}_")
        or "api_v" in lowered
        or _AUTO_GENERATED.match(lowered) is not None
    )


def is_friendly_identifier(identifier: str, method: str) -> bool:
    """True if an author-written operationId should be used as the tool name."""
    if not identifier or looks_auto_generated(identifier, method):
        return False
    return _WORD_SHAPE.search(identifier) is not None


def identifier_to_snake(identifier: str) -> str:
    """Convert camelCase or kebab-case to snake_case."""
    name = identifier.replace("-", "_")
    name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name).lower()
    name = re.sub(r"_+", "_", name)
    return name.strip("_")


def sanitize_tool_name(raw: str) -> str:
    """Make ``raw`` a valid tool name. Idempotent; may return ''."""
    name = re.sub(r"[^a-zA-Z0-9_]", "_", raw)
    name = name.strip("_")
    if re.match(r"^\d", name):
        name = "api_" + name
    return name.lower()


def build_tool_name(operation: Operation, vocabulary: frozenset[str] = ACTION_WORDS) -> str:
    """Build the base tool name for an operation, before collision handling."""
    if is_friendly_identifier(operation.identifier, operation.method):
        return sanitize_tool_name(identifier_to_snake(operation.identifier))

    resource, action = extract_resource_and_action(operation.path, vocabulary)
    method = operation.method.upper()

    if method == "GET":
        name = f"get_{resource}" if has_path_params(operation.path) else f"list_{resource}s"
    elif method == "POST":
        if action is None:
            name = f"create_{resource}"
        elif resource == action:
            name = action
        else:
            name = f"{action}_{resource}"
    elif method == "PUT":
        name = f"update_{resource}"
    elif method == "PATCH":
        name = f"patch_{resource}"
    elif method == "DELETE":
        name = f"delete_{resource}"
    else:
        name = f"{method.lower()}_{resource}"

    return sanitize_tool_name(name)
