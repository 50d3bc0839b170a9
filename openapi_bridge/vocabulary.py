"""Action verbs that override default CRUD naming.

A path such as ``POST /users/{id}/activate`` is named ``activate_user``
rather than ``create_user`` because ``activate`` is in this vocabulary.
"""

from __future__ import annotations

from collections.abc import Iterable

ACTION_WORDS: frozenset[str] = frozenset({
    "activate", "add", "analyze", "approve", "archive", "assign",
    "authenticate", "authorize", "calculate", "cancel", "certify", "check",
    "clone", "close", "compare", "complete", "compute", "confirm", "connect",
    "convert", "copy", "count", "create", "deactivate", "decline", "decrypt",
    "delete", "deploy", "disable", "disconnect", "download", "duplicate",
    "enable", "encrypt", "enroll", "estimate", "evaluate", "execute",
    "export", "fetch", "filter", "find", "generate", "get", "import",
    "invite", "link", "list", "lock", "login", "logout", "merge", "move",
    "notify", "pause", "preview", "process", "publish", "purge", "query",
    "refresh", "register", "reject", "release", "remove", "rename", "renew",
    "reorder", "replace", "reset", "resolve", "restore", "resume", "retry",
    "revoke", "schedule", "search", "send", "share", "sign", "simulate",
    "sort", "start", "stop", "submit", "subscribe", "suspend", "sync",
    "terminate", "track", "transfer", "transform", "trigger", "unlink",
    "unlock", "unsubscribe", "update", "upload", "upsert", "validate",
    "verify", "void",
})


def build_vocabulary(extra: Iterable[str] = ()) -> frozenset[str]:
    """Return the default vocabulary extended with custom verbs."""
    custom = {word.strip().lower() for word in extra if word and word.strip()}
    return ACTION_WORDS | custom


def is_action_word(token: str, vocabulary: frozenset[str] = ACTION_WORDS) -> bool:
    """Return True if ``token`` is exactly one of the action verbs."""
    return token.lower() in vocabulary
