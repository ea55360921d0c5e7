"""Three-way merge of JSON configuration documents.

The merge works on leaf paths: nested objects are walked, while lists and
scalars are compared as whole values. Every leaf where the user's copy
differs from the shipped base (including deleted leaves) is a user
deviation; deviations are reapplied on top of the incoming document.

System fields always take the incoming value, whatever the user did.
"""

import copy
import json
from dataclasses import dataclass
from typing import Any

from refit.merge.schema import validate_config_document

SYSTEM_FIELDS = frozenset({"version", "schemaVersion"})

LeafPath = tuple[str, ...]

_ABSENT = object()
_ABSENT_TEXT = "<absent>"


@dataclass(frozen=True)
class FieldConflict:
    """A leaf changed by both the user and the incoming release, to different values.

    Values are JSON text ("<absent>" for a deleted or missing leaf).
    """

    path: str
    base: str
    user: str
    incoming: str


@dataclass(frozen=True)
class ConfigMergeResult:
    merged: dict
    user_changes: tuple[str, ...]
    conflicts: tuple[FieldConflict, ...]
    schema_errors: tuple[str, ...]

    @property
    def conflicted(self) -> bool:
        return bool(self.conflicts) or bool(self.schema_errors)

    def render_diff(self) -> str:
        lines: list[str] = []
        for conflict in self.conflicts:
            lines.append(
                f"  - {conflict.path}: base={conflict.base} "
                f"user={conflict.user} incoming={conflict.incoming}"
            )
        for i, error in enumerate(self.schema_errors, start=1):
            lines.append(f"  {i}. {error}")
        if self.user_changes:
            lines.append("User changes applied:")
            lines.extend(f"  - {change}" for change in self.user_changes)
        return "\n".join(lines)


def _flatten(document: dict, prefix: LeafPath = ()) -> dict[LeafPath, Any]:
    leaves: dict[LeafPath, Any] = {}
    for key, value in document.items():
        path = (*prefix, str(key))
        if isinstance(value, dict) and value:
            leaves.update(_flatten(value, path))
        else:
            leaves[path] = value
    return leaves


def _to_text(value: Any) -> str:
    if value is _ABSENT:
        return _ABSENT_TEXT
    return json.dumps(value, sort_keys=True)


def _same(left: Any, right: Any) -> bool:
    return _to_text(left) == _to_text(right)


def _is_prefix(prefix: LeafPath, path: LeafPath) -> bool:
    return len(prefix) < len(path) and path[: len(prefix)] == prefix


def _set_leaf(document: dict, path: LeafPath, value: Any) -> None:
    node = document
    for key in path[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[path[-1]] = copy.deepcopy(value)


def _delete_leaf(document: dict, path: LeafPath) -> None:
    node = document
    for key in path[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            return
        node = child
    node.pop(path[-1], None)


def _user_deviations(
    base_leaves: dict[LeafPath, Any], user_leaves: dict[LeafPath, Any]
) -> dict[LeafPath, Any]:
    """Leaf paths where user differs from base, mapped to the user value (or _ABSENT)."""
    deviations: dict[LeafPath, Any] = {}
    for path in sorted(set(base_leaves) | set(user_leaves)):
        if path[0] in SYSTEM_FIELDS:
            continue
        base_value = base_leaves.get(path, _ABSENT)
        user_value = user_leaves.get(path, _ABSENT)
        if _same(base_value, user_value):
            continue

        if user_value is _ABSENT and any(_is_prefix(path, p) for p in user_leaves):
            # Base leaf became a non-empty object; its children carry the change
            continue
        if user_value == {} and any(_is_prefix(path, p) for p in base_leaves):
            # Object emptied by the user; expressed as deletions of its children
            continue
        deviations[path] = user_value
    return deviations


def _incoming_changes(
    base_leaves: dict[LeafPath, Any], incoming_leaves: dict[LeafPath, Any]
) -> set[LeafPath]:
    return {
        path
        for path in set(base_leaves) | set(incoming_leaves)
        if not _same(base_leaves.get(path, _ABSENT), incoming_leaves.get(path, _ABSENT))
    }


def merge_config(
    base: dict, user: dict, incoming: dict, *, validate_schema: bool = True
) -> ConfigMergeResult:
    """Reapply the user's deviations from base onto incoming.

    Pure function: none of the inputs are modified.

    Args:
        base: The document as shipped with the installed version
        user: The user's current document
        incoming: The document shipped with the new version
        validate_schema: Check the merged document against the config.json schema

    Returns:
        ConfigMergeResult; `merged` holds every non-conflicting deviation
    """
    base_leaves = _flatten(base)
    user_leaves = _flatten(user)
    incoming_leaves = _flatten(incoming)

    deviations = _user_deviations(base_leaves, user_leaves)
    changed_upstream = _incoming_changes(base_leaves, incoming_leaves)

    conflicts: list[FieldConflict] = []
    applied: dict[LeafPath, Any] = {}
    for path, user_value in deviations.items():
        related = [
            other
            for other in changed_upstream
            if other == path or _is_prefix(path, other) or _is_prefix(other, path)
        ]
        if not related:
            applied[path] = user_value
            continue

        incoming_value = incoming_leaves.get(path, _ABSENT)
        agrees = all(
            _same(user_leaves.get(other, _ABSENT), incoming_leaves.get(other, _ABSENT))
            for other in related
        )
        if not agrees:
            conflicts.append(
                FieldConflict(
                    path=".".join(path),
                    base=_to_text(base_leaves.get(path, _ABSENT)),
                    user=_to_text(user_value),
                    incoming=_to_text(incoming_value),
                )
            )
            continue
        applied[path] = user_value

    merged = copy.deepcopy(incoming)
    for path, value in applied.items():
        if value is _ABSENT:
            _delete_leaf(merged, path)
    for path, value in applied.items():
        if value is not _ABSENT:
            _set_leaf(merged, path, value)

    user_changes = tuple(
        f"{'.'.join(path)}: {_to_text(value)}" for path, value in applied.items()
    )
    schema_errors = tuple(validate_config_document(merged)) if validate_schema else ()

    return ConfigMergeResult(
        merged=merged,
        user_changes=user_changes,
        conflicts=tuple(conflicts),
        schema_errors=schema_errors,
    )

