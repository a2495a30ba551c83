from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union


REF_KEY = "$ref"
DEFINITION_KEYS = ("definitions", "$defs")
_POINTER_PREFIXES = tuple(f"#/{key}/" for key in DEFINITION_KEYS)


class SchemaError(ValueError):
    """Raised when a schema document cannot be turned into a self-contained form schema."""


@dataclass(frozen=True, slots=True)
class RefNode:
    """A mapping that carries a `$ref` pointer, plus whatever sibling keys it declares."""

    pointer: str
    members: dict[str, Any]

    @property
    def siblings(self) -> dict[str, Any]:
        return {key: value for key, value in self.members.items() if key != REF_KEY}


@dataclass(frozen=True, slots=True)
class ObjectNode:
    members: dict[str, Any]


@dataclass(frozen=True, slots=True)
class ArrayNode:
    items: list[Any]


@dataclass(frozen=True, slots=True)
class LeafNode:
    value: Any


SchemaNode = Union[RefNode, ObjectNode, ArrayNode, LeafNode]


def classify(value: Any) -> SchemaNode:
    """
    Wrap a raw JSON value in its schema-node variant.

    The wrappers share the underlying dict/list, so rewriting `members` or
    `items` rewrites the document itself.
    """

    if isinstance(value, dict):
        pointer = value.get(REF_KEY)
        if isinstance(pointer, str):
            return RefNode(pointer=pointer, members=value)
        return ObjectNode(members=value)
    if isinstance(value, list):
        return ArrayNode(items=value)
    return LeafNode(value=value)


def parse_pointer(pointer: str) -> str:
    """
    Return the definition name a local pointer refers to.

    Supported formats:
    - #/$defs/<name>
    - #/definitions/<name>
    """

    value = pointer.strip()
    for prefix in _POINTER_PREFIXES:
        if value.startswith(prefix):
            name = value[len(prefix):]
            if name and "/" not in name:
                return name
            break
    raise SchemaError(f"unsupported reference `{pointer}`; expected #/$defs/<name> or #/definitions/<name>")


def definitions_of(schema: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for key in DEFINITION_KEYS:
        section = schema.get(key)
        if isinstance(section, Mapping):
            merged.update(section)
    return merged


def declared_type(node: Any) -> str | None:
    if not isinstance(node, Mapping):
        return None
    value = node.get("type")
    return value if isinstance(value, str) else None
