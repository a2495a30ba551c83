from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from formconsole.schema_nodes import (
    DEFINITION_KEYS,
    REF_KEY,
    ArrayNode,
    ObjectNode,
    RefNode,
    SchemaError,
    classify,
    declared_type,
    definitions_of,
    parse_pointer,
)

logger = logging.getLogger("form_console.resolver")


class RefResolver:
    """
    Rewrites a schema document in place so that no `$ref` pointer remains.

    References to object definitions are replaced by a copy of the definition.
    References to anything else are dropped, leaving the field untyped.
    """

    def __init__(self, definitions: Mapping[str, Any]) -> None:
        # Substitutions copy from this snapshot, so resolving never touches the originals.
        self._definitions = copy.deepcopy(dict(definitions))

    @property
    def definition_names(self) -> list[str]:
        return sorted(self._definitions)

    def resolve(self, schema: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(schema, dict):
            raise SchemaError(f"schema document must be a JSON object, got {type(schema).__name__}")

        root = classify(schema)
        if isinstance(root, RefNode):
            replacement = self._resolve_ref(root, ())
            if replacement is not schema:
                sections = {key: schema[key] for key in DEFINITION_KEYS if key in schema}
                schema.clear()
                schema.update(sections)
                schema.update(replacement)

        for key, value in list(schema.items()):
            if key in DEFINITION_KEYS and isinstance(value, dict):
                for name in list(value):
                    value[name] = self._resolve_value(copy.deepcopy(value[name]), (name,))
                continue
            schema[key] = self._resolve_value(value, ())
        return schema

    def _resolve_value(self, value: Any, active: tuple[str, ...]) -> Any:
        node = classify(value)
        if isinstance(node, RefNode):
            return self._resolve_ref(node, active)
        if isinstance(node, ObjectNode):
            for key, member in list(node.members.items()):
                node.members[key] = self._resolve_value(member, active)
            return value
        if isinstance(node, ArrayNode):
            for index, item in enumerate(node.items):
                node.items[index] = self._resolve_value(item, active)
            return value
        return value

    def _resolve_ref(self, node: RefNode, active: tuple[str, ...]) -> Any:
        name = parse_pointer(node.pointer)
        if name not in self._definitions:
            raise SchemaError(f"unresolved reference `{node.pointer}`: no definition named `{name}`")
        if name in active:
            chain = " -> ".join((*active, name))
            raise SchemaError(f"cyclic reference `{node.pointer}` ({chain})")

        if self._referent_type(name, active) == "object":
            target = copy.deepcopy(self._definitions[name])
            return self._resolve_value(target, (*active, name))

        logger.debug("dropping_scalar_ref pointer=%s", node.pointer)
        del node.members[REF_KEY]
        for key, member in list(node.members.items()):
            node.members[key] = self._resolve_value(member, active)
        return node.members

    def _referent_type(self, name: str, active: tuple[str, ...]) -> str | None:
        # Aliases (a definition that is itself only a pointer) take the type of what they point at.
        seen = list(active)
        current = name
        while True:
            target = self._definitions[current]
            kind = declared_type(target)
            if kind is not None:
                return kind
            alias = classify(target)
            if not isinstance(alias, RefNode):
                return None
            seen.append(current)
            current = parse_pointer(alias.pointer)
            if current not in self._definitions:
                raise SchemaError(f"unresolved reference `{alias.pointer}`: no definition named `{current}`")
            if current in seen:
                chain = " -> ".join((*seen, current))
                raise SchemaError(f"cyclic reference `{alias.pointer}` ({chain})")


def resolve_refs(schema: dict[str, Any], definitions: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Resolve every reference in `schema` in place and return it."""

    if definitions is None:
        definitions = definitions_of(schema)
    return RefResolver(definitions).resolve(schema)
