from __future__ import annotations

import copy

import pytest

from formconsole.resolver import RefResolver, resolve_refs
from formconsole.schema_nodes import SchemaError


def _pet_schema() -> dict:
    return {
        "type": "object",
        "properties": {
            "name": {"type": "string", "title": "Name"},
            "owner": {"$ref": "#/$defs/Owner"},
            "tags": {"type": "array", "items": {"$ref": "#/$defs/Tag"}},
        },
        "$defs": {
            "Owner": {
                "type": "object",
                "title": "Owner",
                "properties": {"email": {"type": "string", "format": "email"}},
            },
            "Tag": {
                "type": "object",
                "properties": {"label": {"type": "string"}},
            },
        },
    }


def _contains_ref(value) -> bool:
    if isinstance(value, dict):
        return "$ref" in value or any(_contains_ref(item) for item in value.values())
    if isinstance(value, list):
        return any(_contains_ref(item) for item in value)
    return False


def test_object_references_are_replaced_by_the_definition() -> None:
    schema = _pet_schema()
    resolved = resolve_refs(schema)

    assert resolved is schema
    assert resolved["properties"]["owner"] == {
        "type": "object",
        "title": "Owner",
        "properties": {"email": {"type": "string", "format": "email"}},
    }
    assert resolved["properties"]["tags"]["items"] == {
        "type": "object",
        "properties": {"label": {"type": "string"}},
    }
    assert not _contains_ref(resolved)


def test_substituted_definitions_are_independent_copies() -> None:
    resolved = resolve_refs(_pet_schema())

    resolved["properties"]["owner"]["title"] = "Changed"
    assert resolved["$defs"]["Owner"]["title"] == "Owner"


def test_resolver_does_not_mutate_supplied_definitions() -> None:
    definitions = {"Owner": {"type": "object", "properties": {"id": {"$ref": "#/$defs/Id"}}}, "Id": {"type": "integer"}}
    snapshot = copy.deepcopy(definitions)
    schema = {"properties": {"owner": {"$ref": "#/$defs/Owner"}}}

    RefResolver(definitions).resolve(schema)

    assert definitions == snapshot
    assert schema["properties"]["owner"]["properties"]["id"] == {}


def test_scalar_reference_is_dropped_and_siblings_kept() -> None:
    schema = {
        "properties": {"colour": {"$ref": "#/definitions/Hex", "format": "rgb.Hex", "title": "Colour"}},
        "definitions": {"Hex": {"type": "string", "pattern": "^#[0-9a-f]{6}$"}},
    }

    resolved = resolve_refs(schema)

    assert resolved["properties"]["colour"] == {"format": "rgb.Hex", "title": "Colour"}


def test_alias_of_an_object_definition_counts_as_object() -> None:
    schema = {
        "properties": {"home": {"$ref": "#/$defs/Home"}},
        "$defs": {
            "Home": {"$ref": "#/$defs/Address"},
            "Address": {"type": "object", "properties": {"street": {"type": "string"}}},
        },
    }

    resolved = resolve_refs(schema)

    assert resolved["properties"]["home"] == {"type": "object", "properties": {"street": {"type": "string"}}}


def test_reference_at_document_root_keeps_definitions() -> None:
    schema = {
        "$ref": "#/$defs/Pet",
        "$defs": {"Pet": {"type": "object", "properties": {"name": {"type": "string"}}}},
    }

    resolved = resolve_refs(schema)

    assert resolved["type"] == "object"
    assert resolved["properties"] == {"name": {"type": "string"}}
    assert "Pet" in resolved["$defs"]
    assert "$ref" not in resolved


def test_resolving_twice_matches_resolving_once() -> None:
    once = resolve_refs(_pet_schema())
    twice = resolve_refs(copy.deepcopy(once))

    assert twice == once


def test_missing_definition_is_an_unresolved_reference() -> None:
    schema = {"properties": {"owner": {"$ref": "#/$defs/Nobody"}}, "$defs": {}}

    with pytest.raises(SchemaError, match="unresolved reference"):
        resolve_refs(schema)


@pytest.mark.parametrize(
    "definitions",
    [
        {"Node": {"type": "object", "properties": {"next": {"$ref": "#/$defs/Node"}}}},
        {
            "A": {"type": "object", "properties": {"b": {"$ref": "#/$defs/B"}}},
            "B": {"type": "object", "properties": {"a": {"$ref": "#/$defs/A"}}},
        },
        {"A": {"$ref": "#/$defs/B"}, "B": {"$ref": "#/$defs/A"}},
    ],
)
def test_reference_cycles_fail_instead_of_recursing(definitions: dict) -> None:
    first = next(iter(definitions))
    schema = {"properties": {"root": {"$ref": f"#/$defs/{first}"}}, "$defs": definitions}

    with pytest.raises(SchemaError, match="cyclic reference"):
        resolve_refs(schema)


def test_cycle_inside_unreferenced_definition_is_still_reported() -> None:
    schema = {
        "properties": {"name": {"type": "string"}},
        "$defs": {"Node": {"type": "object", "properties": {"next": {"$ref": "#/$defs/Node"}}}},
    }

    with pytest.raises(SchemaError, match="cyclic reference"):
        resolve_refs(schema)


def test_diamond_references_are_not_cycles() -> None:
    schema = {
        "properties": {"left": {"$ref": "#/$defs/Side"}, "right": {"$ref": "#/$defs/Side"}},
        "$defs": {
            "Side": {"type": "object", "properties": {"point": {"$ref": "#/$defs/Point"}}},
            "Point": {"type": "object", "properties": {"x": {"type": "number"}}},
        },
    }

    resolved = resolve_refs(schema)

    assert resolved["properties"]["left"] == resolved["properties"]["right"]
    assert resolved["properties"]["left"]["properties"]["point"]["properties"] == {"x": {"type": "number"}}


def test_non_object_document_is_rejected() -> None:
    with pytest.raises(SchemaError):
        RefResolver({}).resolve(["not", "a", "schema"])  # type: ignore[arg-type]
