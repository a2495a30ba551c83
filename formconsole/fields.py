from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from formconsole.schema_nodes import DEFINITION_KEYS


UI_HINTS_BY_FORMAT: dict[str, str] = {
    "rgb.Hex": "color",
    "hex-color": "color",
    "color": "color",
    "date": "date",
    "date-time": "datetime-local",
    "time": "time",
    "email": "email",
    "uri": "url",
    "url": "url",
    "password": "password",
}


def register_ui_hint(schema_format: str, hint: str) -> None:
    value = schema_format.strip()
    if not value:
        raise ValueError("schema format cannot be empty")
    UI_HINTS_BY_FORMAT[value] = hint


def ui_hint_for(schema_format: Any) -> str | None:
    if not isinstance(schema_format, str):
        return None
    return UI_HINTS_BY_FORMAT.get(schema_format)


@dataclass(frozen=True, slots=True)
class FieldMeta:
    label: str | None = None
    helper: str | None = None
    ui_type: str | None = None

    def as_options(self) -> dict[str, str]:
        options = {"label": self.label, "helper": self.helper, "type": self.ui_type}
        return {key: value for key, value in options.items() if value is not None}


@dataclass(frozen=True, slots=True)
class DefinitionMeta:
    fields: dict[str, FieldMeta] = field(default_factory=dict)

    def as_options(self) -> dict[str, Any]:
        return {"fields": {name: meta.as_options() for name, meta in self.fields.items()}}


@dataclass(frozen=True, slots=True)
class FormMetadata:
    fields: dict[str, FieldMeta] = field(default_factory=dict)
    definitions: dict[str, DefinitionMeta] = field(default_factory=dict)


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _field_meta(prop: Any) -> FieldMeta:
    if not isinstance(prop, Mapping):
        return FieldMeta()
    return FieldMeta(
        label=_text(prop.get("title")),
        helper=_text(prop.get("description")),
        ui_type=ui_hint_for(prop.get("format")),
    )


def _properties_meta(node: Any) -> dict[str, FieldMeta]:
    if not isinstance(node, Mapping):
        return {}
    properties = node.get("properties")
    if not isinstance(properties, Mapping):
        return {}
    return {str(name): _field_meta(prop) for name, prop in properties.items()}


def extract_field_metadata(schema: Mapping[str, Any]) -> FormMetadata:
    """
    Collect display metadata (label, helper text, UI hint) for a form schema.

    Top-level `properties` feed `fields`; every entry of `definitions` and
    `$defs` feeds `definitions` with the same per-property shape. The schema
    is only read.
    """

    if not isinstance(schema, Mapping):
        return FormMetadata()

    definitions: dict[str, DefinitionMeta] = {}
    for key in DEFINITION_KEYS:
        section = schema.get(key)
        if not isinstance(section, Mapping):
            continue
        for name, definition in section.items():
            definitions[str(name)] = DefinitionMeta(fields=_properties_meta(definition))

    return FormMetadata(fields=_properties_meta(schema), definitions=definitions)
