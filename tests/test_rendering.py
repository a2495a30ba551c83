from __future__ import annotations

import asyncio

import pytest

from formconsole.fields import DefinitionMeta, FieldMeta
from formconsole.rendering import BoundForm, FormSpec, StatefulFormRenderer


def test_render_invokes_on_render_with_live_form() -> None:
    seen: list[BoundForm] = []
    spec = FormSpec(data={"name": "Rex"}, schema={"type": "object"}, on_render=seen.append)

    form = StatefulFormRenderer().render(spec)

    assert seen == [form]
    assert form.get_value() == {"name": "Rex"}


def test_form_value_is_isolated_from_callers() -> None:
    data = {"tags": ["a"]}
    form = BoundForm(FormSpec(data=data, schema={}))

    data["tags"].append("b")
    value = form.get_value()
    value["tags"].append("c")

    assert form.get_value() == {"tags": ["a"]}


def test_set_value_notifies_trigger_listeners() -> None:
    form = BoundForm(FormSpec(data={}, schema={}))
    events: list[str] = []
    form.add_listener("change", lambda: events.append("change"))
    form.add_listener("blur", lambda: events.append("blur"))

    form.set_value({"a": 1})
    form.set_value({"a": 2}, trigger="blur")
    form.set_value({"a": 3}, trigger=None)

    assert events == ["change", "blur"]
    assert form.get_value() == {"a": 3}


def test_view_carries_data_schema_and_options() -> None:
    spec = FormSpec(
        data={"hex": "#fff"},
        schema={"properties": {"hex": {"type": "string"}}},
        fields={"hex": FieldMeta(label="Hex", ui_type="color")},
        definitions={"Colour": DefinitionMeta(fields={"hex": FieldMeta(helper="RGB")})},
    )

    view = BoundForm(spec).view()

    assert view["data"] == {"hex": "#fff"}
    assert view["schema"] == spec.schema
    assert view["options"] == {
        "fields": {"hex": {"label": "Hex", "type": "color"}},
        "definitions": {"Colour": {"fields": {"hex": {"helper": "RGB"}}}},
    }


def test_submit_delegates_to_handler() -> None:
    async def on_submit() -> str:
        return "sent"

    form = BoundForm(FormSpec(data={}, schema={}, on_submit=on_submit))
    assert asyncio.run(form.submit()) == "sent"


def test_submit_without_handler_raises() -> None:
    form = BoundForm(FormSpec(data={}, schema={}))
    with pytest.raises(RuntimeError):
        asyncio.run(form.submit())
