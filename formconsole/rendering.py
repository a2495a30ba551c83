from __future__ import annotations

import copy
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from formconsole.fields import DefinitionMeta, FieldMeta

logger = logging.getLogger("form_console.rendering")

Listener = Callable[[], None]


@dataclass(slots=True)
class FormSpec:
    """Everything a rendering collaborator needs to draw one verb's form."""

    data: Any
    schema: dict[str, Any]
    fields: dict[str, FieldMeta] = field(default_factory=dict)
    definitions: dict[str, DefinitionMeta] = field(default_factory=dict)
    on_submit: Callable[[], Awaitable[Any]] | None = None
    on_render: Callable[["FormHandle"], None] | None = None

    def options(self) -> dict[str, Any]:
        return {
            "fields": {name: meta.as_options() for name, meta in self.fields.items()},
            "definitions": {name: meta.as_options() for name, meta in self.definitions.items()},
        }


class FormHandle(Protocol):
    def get_value(self) -> Any: ...

    def add_listener(self, trigger: str, callback: Listener) -> None: ...


class FormRenderer(Protocol):
    def render(self, spec: FormSpec) -> FormHandle: ...


class BoundForm:
    """Live form state held on behalf of a browser view."""

    def __init__(self, spec: FormSpec) -> None:
        self.spec = spec
        self._value: Any = copy.deepcopy(spec.data)
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def get_value(self) -> Any:
        return copy.deepcopy(self._value)

    def set_value(self, value: Any, *, trigger: str | None = "change") -> None:
        self._value = copy.deepcopy(value)
        if trigger is not None:
            self.emit(trigger)

    def add_listener(self, trigger: str, callback: Listener) -> None:
        self._listeners[trigger].append(callback)

    def emit(self, trigger: str) -> None:
        for callback in list(self._listeners.get(trigger, ())):
            callback()

    async def submit(self) -> Any:
        if self.spec.on_submit is None:
            raise RuntimeError("form was rendered without a submit handler")
        return await self.spec.on_submit()

    def view(self) -> dict[str, Any]:
        return {
            "data": self.get_value(),
            "schema": self.spec.schema,
            "options": self.spec.options(),
        }


class StatefulFormRenderer:
    def render(self, spec: FormSpec) -> BoundForm:
        form = BoundForm(spec)
        if spec.on_render is not None:
            spec.on_render(form)
        logger.debug("form_rendered fields=%s definitions=%s", len(spec.fields), len(spec.definitions))
        return form
