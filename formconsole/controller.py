from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from fastapi.concurrency import run_in_threadpool

from formconsole.fields import DefinitionMeta, FieldMeta, extract_field_metadata
from formconsole.http_bridge import (
    JSON_MIME,
    SCHEMA_MIME,
    HttpBridge,
    HttpBridgeError,
    HttpStatusError,
)
from formconsole.persistence import SAVE_TRIGGERS, PersistenceStore, persistence_key
from formconsole.rendering import FormHandle, FormRenderer, FormSpec, StatefulFormRenderer
from formconsole.resolver import resolve_refs
from formconsole.schema_nodes import SchemaError

logger = logging.getLogger("form_console.controller")


class FormPhase(str, Enum):
    uninitialized = "uninitialized"
    schema_loaded = "schema_loaded"
    rendered = "rendered"
    submitting = "submitting"
    hidden = "hidden"
    failed = "failed"
    unmounted = "unmounted"


class SubmitOutcome(str, Enum):
    displayed = "displayed"
    cleared = "cleared"
    failed = "failed"
    ignored = "ignored"


class FormConsoleError(RuntimeError):
    """Base error for per-verb form failures."""


class FormNotReadyError(FormConsoleError):
    """Raised when a form is asked to submit before it has been rendered."""


class SchemaFetchFailure(FormConsoleError):
    """The schema for a verb could not be fetched; that verb gets no form."""


class SubmitFailure(FormConsoleError):
    """A user-initiated request did not succeed."""

    def __init__(self, *, verb: str, message: str, status_code: int | None = None, body: str | None = None) -> None:
        self.verb = verb
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    @classmethod
    def from_error(cls, verb: str, error: HttpBridgeError) -> "SubmitFailure":
        if isinstance(error, HttpStatusError):
            return cls(verb=verb, message=str(error), status_code=error.status_code, body=error.body)
        return cls(verb=verb, message=str(error))


class Notifier(Protocol):
    def alert(self, message: str) -> None: ...


class LoggingNotifier:
    """Records user-facing alerts so the view can show them; also logs them."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def alert(self, message: str) -> None:
        logger.warning("user_alert message=%s", message)
        self.messages.append(message)


@dataclass(frozen=True, slots=True)
class ResponsePanel:
    visible: bool = False
    body: str = ""

    @classmethod
    def showing(cls, value: Any) -> "ResponsePanel":
        return cls(visible=True, body=json.dumps(value, indent=2))


@dataclass(slots=True)
class FormState:
    verb: str
    path: str
    schema: dict[str, Any]
    fields: dict[str, FieldMeta] = field(default_factory=dict)
    definitions: dict[str, DefinitionMeta] = field(default_factory=dict)
    data: Any = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SubmitResult:
    outcome: SubmitOutcome
    response: Any = None
    error: SubmitFailure | None = None


class VerbFormController:
    """
    Drives the form for one HTTP verb of a resource.

    Phases: uninitialized -> schema_loaded -> rendered <-> submitting -> unmounted.
    A verb without a usable schema ends in `hidden`; a schema with broken
    references ends in `failed`. Neither affects other verbs.
    """

    def __init__(
        self,
        *,
        verb: str,
        path: str,
        bridge: HttpBridge,
        store: PersistenceStore,
        renderer: FormRenderer | None = None,
        notifier: Notifier | None = None,
        single_verb: bool = False,
    ) -> None:
        self.verb = verb.upper()
        self.path = path
        self.single_verb = single_verb
        self._bridge = bridge
        self._store = store
        self._renderer = renderer or StatefulFormRenderer()
        self._notifier = notifier or LoggingNotifier()

        self.phase = FormPhase.uninitialized
        self.state: FormState | None = None
        self.handle: FormHandle | None = None
        self.response = ResponsePanel()
        self.error: str | None = None
        self.visible = False

    @property
    def key(self) -> str:
        return persistence_key(None if self.single_verb else self.verb, self.path)

    @property
    def schema_query(self) -> str:
        return "" if self.single_verb else f"?method={self.verb}"

    @property
    def is_rendered(self) -> bool:
        return self.phase in {FormPhase.rendered, FormPhase.submitting}

    def current_value(self) -> Any:
        if self.handle is None:
            raise FormNotReadyError(f"{self.verb} form for {self.path} has not been rendered")
        return self.handle.get_value()

    async def load(self) -> FormPhase:
        if self.phase is not FormPhase.uninitialized:
            return self.phase

        try:
            schema = await self._bridge.request("GET", SCHEMA_MIME, self.schema_query)
        except HttpBridgeError as exc:
            return self._hide(SchemaFetchFailure(f"{self.verb} schema unavailable: {exc}"))

        if self.phase is FormPhase.unmounted:
            return self.phase
        if not isinstance(schema, dict) or not schema:
            return self._hide(SchemaFetchFailure(f"{self.verb} schema is empty"))

        self.phase = FormPhase.schema_loaded
        try:
            resolved = resolve_refs(schema)
        except SchemaError as exc:
            self.phase = FormPhase.failed
            self.error = str(exc)
            logger.warning("schema_invalid verb=%s path=%s error=%s", self.verb, self.path, exc)
            return self.phase

        metadata = extract_field_metadata(resolved)
        # Partial forms must be savable and submittable.
        resolved.pop("required", None)
        data = await run_in_threadpool(self._store.load, self.key)
        if self.phase is FormPhase.unmounted:
            return self.phase

        self.state = FormState(
            verb=self.verb,
            path=self.path,
            schema=resolved,
            fields=metadata.fields,
            definitions=metadata.definitions,
            data=data,
        )
        spec = FormSpec(
            data=data,
            schema=resolved,
            fields=metadata.fields,
            definitions=metadata.definitions,
            on_submit=self.submit,
            on_render=self._attach,
        )
        self.handle = self._renderer.render(spec)
        self.phase = FormPhase.rendered
        logger.info("form_rendered verb=%s path=%s fields=%s", self.verb, self.path, len(metadata.fields))
        return self.phase

    def _hide(self, failure: SchemaFetchFailure) -> FormPhase:
        if self.phase is not FormPhase.unmounted:
            self.phase = FormPhase.hidden
            self.visible = False
        self.error = str(failure)
        logger.info("form_hidden verb=%s path=%s reason=%s", self.verb, self.path, failure)
        return self.phase

    def _attach(self, handle: FormHandle) -> None:
        for trigger in sorted(SAVE_TRIGGERS):
            handle.add_listener(trigger, lambda trigger=trigger: self.notify(trigger))

    def notify(self, trigger: str) -> None:
        if trigger not in SAVE_TRIGGERS:
            raise ValueError(f"Unsupported interaction trigger `{trigger}`")
        if self.handle is None or self.phase is FormPhase.unmounted:
            return

        value = self.handle.get_value()
        try:
            self._store.save(self.key, value)
        except Exception:
            logger.exception("form_save_failed verb=%s path=%s trigger=%s", self.verb, self.path, trigger)
            return
        if self.state is not None and value:
            self.state.data = value

    async def submit(self) -> SubmitResult:
        if self.phase is FormPhase.submitting:
            logger.info("submit_ignored verb=%s path=%s reason=in_flight", self.verb, self.path)
            return SubmitResult(outcome=SubmitOutcome.ignored)
        if self.phase is not FormPhase.rendered or self.handle is None:
            raise FormNotReadyError(f"{self.verb} form for {self.path} is {self.phase.value}")

        value = self.handle.get_value()
        body = None if self.verb == "GET" else json.dumps(value)

        self.phase = FormPhase.submitting
        try:
            response = await self._bridge.request(self.verb, JSON_MIME, "", body)
        except HttpBridgeError as exc:
            failure = SubmitFailure.from_error(self.verb, exc)
            if self.phase is not FormPhase.unmounted:
                self._notifier.alert(str(failure))
            return SubmitResult(outcome=SubmitOutcome.failed, error=failure)
        finally:
            # Errors outside HttpBridgeError must not leave the form stuck in submitting.
            if self.phase is FormPhase.submitting:
                self.phase = FormPhase.rendered

        if self.phase is FormPhase.unmounted:
            return SubmitResult(outcome=SubmitOutcome.ignored, response=response)

        if response is None:
            self.response = ResponsePanel()
            return SubmitResult(outcome=SubmitOutcome.cleared)

        self.response = ResponsePanel.showing(response)
        return SubmitResult(outcome=SubmitOutcome.displayed, response=response)

    def mark_failed(self, message: str) -> None:
        if self.phase is not FormPhase.unmounted:
            self.phase = FormPhase.failed
            self.visible = False
        self.error = message

    def unmount(self) -> None:
        self.phase = FormPhase.unmounted
        self.visible = False
