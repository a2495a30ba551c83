from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from formconsole.controller import FormPhase, ResponsePanel, SubmitOutcome, VerbFormController


class ResponsePanelRead(BaseModel):
    visible: bool = False
    body: str = ""

    @classmethod
    def from_panel(cls, panel: ResponsePanel) -> "ResponsePanelRead":
        return cls(visible=panel.visible, body=panel.body)


class FormView(BaseModel):
    data: Any = None
    schema_: dict[str, Any] = Field(default_factory=dict, alias="schema")
    options: dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class PanelRead(BaseModel):
    verb: str
    phase: FormPhase
    visible: bool
    persistence_key: str
    error: str | None = None
    form: FormView | None = None
    response: ResponsePanelRead

    @classmethod
    def from_controller(cls, controller: VerbFormController) -> "PanelRead":
        form: FormView | None = None
        view = getattr(controller.handle, "view", None)
        if controller.is_rendered and callable(view):
            form = FormView.model_validate(view())
        return cls(
            verb=controller.verb,
            phase=controller.phase,
            visible=controller.visible,
            persistence_key=controller.key,
            error=controller.error,
            form=form,
            response=ResponsePanelRead.from_panel(controller.response),
        )


class ConsoleRead(BaseModel):
    path: str
    single_verb: bool
    resource: ResponsePanelRead
    resource_error: str | None = None
    alerts: list[str] = Field(default_factory=list)
    panels: list[PanelRead]


class ValueUpdate(BaseModel):
    value: Any = None
    trigger: Literal["change", "blur", "click"] = "change"


class InteractionEvent(BaseModel):
    trigger: Literal["change", "blur", "click"] = "click"


class SubmitRead(BaseModel):
    outcome: SubmitOutcome
    panel: PanelRead


class CopyRead(BaseModel):
    handled: bool
    verb: str | None = None
    mime_type: str | None = None
    data: str | None = None
