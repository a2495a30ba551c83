from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger("form_console.clipboard")

CLIPBOARD_MIME = "application/json"


class CopyEvent(Protocol):
    def prevent_default(self) -> None: ...

    def set_data(self, mime_type: str, data: str) -> None: ...


class CopyablePanel(Protocol):
    verb: str
    visible: bool

    def current_value(self) -> Any: ...


@dataclass(slots=True)
class RecordedCopyEvent:
    default_prevented: bool = False
    data: dict[str, str] = field(default_factory=dict)

    def prevent_default(self) -> None:
        self.default_prevented = True

    def set_data(self, mime_type: str, data: str) -> None:
        self.data[mime_type] = data


class ClipboardExporter:
    """Replaces a copy of the page selection with the visible form's value as JSON."""

    def __init__(self, panels: Callable[[], Iterable[CopyablePanel]], *, mime_type: str = CLIPBOARD_MIME) -> None:
        self._panels = panels
        self.mime_type = mime_type

    def visible_panel(self) -> CopyablePanel | None:
        for panel in self._panels():
            if panel.visible:
                return panel
        return None

    def handle_copy(self, event: CopyEvent) -> bool:
        panel = self.visible_panel()
        if panel is None:
            return False

        try:
            payload = json.dumps(panel.current_value())
        except (RuntimeError, TypeError, ValueError):
            logger.exception("clipboard_export_failed verb=%s", panel.verb)
            return False

        event.prevent_default()
        event.set_data(self.mime_type, payload)
        return True
