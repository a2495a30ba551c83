from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Iterable

from formconsole.clipboard import ClipboardExporter
from formconsole.config import DEFAULT_VERBS
from formconsole.controller import (
    FormNotReadyError,
    LoggingNotifier,
    Notifier,
    ResponsePanel,
    VerbFormController,
)
from formconsole.http_bridge import JSON_MIME, HttpBridge, HttpBridgeError
from formconsole.persistence import SAVE_TRIGGERS, PersistenceStore
from formconsole.rendering import FormRenderer, StatefulFormRenderer

logger = logging.getLogger("form_console.console")


class UnknownVerbError(KeyError):
    """Raised when a console has no form for the requested verb."""


class FormConsole:
    """
    One resource page: a form per HTTP verb plus a read-only view of the resource.

    Verb forms load concurrently and independently; whichever finish
    rendering can be selected, and exactly one of them is visible at a time.
    """

    def __init__(
        self,
        *,
        path: str,
        bridge: HttpBridge,
        store: PersistenceStore,
        renderer: FormRenderer | None = None,
        notifier: Notifier | None = None,
        verbs: Iterable[str] = DEFAULT_VERBS,
        single_verb: bool = False,
    ) -> None:
        resolved_verbs = [verb.strip().upper() for verb in verbs if verb.strip()]
        if not resolved_verbs:
            raise ValueError("A form console needs at least one HTTP verb")
        if single_verb:
            resolved_verbs = resolved_verbs[:1]

        self.path = path
        self.single_verb = single_verb
        self.notifier = notifier or LoggingNotifier()
        self._bridge = bridge
        shared_renderer = renderer or StatefulFormRenderer()
        self.controllers: dict[str, VerbFormController] = {
            verb: VerbFormController(
                verb=verb,
                path=path,
                bridge=bridge,
                store=store,
                renderer=shared_renderer,
                notifier=self.notifier,
                single_verb=single_verb,
            )
            for verb in resolved_verbs
        }
        self.resource = ResponsePanel()
        self.resource_error: str | None = None
        self.clipboard = ClipboardExporter(lambda: self.panels)

    @property
    def panels(self) -> list[VerbFormController]:
        return list(self.controllers.values())

    def controller(self, verb: str) -> VerbFormController:
        try:
            return self.controllers[verb.upper()]
        except KeyError:
            raise UnknownVerbError(verb) from None

    async def initialize(self) -> None:
        await asyncio.gather(
            self._read_resource(),
            *(self._load(controller) for controller in self.panels),
        )
        if self.visible_panel() is None:
            for controller in self.panels:
                if controller.is_rendered:
                    self.select(controller.verb)
                    break

    async def _load(self, controller: VerbFormController) -> None:
        try:
            await controller.load()
        except Exception as exc:
            logger.exception("form_setup_failed verb=%s path=%s", controller.verb, self.path)
            controller.mark_failed(f"{controller.verb} form setup failed: {exc}")

    async def _read_resource(self) -> None:
        try:
            value = await self._bridge.request("GET", JSON_MIME, "")
        except HttpBridgeError as exc:
            self.resource_error = str(exc)
            logger.info("resource_read_failed path=%s error=%s", self.path, exc)
            return
        self.resource = ResponsePanel() if value is None else ResponsePanel.showing(value)

    def select(self, verb: str) -> VerbFormController:
        selected = self.controller(verb)
        if not selected.is_rendered:
            raise FormNotReadyError(f"{selected.verb} form for {self.path} is {selected.phase.value}")
        for controller in self.panels:
            controller.visible = controller is selected
        return selected

    def visible_panel(self) -> VerbFormController | None:
        return self.clipboard.visible_panel()

    def notify_all(self, trigger: str) -> None:
        if trigger not in SAVE_TRIGGERS:
            raise ValueError(f"Unsupported interaction trigger `{trigger}`")
        for controller in self.panels:
            controller.notify(trigger)

    def unmount(self) -> None:
        for controller in self.panels:
            controller.unmount()

    async def close(self) -> None:
        self.unmount()
        await self._bridge.close()


ConsoleFactory = Callable[[str], Awaitable[FormConsole]]


class ConsoleRegistry:
    """
    Caches initialized consoles per resource path, least recently used first out.

    Building a console is serialized per path only, so a slow upstream for one
    path does not hold up requests for any other.
    """

    def __init__(self, factory: ConsoleFactory, *, max_consoles: int = 32) -> None:
        if max_consoles < 1:
            raise ValueError("A console registry must hold at least one console")
        self._factory = factory
        self.max_consoles = max_consoles
        self._consoles: OrderedDict[str, FormConsole] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._consoles)

    async def get(self, path: str) -> FormConsole:
        console = self._touch(path)
        if console is not None:
            return console

        lock = self._locks.setdefault(path, asyncio.Lock())
        stale: list[FormConsole] = []
        try:
            async with lock:
                console = self._touch(path)
                if console is None:
                    console = await self._build(path)
                    stale = self._remember(path, console)
        finally:
            if path not in self._consoles:
                self._forget_lock(path, lock)

        for evicted in stale:
            await evicted.close()
        return console

    def cached(self, path: str) -> FormConsole | None:
        return self._consoles.get(path)

    async def reset(self, path: str) -> None:
        console = self._consoles.pop(path, None)
        lock = self._locks.get(path)
        if lock is not None:
            self._forget_lock(path, lock)
        if console is not None:
            await console.close()

    async def close_all(self) -> None:
        consoles = list(self._consoles.values())
        self._consoles.clear()
        self._locks.clear()
        for console in consoles:
            await console.close()

    def _touch(self, path: str) -> FormConsole | None:
        console = self._consoles.get(path)
        if console is not None:
            self._consoles.move_to_end(path)
        return console

    async def _build(self, path: str) -> FormConsole:
        console = await self._factory(path)
        try:
            await console.initialize()
        except BaseException:
            logger.warning("console_initialize_failed path=%s", path)
            await console.close()
            raise
        return console

    def _remember(self, path: str, console: FormConsole) -> list[FormConsole]:
        stale: list[FormConsole] = []
        displaced = self._consoles.pop(path, None)
        if displaced is not None and displaced is not console:
            stale.append(displaced)
        self._consoles[path] = console

        while len(self._consoles) > self.max_consoles:
            evicted_path, evicted = self._consoles.popitem(last=False)
            lock = self._locks.get(evicted_path)
            if lock is not None:
                self._forget_lock(evicted_path, lock)
            logger.info("console_evicted path=%s cached=%s", evicted_path, len(self._consoles))
            stale.append(evicted)
        return stale

    def _forget_lock(self, path: str, lock: asyncio.Lock) -> None:
        # A held lock still guards a build in progress; it is dropped once that build settles.
        if not lock.locked() and self._locks.get(path) is lock:
            del self._locks[path]
