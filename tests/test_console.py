from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from formconsole.clipboard import RecordedCopyEvent
from formconsole.console import ConsoleRegistry, FormConsole, UnknownVerbError
from formconsole.controller import FormNotReadyError, FormPhase, VerbFormController
from formconsole.http_bridge import HttpBridge
from formconsole.persistence import InMemoryPersistenceStore
from formconsole.rendering import BoundForm

SCHEMAS = {
    "POST": {"properties": {"name": {"type": "string"}}},
    "PUT": {"properties": {"x": {"type": "integer"}}},
    "DELETE": {"properties": {"a": {"$ref": "#/$defs/A"}}, "$defs": {"A": {"$ref": "#/$defs/A"}}},
}


def _handler(request: httpx.Request) -> httpx.Response:
    if request.headers.get("Accept") == "application/schema+json":
        schema = SCHEMAS.get(request.url.params.get("method", ""))
        if schema is None:
            return httpx.Response(404, text="no schema")
        return httpx.Response(200, json=schema)
    if request.method == "GET":
        return httpx.Response(200, json={"id": 1, "name": "Rex"})
    return httpx.Response(200, json={"method": request.method})


def _console(store: InMemoryPersistenceStore | None = None, **kwargs) -> FormConsole:
    bridge = HttpBridge(
        base_url="https://upstream.test",
        resource_path="/pets/1",
        transport=httpx.MockTransport(_handler),
    )
    return FormConsole(path="/pets/1", bridge=bridge, store=store or InMemoryPersistenceStore(), **kwargs)


def test_initialize_loads_verbs_independently() -> None:
    async def run() -> tuple[FormConsole, dict[str, FormPhase]]:
        console = _console()
        await console.initialize()
        loaded = {controller.verb: controller.phase for controller in console.panels}
        await console.close()
        return console, loaded

    console, loaded = asyncio.run(run())

    assert loaded == {
        "GET": FormPhase.hidden,
        "POST": FormPhase.rendered,
        "PUT": FormPhase.rendered,
        "DELETE": FormPhase.failed,
    }
    assert all(controller.phase is FormPhase.unmounted for controller in console.panels)
    assert console.visible_panel() is None


def test_initialize_reads_resource_and_selects_first_rendered_form() -> None:
    async def run() -> FormConsole:
        console = _console()
        async with console._bridge:
            await console.initialize()
        return console

    console = asyncio.run(run())

    assert console.resource.visible is True
    assert json.loads(console.resource.body) == {"id": 1, "name": "Rex"}
    assert console.resource_error is None
    assert console.visible_panel() is console.controller("POST")


def test_exactly_one_form_is_visible_after_select() -> None:
    async def run() -> FormConsole:
        console = _console()
        async with console._bridge:
            await console.initialize()
        return console

    console = asyncio.run(run())
    console.select("put")

    assert [controller.verb for controller in console.panels if controller.visible] == ["PUT"]
    with pytest.raises(FormNotReadyError):
        console.select("GET")
    with pytest.raises(UnknownVerbError):
        console.select("PATCH")


def test_copy_exports_visible_form_value() -> None:
    async def run() -> FormConsole:
        console = _console()
        async with console._bridge:
            await console.initialize()
        return console

    console = asyncio.run(run())
    console.select("PUT")
    form = console.controller("PUT").handle
    assert isinstance(form, BoundForm)
    form.set_value({"x": 2}, trigger=None)

    event = RecordedCopyEvent()
    assert console.clipboard.handle_copy(event) is True
    assert json.loads(event.data["application/json"]) == {"x": 2}


def test_notify_all_saves_every_rendered_form() -> None:
    store = InMemoryPersistenceStore()

    async def run() -> FormConsole:
        console = _console(store)
        async with console._bridge:
            await console.initialize()
        return console

    console = asyncio.run(run())
    for verb, value in (("POST", {"name": "Rex"}), ("PUT", {"x": 5})):
        form = console.controller(verb).handle
        assert isinstance(form, BoundForm)
        form.set_value(value, trigger=None)

    console.notify_all("click")

    assert store.load("POST /pets/1") == {"name": "Rex"}
    assert store.load("PUT /pets/1") == {"x": 5}
    with pytest.raises(ValueError):
        console.notify_all("scroll")


def test_setup_crash_marks_only_that_form_failed(monkeypatch) -> None:
    original = VerbFormController.load

    async def flaky_load(self: VerbFormController) -> FormPhase:
        if self.verb == "PUT":
            raise KeyError("boom")
        return await original(self)

    monkeypatch.setattr(VerbFormController, "load", flaky_load)

    async def run() -> FormConsole:
        console = _console()
        async with console._bridge:
            await console.initialize()
        return console

    console = asyncio.run(run())

    assert console.controller("PUT").phase is FormPhase.failed
    assert "setup failed" in (console.controller("PUT").error or "")
    assert console.controller("POST").phase is FormPhase.rendered


def test_single_verb_console_builds_one_form() -> None:
    console = _console(verbs=("POST", "PUT"), single_verb=True)
    assert [controller.verb for controller in console.panels] == ["POST"]
    assert console.controller("POST").key == "/pets/1"


def test_console_requires_a_verb() -> None:
    with pytest.raises(ValueError):
        _console(verbs=(" ",))


def test_registry_caches_and_resets_consoles() -> None:
    built: list[str] = []

    async def factory(path: str) -> FormConsole:
        built.append(path)
        return _console()

    async def run():
        registry = ConsoleRegistry(factory)
        first = await registry.get("/pets/1")
        second = await registry.get("/pets/1")
        cached = registry.cached("/pets/1")
        await registry.reset("/pets/1")
        after_reset = registry.cached("/pets/1")
        third = await registry.get("/pets/1")
        await registry.close_all()
        return first, second, cached, after_reset, third

    first, second, cached, after_reset, third = asyncio.run(run())

    assert first is second is cached
    assert after_reset is None
    assert third is not first
    assert built == ["/pets/1", "/pets/1"]
    assert first.controller("POST").phase is FormPhase.unmounted


def test_registry_evicts_least_recently_used_console() -> None:
    async def factory(path: str) -> FormConsole:
        return _console()

    async def run():
        registry = ConsoleRegistry(factory, max_consoles=2)
        first = await registry.get("/a")
        await registry.get("/b")
        await registry.get("/a")
        await registry.get("/c")
        return registry, first

    registry, first = asyncio.run(run())

    assert len(registry) == 2
    assert registry.cached("/a") is first
    assert registry.cached("/b") is None
    assert registry.cached("/c") is not None


def test_registry_closes_evicted_consoles() -> None:
    built: dict[str, FormConsole] = {}

    async def factory(path: str) -> FormConsole:
        built[path] = _console()
        return built[path]

    async def run() -> None:
        registry = ConsoleRegistry(factory, max_consoles=1)
        await registry.get("/a")
        await registry.get("/b")

    asyncio.run(run())

    assert built["/a"]._bridge.closed is True
    assert built["/b"]._bridge.closed is False
    assert all(controller.phase is FormPhase.unmounted for controller in built["/a"].panels)


def test_registry_rejects_empty_bound() -> None:
    async def factory(path: str) -> FormConsole:
        return _console()

    with pytest.raises(ValueError):
        ConsoleRegistry(factory, max_consoles=0)


def test_slow_console_does_not_block_other_paths() -> None:
    async def run() -> tuple[FormConsole, bool]:
        entered = asyncio.Event()
        release = asyncio.Event()

        async def factory(path: str) -> FormConsole:
            if path == "/slow":
                entered.set()
                await release.wait()
            return _console()

        registry = ConsoleRegistry(factory)
        slow = asyncio.create_task(registry.get("/slow"))
        await entered.wait()
        fast = await asyncio.wait_for(registry.get("/fast"), timeout=5)
        still_waiting = not slow.done()
        release.set()
        await slow
        await registry.close_all()
        return fast, still_waiting

    fast, still_waiting = asyncio.run(run())

    assert fast.path == "/pets/1"
    assert still_waiting is True


def test_concurrent_requests_for_one_path_build_once() -> None:
    built: list[str] = []

    async def factory(path: str) -> FormConsole:
        built.append(path)
        await asyncio.sleep(0)
        return _console()

    async def run():
        registry = ConsoleRegistry(factory)
        first, second = await asyncio.gather(registry.get("/pets/1"), registry.get("/pets/1"))
        await registry.close_all()
        return first, second

    first, second = asyncio.run(run())

    assert first is second
    assert built == ["/pets/1"]


def test_failed_initialize_closes_console_and_is_not_cached(monkeypatch) -> None:
    built: list[FormConsole] = []

    async def broken_initialize(self: FormConsole) -> None:
        raise RuntimeError("upstream exploded")

    monkeypatch.setattr(FormConsole, "initialize", broken_initialize)

    async def factory(path: str) -> FormConsole:
        console = _console()
        built.append(console)
        return console

    async def run() -> ConsoleRegistry:
        registry = ConsoleRegistry(factory)
        with pytest.raises(RuntimeError, match="upstream exploded"):
            await registry.get("/pets/1")
        return registry

    registry = asyncio.run(run())

    assert registry.cached("/pets/1") is None
    assert len(registry) == 0
    assert built[0]._bridge.closed is True
