from __future__ import annotations

import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse

from formconsole import schemas
from formconsole.clipboard import RecordedCopyEvent
from formconsole.config import get_settings
from formconsole.console import ConsoleRegistry, FormConsole, UnknownVerbError
from formconsole.controller import FormNotReadyError, SubmitOutcome, VerbFormController
from formconsole.console_ui import CONSOLE_HTML
from formconsole.db import SessionLocal, init_db
from formconsole.http_bridge import HttpBridge
from formconsole.persistence import DatabasePersistenceStore, InMemoryPersistenceStore, PersistenceStore
from formconsole.rendering import BoundForm

logger = logging.getLogger("form_console.api")
_registry: ConsoleRegistry | None = None
_store: PersistenceStore | None = None
# Tests swap in an httpx.MockTransport here to stand in for the upstream resource.
_upstream_transport: httpx.AsyncBaseTransport | None = None


def _validate_runtime_configuration(settings) -> None:
    safety_errors = settings.production_safety_errors()
    if not safety_errors:
        return

    for error in safety_errors:
        logger.error("unsafe_config error=%s", error)
    raise RuntimeError("Unsafe form console configuration; see logs for details")


def _build_store(settings) -> PersistenceStore:
    if settings.persistence_backend.strip().lower() == "memory":
        return InMemoryPersistenceStore()
    init_db()
    return DatabasePersistenceStore(session_factory=SessionLocal)


def _console_factory(settings, store: PersistenceStore):
    async def build(path: str) -> FormConsole:
        bridge = HttpBridge(
            base_url=settings.upstream_base_url,
            resource_path=path,
            timeout=settings.upstream_timeout_sec,
            transport=_upstream_transport,
        )
        return FormConsole(
            path=path,
            bridge=bridge,
            store=store,
            verbs=settings.console_verbs(),
            single_verb=settings.single_verb,
        )

    return build


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    global _registry, _store

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    _validate_runtime_configuration(settings)
    _store = _build_store(settings)
    _registry = ConsoleRegistry(_console_factory(settings, _store), max_consoles=settings.max_consoles)

    logger.info(
        "Form console startup complete upstream=%s verbs=%s",
        settings.upstream_base_url,
        ",".join(settings.console_verbs()),
    )
    try:
        yield
    finally:
        if _registry is not None:
            await _registry.close_all()
        _registry = None
        _store = None


app = FastAPI(
    title="Form Console",
    version="0.1.0",
    description=(
        "Renders input forms for a REST resource from the JSON Schema it publishes "
        "per HTTP verb, and shows the raw JSON responses of submitted requests."
    ),
    lifespan=lifespan,
)


@app.middleware("http")
async def console_request_middleware(request: Request, call_next):
    request.state.request_id = request.headers.get("X-Request-ID", "").strip() or uuid.uuid4().hex
    resource = request.query_params.get("path", "-")
    started = time.perf_counter()

    def elapsed_ms() -> float:
        return (time.perf_counter() - started) * 1000.0

    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "console_request_failed route=%s %s resource=%s request_id=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            resource,
            request.state.request_id,
            elapsed_ms(),
        )
        raise

    response.headers["X-Request-ID"] = request.state.request_id
    logger.info(
        "console_request route=%s %s resource=%s status=%s request_id=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        resource,
        response.status_code,
        request.state.request_id,
        elapsed_ms(),
    )
    return response


def normalize_resource_path(path: str) -> str:
    value = path.strip() or "/"
    if "://" in value or value.startswith("//"):
        raise HTTPException(status_code=422, detail="Resource path must be relative to the upstream base URL")
    if not value.startswith("/"):
        value = f"/{value}"
    return value


def _get_registry() -> ConsoleRegistry:
    if _registry is None:
        raise HTTPException(status_code=503, detail="Form console is not ready")
    return _registry


async def _get_console(path: str) -> FormConsole:
    return await _get_registry().get(normalize_resource_path(path))


def _get_controller(console: FormConsole, verb: str) -> VerbFormController:
    try:
        return console.controller(verb)
    except UnknownVerbError:
        raise HTTPException(status_code=404, detail=f"No {verb.upper()} form for {console.path}") from None


def _console_read(console: FormConsole) -> schemas.ConsoleRead:
    return schemas.ConsoleRead(
        path=console.path,
        single_verb=console.single_verb,
        resource=schemas.ResponsePanelRead.from_panel(console.resource),
        resource_error=console.resource_error,
        alerts=list(getattr(console.notifier, "messages", [])),
        panels=[schemas.PanelRead.from_controller(controller) for controller in console.panels],
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/", response_class=HTMLResponse)
def console_page() -> str:
    return CONSOLE_HTML


@app.get("/api/console", response_model=schemas.ConsoleRead)
async def read_console(path: str = Query(default="/")) -> schemas.ConsoleRead:
    return _console_read(await _get_console(path))


@app.delete("/api/console")
async def reset_console(path: str = Query(default="/")) -> dict[str, str]:
    resource_path = normalize_resource_path(path)
    await _get_registry().reset(resource_path)
    return {"status": "reset", "path": resource_path}


@app.post("/api/console/panels/{verb}/select", response_model=schemas.ConsoleRead)
async def select_panel(verb: str, path: str = Query(default="/")) -> schemas.ConsoleRead:
    console = await _get_console(path)
    _get_controller(console, verb)
    try:
        console.select(verb)
    except FormNotReadyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _console_read(console)


@app.put("/api/console/panels/{verb}/value", response_model=schemas.PanelRead)
async def update_panel_value(
    verb: str,
    payload: schemas.ValueUpdate,
    path: str = Query(default="/"),
) -> schemas.PanelRead:
    console = await _get_console(path)
    controller = _get_controller(console, verb)
    if not controller.is_rendered or not isinstance(controller.handle, BoundForm):
        raise HTTPException(status_code=409, detail=f"{controller.verb} form is {controller.phase.value}")

    await run_in_threadpool(controller.handle.set_value, payload.value, trigger=payload.trigger)
    return schemas.PanelRead.from_controller(controller)


@app.post("/api/console/interactions", response_model=schemas.ConsoleRead)
async def record_interaction(
    payload: schemas.InteractionEvent | None = None,
    path: str = Query(default="/"),
) -> schemas.ConsoleRead:
    console = await _get_console(path)
    await run_in_threadpool(console.notify_all, (payload or schemas.InteractionEvent()).trigger)
    return _console_read(console)


@app.post("/api/console/panels/{verb}/submit", response_model=schemas.SubmitRead)
async def submit_panel(verb: str, path: str = Query(default="/")):
    console = await _get_console(path)
    controller = _get_controller(console, verb)
    try:
        result = await controller.submit()
    except FormNotReadyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    if result.outcome is SubmitOutcome.failed and result.error is not None:
        return JSONResponse(
            status_code=502,
            content={
                "detail": str(result.error),
                "status_code": result.error.status_code,
                "body": result.error.body,
            },
        )
    return schemas.SubmitRead(outcome=result.outcome, panel=schemas.PanelRead.from_controller(controller))


@app.post("/api/console/copy", response_model=schemas.CopyRead)
async def copy_visible_form(path: str = Query(default="/")) -> schemas.CopyRead:
    console = await _get_console(path)
    event = RecordedCopyEvent()
    handled = console.clipboard.handle_copy(event)
    if not handled:
        return schemas.CopyRead(handled=False)

    panel = console.visible_panel()
    mime_type = console.clipboard.mime_type
    return schemas.CopyRead(
        handled=True,
        verb=panel.verb if panel is not None else None,
        mime_type=mime_type,
        data=event.data.get(mime_type),
    )
