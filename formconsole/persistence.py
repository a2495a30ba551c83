from __future__ import annotations

import json
import logging
from collections.abc import Callable
from threading import Lock
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from formconsole import models
from formconsole.db import session_scope

logger = logging.getLogger("form_console.persistence")

SAVE_TRIGGERS = frozenset({"change", "blur", "click"})


class PersistenceReadFailure(RuntimeError):
    """A stored entry could not be read back; callers treat it as "no prior data"."""


def persistence_key(verb: str | None, path: str) -> str:
    if verb is None:
        return path
    return f"{verb.upper()} {path}"


class PersistenceStore(Protocol):
    def load(self, key: str) -> Any: ...

    def save(self, key: str, value: Any) -> None: ...


def _decode(key: str, raw: str | None) -> Any:
    if raw is None:
        return {}
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise PersistenceReadFailure(f"stored value for `{key}` is not valid JSON") from exc


class InMemoryPersistenceStore:
    """Keeps JSON-encoded entries in a dict, mirroring what the database store writes."""

    def __init__(self, entries: dict[str, str] | None = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})
        self._lock = Lock()

    def load(self, key: str) -> Any:
        with self._lock:
            raw = self._entries.get(key)
        try:
            return _decode(key, raw)
        except PersistenceReadFailure as exc:
            logger.warning("persistence_read_failed key=%s error=%s", key, exc)
            return {}

    def save(self, key: str, value: Any) -> None:
        if not value:
            return
        encoded = json.dumps(value)
        with self._lock:
            self._entries[key] = encoded

    def raw(self, key: str) -> str | None:
        with self._lock:
            return self._entries.get(key)


class DatabasePersistenceStore:
    def __init__(self, *, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def load(self, key: str) -> Any:
        db = self._session_factory()
        try:
            entry = db.scalar(select(models.FormEntry).where(models.FormEntry.key == key))
            return _decode(key, entry.value if entry is not None else None)
        except (PersistenceReadFailure, SQLAlchemyError) as exc:
            logger.warning("persistence_read_failed key=%s error=%s", key, exc)
            return {}
        finally:
            db.close()

    def save(self, key: str, value: Any) -> None:
        if not value:
            return

        encoded = json.dumps(value)
        try:
            with session_scope(self._session_factory) as db:
                entry = db.scalar(select(models.FormEntry).where(models.FormEntry.key == key))
                if entry is None:
                    db.add(models.FormEntry(key=key, value=encoded))
                else:
                    entry.value = encoded
        except SQLAlchemyError:
            logger.exception("persistence_write_failed key=%s", key)
            raise
