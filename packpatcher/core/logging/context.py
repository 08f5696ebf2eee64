# packpatcher/core/logging/context.py
from __future__ import annotations
import contextvars
from collections.abc import Iterator
from contextlib import contextmanager

# All log context lives here. Packaging jobs enrich it with packId/stage.
_logContextVar: contextvars.ContextVar[dict[str, object] | None] = contextvars.ContextVar("packpatcher.logctx", default=None)

def setLogContext(**kvs):
    """Set or update per-log context values (runId, packId, stage, etc.)."""
    current = dict(_logContextVar.get() or {}) # use copy
    for key, value in kvs.items():
        if value is not None:
            current[key] = value
    _logContextVar.set(current)

def clearLogContext():
    """Clear context after a pack is fully handled."""
    _logContextVar.set(None)

def getLogContext():
    """Return current content dict or None."""
    return _logContextVar.get()

@contextmanager
def logContext(**kvs) -> Iterator[None]:
    """Scoped setLogContext(); restores the previous context on exit."""
    token = _logContextVar.set(dict(_logContextVar.get() or {}))
    try:
        setLogContext(**kvs)
        yield
    finally:
        _logContextVar.reset(token)
