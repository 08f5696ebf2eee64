# packpatcher/core/logging/__init__.py
from __future__ import annotations

from .context import setLogContext, clearLogContext, getLogContext, logContext
from .setup import configureLogging, resetLogging
from .util import PackLogger, getPackLogger

__all__ = [
    "configureLogging",
    "resetLogging",
    "getPackLogger",
    "PackLogger",
    "setLogContext",
    "clearLogContext",
    "getLogContext",
    "logContext",
]
