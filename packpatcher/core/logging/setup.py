# packpatcher/core/logging/setup.py
from __future__ import annotations
import logging
import logging.handlers
from typing import TYPE_CHECKING

from .formatters import DevFormatter, JsonFormatter

if TYPE_CHECKING:
    from packpatcher.config.settings import PatcherSettings

__all__ = ["HANDLER_TAG", "configureLogging", "resetLogging"]



# Marks handlers installed by configureLogging() so reconfiguration only replaces ours
HANDLER_TAG = "_packpatcherHandler"

# Noisy libraries whose records should not reach the root handlers
NO_PROPAGATE = ["concurrent.futures"]



def configureLogging(settings: PatcherSettings, *, loggerName: str = "packpatcher") -> logging.Logger:
    """
    Configure logging for a packaging run.

    Dev:
      - Console pretty logs (DEBUG)
    Prod:
      - Console INFO
    Both:
      - JSON file log with rotation when `logging.file` is set

    Handlers are attached to the `packpatcher` logger (and the `packs.*`
    pack loggers), never to the root logger, so the host keeps its own setup.
    Calling it again replaces the handlers it installed before.
    """
    logSettings = settings.logging
    level = logging.DEBUG if logSettings.devMode else logging.INFO

    for name in NO_PROPAGATE:
        logging.getLogger(name).propagate = False

    handlers: list[logging.Handler] = []

    consoleHandler = logging.StreamHandler()
    consoleHandler.setLevel(level)
    consoleHandler.setFormatter(DevFormatter())
    handlers.append(consoleHandler)

    logFile = settings.logFile
    if logFile is not None:
        logFile.parent.mkdir(parents=True, exist_ok=True)
        fileHandler = logging.handlers.RotatingFileHandler(
            logFile,
            maxBytes=logSettings.maxBytes,
            backupCount=logSettings.backupCount,
            encoding="utf-8",
        )
        fileHandler.setLevel(level)
        fileHandler.setFormatter(JsonFormatter())
        handlers.append(fileHandler)

    root = logging.getLogger(loggerName)
    for target in (root, logging.getLogger("packs")):
        resetLogging(target)
        target.setLevel(level)
        for handler in handlers:
            setattr(handler, HANDLER_TAG, True)
            target.addHandler(handler)

    return root



def resetLogging(target: logging.Logger | None = None) -> None:
    """Remove (and close) handlers previously installed by configureLogging()."""
    loggers = [target] if target is not None else [logging.getLogger("packpatcher"), logging.getLogger("packs")]
    for lg in loggers:
        for handler in list(lg.handlers):
            if getattr(handler, HANDLER_TAG, False):
                lg.removeHandler(handler)
                handler.close()
