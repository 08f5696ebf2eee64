# packpatcher/core/logging/util.py
from __future__ import annotations

import logging



class PackLogger:
    """Tiny sugar for per-pack loggers with trace()."""
    def __init__(self, logger: logging.Logger, traceEnabled: bool) -> None:
        self._log = logger
        self._traceEnabled = traceEnabled

    @property
    def name(self) -> str:
        return self._log.name

    def debug(self, msg: str, *args, **kwargs): self._log.debug(msg, *args, **kwargs)
    def info(self, msg: str, *args, **kwargs): self._log.info(msg, *args, **kwargs)
    def warning(self, msg: str, *args, **kwargs): self._log.warning(msg, *args, **kwargs)
    def error(self, msg: str, *args, **kwargs): self._log.error(msg, *args, **kwargs)
    def exception(self, msg: str, *args, **kwargs): self._log.exception(msg, *args, **kwargs)
    def trace(self, msg: str, *args, **kwargs):
        if self._traceEnabled:
            self._log.debug("[TRACE] " + msg, *args, **kwargs)

def getPackLogger(packId: str, *, traceEnabled: bool = False) -> PackLogger:
    return PackLogger(logging.getLogger(f"packs.{str(packId).strip()}"), traceEnabled)
