# tests/packpatcher/core/test_logging_setup.py
import json
import logging
import sys

import pytest

from packpatcher.config.settings import loadSettings
from packpatcher.core.logging import (
    configureLogging,
    getLogContext,
    getPackLogger,
    logContext,
    resetLogging,
    setLogContext,
    clearLogContext,
)
from packpatcher.core.logging.formatters import DevFormatter, JsonFormatter
from packpatcher.core.logging.setup import HANDLER_TAG


@pytest.fixture(autouse=True)
def _clean_logging():
    clearLogContext()
    yield
    clearLogContext()
    resetLogging()


def _record(msg: str = "hello %s", *args, name: str = "packpatcher.test") -> logging.LogRecord:
    return logging.LogRecord(name, logging.INFO, __file__, 1, msg, args or ("world",), None)


def test_logContext_restores_previous_values():
    setLogContext(runId="run1")
    with logContext(packId="my_pack", stage="metadata"):
        assert getLogContext() == {"runId": "run1", "packId": "my_pack", "stage": "metadata"}
        with logContext(stage="assemble"):
            assert getLogContext()["stage"] == "assemble"
        assert getLogContext()["stage"] == "metadata"
    assert getLogContext() == {"runId": "run1"}


def test_setLogContext_ignores_none_values():
    setLogContext(runId="r", packId=None)
    assert getLogContext() == {"runId": "r"}


def test_devFormatter_appends_context():
    with logContext(runId="r1", packId="p1", stage="compile"):
        line = DevFormatter().format(_record())
    assert line == "INFO: [packpatcher.test] hello world [r1/p1/compile]"


def test_devFormatter_without_context():
    assert DevFormatter().format(_record()) == "INFO: [packpatcher.test] hello world"


def test_jsonFormatter_emits_context_and_exception():
    try:
        raise ValueError("bad")
    except ValueError:
        record = logging.LogRecord("packpatcher.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

    with logContext(packId="p1"):
        payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "error"
    assert payload["msg"] == "failed"
    assert payload["ctx"] == {"packId": "p1"}
    assert payload["exc"]["type"] == "ValueError"
    assert payload["exc"]["message"] == "bad"


def test_configureLogging_writes_json_file(tmp_path):
    settings = loadSettings(baseDir=tmp_path, overrides={"logging": {"devMode": False, "file": "logs/patcher.log"}})
    logger = configureLogging(settings)

    assert logger.level == logging.INFO
    tagged = [h for h in logger.handlers if getattr(h, HANDLER_TAG, False)]
    assert len(tagged) == 2

    with logContext(runId="abc"):
        logging.getLogger("packpatcher.packs.pipeline").info("Packaged %s", "x")
        getPackLogger("my_pack").info("Loaded")

    for handler in tagged:
        handler.flush()

    lines = [json.loads(line) for line in (tmp_path / "logs" / "patcher.log").read_text(encoding="utf-8").splitlines()]
    assert [line["msg"] for line in lines] == ["Packaged x", "Loaded"]
    assert lines[1]["logger"] == "packs.my_pack"
    assert all(line["ctx"] == {"runId": "abc"} for line in lines)


def test_configureLogging_replaces_its_own_handlers(tmp_path):
    settings = loadSettings(baseDir=tmp_path)
    foreign = logging.NullHandler()
    logger = logging.getLogger("packpatcher")
    logger.addHandler(foreign)
    try:
        configureLogging(settings)
        configureLogging(settings)
        tagged = [h for h in logger.handlers if getattr(h, HANDLER_TAG, False)]
        assert len(tagged) == 1
        assert foreign in logger.handlers
    finally:
        logger.removeHandler(foreign)


def test_packLogger_trace_only_when_enabled(caplog):
    caplog.set_level(logging.DEBUG, logger="packs")
    getPackLogger("quiet").trace("hidden")
    getPackLogger("loud", traceEnabled=True).trace("shown %d", 1)
    messages = [r.getMessage() for r in caplog.records]
    assert messages == ["[TRACE] shown 1"]
