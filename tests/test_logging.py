"""Tests for core/logging.py: structured JSON logging."""

import json
import logging
import sys

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.logging import (
    JSONFormatter,
    RequestLoggingMiddleware,
    bind_context,
    log_ctx,
    setup_logging,
)


@pytest.fixture()
def _reset_root():
    root = logging.getLogger()
    original = root.handlers[:]
    level = root.level
    yield
    root.handlers = original
    root.setLevel(level)


def _record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("test", logging.INFO, "", 0, msg, (), None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_json_formatter_output():
    out = json.loads(JSONFormatter().format(_record("hello world")))
    assert out["level"] == "INFO"
    assert out["message"] == "hello world"
    assert "timestamp" in out
    assert out["topology_version"] is None


def test_secret_filter():
    out = json.loads(JSONFormatter().format(_record("token=abc123 ok")))
    assert "abc123" not in out["message"]
    assert "***" in out["message"]


def test_extra_fields_included():
    record = _record("recomputed", duration_ms=1.5, truncated=True, reasons=["x"], unrelated="skip")
    out = json.loads(JSONFormatter().format(record))
    assert out["duration_ms"] == 1.5
    assert out["truncated"] is True
    assert out["reasons"] == ["x"]
    assert "unrelated" not in out


def test_bound_topology_version():
    token = bind_context(topology_version=12)
    try:
        out = json.loads(JSONFormatter().format(_record("tick")))
    finally:
        log_ctx.reset(token)
    assert out["topology_version"] == 12
    assert log_ctx.get().get("topology_version") is None


def test_exception_serialized():
    try:
        raise ValueError("bad delta")
    except ValueError:
        record = logging.LogRecord("test", logging.ERROR, "", 0, "failed", (), sys.exc_info())
    out = json.loads(JSONFormatter().format(record))
    assert "ValueError: bad delta" in out["exception"]


def test_request_id_header():
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/ping")
    def ping():
        return {"ok": True}

    client = TestClient(app)
    r = client.get("/ping")
    assert r.status_code == 200
    # UUID4 format
    assert len(r.headers["X-Request-ID"]) == 36


def test_request_id_echoed_and_propagated():
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/ctx")
    def ctx_endpoint():
        return {"request_id": log_ctx.get().get("request_id")}

    client = TestClient(app)
    r = client.get("/ctx", headers={"X-Request-ID": "req-42"})
    assert r.headers["X-Request-ID"] == "req-42"
    assert r.json()["request_id"] == "req-42"


def test_setup_logging(_reset_root):
    setup_logging("DEBUG")
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    setup_logging("DEBUG")
    assert sum(isinstance(h.formatter, JSONFormatter) for h in root.handlers) == 1
