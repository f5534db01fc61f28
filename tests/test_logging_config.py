# tests/test_logging_config.py
from __future__ import annotations

import json
import logging

from portfolio_engine.logging_config import JsonFormatter
from portfolio_engine.middleware.request_id import actor_id_ctx, request_id_ctx


def _record(**extra) -> logging.LogRecord:
    rec = logging.LogRecord("portfolio_engine.test", logging.INFO, __file__, 1, "payment %s applied", (7,), None)
    for k, v in extra.items():
        setattr(rec, k, v)
    return rec


def test_json_formatter_includes_structured_extras():
    out = json.loads(JsonFormatter().format(_record(landlord_id=3, tenancy_id=11, unrelated="x")))
    assert out["message"] == "payment 7 applied"
    assert out["level"] == "INFO"
    assert out["landlord_id"] == 3
    assert out["tenancy_id"] == 11
    assert "unrelated" not in out


def test_json_formatter_carries_request_id():
    token = request_id_ctx.set("req-abc")
    try:
        out = json.loads(JsonFormatter().format(_record()))
    finally:
        request_id_ctx.reset(token)
    assert out["request_id"] == "req-abc"


def test_actor_falls_back_to_request_context():
    token = actor_id_ctx.set("agent-9")
    try:
        from_ctx = json.loads(JsonFormatter().format(_record()))
        explicit = json.loads(JsonFormatter().format(_record(actor_id="seed")))
    finally:
        actor_id_ctx.reset(token)
    assert from_ctx["actor_id"] == "agent-9"
    assert explicit["actor_id"] == "seed"


def test_none_extras_are_omitted():
    out = json.loads(JsonFormatter().format(_record(actor_id=None, report_id=None)))
    assert "actor_id" not in out
    assert "report_id" not in out
