"""
Unit tests for structured logging and slow query masking.
"""

import json
import logging

import pytest
from flask import Flask
from sqlalchemy import create_engine, text

from ebers.core.db import _mask_params, register_query_timing
from ebers.core.logging_config import (ConsoleFormatter, JSONFormatter,
                                       log_performance, setup_logging)


def _record(message="hello", context=None):
    record = logging.LogRecord("ebers.test", logging.INFO, __file__, 10, message, None, None)
    if context is not None:
        record.context = context
    return record


@pytest.mark.unit
class TestFormatters:
    def test_json_formatter_includes_context(self):
        output = json.loads(JSONFormatter().format(_record(context={"patient_id": "p-1"})))
        assert output["message"] == "hello"
        assert output["level"] == "INFO"
        assert output["context"] == {"patient_id": "p-1"}

    def test_console_formatter_appends_context(self):
        formatter = ConsoleFormatter("%(levelname)s %(message)s")
        line = formatter.format(_record(context={"quantity": 2}))
        assert line.endswith('hello | {"quantity": 2}')

    def test_console_formatter_restores_levelname(self):
        record = _record()
        ConsoleFormatter("%(levelname)s %(message)s").format(record)
        assert record.levelname == "INFO"


@pytest.mark.unit
class TestSetupLogging:
    def test_request_id_header(self):
        app = Flask(__name__)
        setup_logging(app, log_level="WARNING")

        @app.route("/ping")
        def ping():
            return "pong"

        client = app.test_client()
        generated = client.get("/ping")
        echoed = client.get("/ping", headers={"X-Request-ID": "req-42"})

        assert len(generated.headers["X-Request-ID"]) == 32
        assert echoed.headers["X-Request-ID"] == "req-42"

    def test_file_logging(self, tmp_path):
        setup_logging(log_level=logging.INFO, log_to_file=True, log_dir=tmp_path)
        logging.getLogger("ebers.test").error("falhou")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert (tmp_path / "ebers.log").exists()
        errors = (tmp_path / "ebers_errors.log").read_text(encoding="utf-8")
        assert "falhou" in errors


@pytest.mark.unit
def test_log_performance(caplog):
    with caplog.at_level(logging.INFO, logger="ebers.performance"):
        log_performance("financial_overview", 12.5, patients=3)
    record = caplog.records[-1]
    assert record.context == {
        "function": "financial_overview",
        "duration_ms": 12.5,
        "patients": 3,
    }


@pytest.mark.unit
def test_slow_query_params_are_masked():
    masked = _mask_params({"cpf_1": "123", "name": "Ana", "nested": [{"email": "a@b.c"}]})
    assert masked == {"cpf_1": "***", "name": "Ana", "nested": [{"email": "***"}]}


@pytest.mark.unit
def test_slow_query_monitor_reports(caplog):
    engine = create_engine("sqlite://")
    monitor = register_query_timing(engine, {"db_name": "memory"})
    monitor.threshold_ms = 0

    with caplog.at_level(logging.WARNING, logger="sql.alerts"):
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    alerts = [
        r.context
        for r in caplog.records
        if r.getMessage() == "Slow query detected"
        and r.context["statement"] == "SELECT 1"
    ]
    assert len(alerts) == 1
    assert alerts[0]["db_name"] == "memory"
    assert alerts[0]["threshold_ms"] == 0
    assert register_query_timing(engine) is monitor
