"""
Slow query monitoring.

``register_query_timing`` attaches a ``SlowQueryMonitor`` to an engine. Every
statement is timed between the cursor events; statements at or above
``SLOW_QUERY_THRESHOLD_MS`` are logged on the ``sql.alerts`` logger with the
request id and route of the Flask request that issued them. Patient documents
and contact data never reach the log: bound parameters whose name mentions
them are replaced by ``***``.
"""

import logging
import time
from typing import Any, Dict, Optional

from flask import g, has_request_context
from sqlalchemy import event
from sqlalchemy.engine import Engine

from ebers.core.config import (get_slow_query_threshold_ms,
                               slow_query_alerts_enabled)

logger = logging.getLogger("sql.alerts")

_SENSITIVE_KEYS = ("cpf", "rg", "email", "phone")
_STATEMENT_LIMIT = 500
_PARAM_LIMIT = 200


def _shorten(value: Any, limit: int) -> str:
    text = value if isinstance(value, str) else repr(value)
    return text if len(text) <= limit else f"{text[:limit]}..."


def _mask_params(params: Any) -> Any:
    """Mask personal data (documents, contacts) before it reaches the logs."""
    if isinstance(params, dict):
        return {
            key: "***"
            if any(marker in str(key).lower() for marker in _SENSITIVE_KEYS)
            else _mask_params(value)
            for key, value in params.items()
        }
    if isinstance(params, (list, tuple)):
        return [_mask_params(item) for item in params]
    if isinstance(params, (bytes, bytearray, memoryview)):
        return "<binary>"
    if params is None or isinstance(params, (bool, int, float)):
        return params
    return _shorten(str(params), _PARAM_LIMIT)


class SlowQueryMonitor:
    """Times statements on one engine and reports the slow ones."""

    def __init__(self, threshold_ms: int, db_info: Dict[str, Any]):
        self.threshold_ms = threshold_ms
        self.db_info = {key: value for key, value in db_info.items() if value}

    def before_execute(self, conn, cursor, statement, parameters, context, executemany):
        context._ebers_query_started = time.perf_counter()

    def after_execute(self, conn, cursor, statement, parameters, context, executemany):
        started = getattr(context, "_ebers_query_started", None)
        if started is None or not slow_query_alerts_enabled():
            return
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        if elapsed_ms >= self.threshold_ms:
            self.report(elapsed_ms, statement, parameters)

    def report(self, elapsed_ms: float, statement: str, parameters: Any) -> None:
        logger.warning(
            "Slow query detected",
            extra={
                "context": {
                    "alert_type": "slow_query",
                    "duration_ms": round(elapsed_ms, 2),
                    "threshold_ms": self.threshold_ms,
                    "statement": _shorten(statement or "", _STATEMENT_LIMIT),
                    "params": _mask_params(parameters),
                    **self.db_info,
                    **self._request_info(),
                }
            },
        )

    @staticmethod
    def _request_info() -> Dict[str, Any]:
        if not has_request_context():
            return {}
        info = {"request_id": g.get("request_id"), "route": g.get("route")}
        return {key: value for key, value in info.items() if value}


def register_query_timing(
    engine: Engine, db_info: Optional[Dict[str, Any]] = None
) -> SlowQueryMonitor:
    """Attach a SlowQueryMonitor to ``engine`` once and return it."""
    existing = getattr(engine, "_ebers_query_monitor", None)
    if existing is not None:
        return existing

    monitor = SlowQueryMonitor(
        get_slow_query_threshold_ms(),
        db_info or {"db_host": engine.url.host, "db_name": engine.url.database},
    )
    event.listen(engine, "before_cursor_execute", monitor.before_execute)
    event.listen(engine, "after_cursor_execute", monitor.after_execute)
    engine._ebers_query_monitor = monitor
    return monitor
