import io
import json
from contextlib import redirect_stderr, redirect_stdout

from fastapi.testclient import TestClient

from vocab_srs.deps import get_scheduler
from vocab_srs.logging import configure_logging, logger


def _json_lines(buffer_text: str) -> list[dict]:
    """Parse every JSON log line from mixed stdout/stderr text."""

    parsed = []
    for line in buffer_text.splitlines():
        line = line.strip()
        if line.startswith("{"):
            parsed.append(json.loads(line))
    return parsed


def _events(buffer_text: str, name: str) -> list[dict]:
    return [entry for entry in _json_lines(buffer_text) if entry.get("event") == name]


def test_structlog_outputs_pure_json_without_stdlib_prefix():
    buf_out = io.StringIO()
    buf_err = io.StringIO()

    with redirect_stdout(buf_out), redirect_stderr(buf_err):
        configure_logging("info")
        logger.info("srs_persist_failed", key="srs_items_v1", record="items")

    raw = buf_err.getvalue().strip() or buf_out.getvalue().strip()
    lines = [ln for ln in raw.splitlines() if ln.strip()]
    message_text = lines[-1] if lines else ""

    assert message_text, "no log output captured"
    assert not message_text.startswith("INFO:"), message_text

    data = json.loads(message_text)
    assert data.get("event") == "srs_persist_failed"
    assert data.get("level") in {"info", "INFO"}
    assert data.get("key") == "srs_items_v1"
    assert "timestamp" in data


def test_log_level_filters_debug_events():
    buf_err = io.StringIO()

    with redirect_stderr(buf_err):
        configure_logging("WARNING")
        logger.info("srs_item_added", key="cat")
        logger.warning("srs_config_corrupt", key="srs_config_v2")

    assert not _events(buf_err.getvalue(), "srs_item_added")
    assert _events(buf_err.getvalue(), "srs_config_corrupt")


def test_request_complete_log_contains_request_id_and_status(scheduler):
    from vocab_srs.main import app

    buf_err = io.StringIO()
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    try:
        with redirect_stderr(buf_err):
            configure_logging("INFO")
            with TestClient(app) as client:
                response = client.get("/api/review/due")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    request_lines = _events(buf_err.getvalue(), "request_complete")
    assert request_lines, "request_complete log line not found"

    data = request_lines[-1]
    assert data.get("request_id") == response.headers["X-Request-ID"]
    assert data.get("status_code") == 200
    assert data.get("path") == "/api/review/due"
    assert "latency_ms" in data


def test_handler_events_inherit_request_id(scheduler):
    from vocab_srs.main import app

    buf_err = io.StringIO()
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    try:
        with redirect_stderr(buf_err):
            configure_logging("INFO")
            with TestClient(app) as client:
                response = client.put(
                    "/api/schedule",
                    json={"schedule": "1m, 10m"},
                    headers={"X-Request-ID": "req-42"},
                )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    updated = _events(buf_err.getvalue(), "schedule_updated")
    assert updated, "schedule_updated log line not found"
    assert updated[-1].get("request_id") == "req-42"


def test_persist_failure_is_logged(scheduler, store):
    buf_err = io.StringIO()
    store.fail_writes = True

    with redirect_stderr(buf_err):
        configure_logging("INFO")
        scheduler.init_for_word("cat")

    failures = _events(buf_err.getvalue(), "srs_persist_failed")
    assert failures
    assert failures[-1].get("record") == "items"
