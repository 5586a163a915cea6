"""Tests for structured logging and request_id propagation."""

import json
import logging

from listingai.core.logging import JsonFormatter, latency_bucket_ms, log_event, request_id_ctx_var, stage_timer


def test_request_id_in_response_and_logs(client, caplog):
    with caplog.at_level(logging.INFO, logger="listingai"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    assert rid
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"
    assert len({r.request_id for r in records}) == 1


def test_request_id_in_error_response(client):
    response = client.post("/process")
    rid = response.headers.get("x-request-id")
    assert response.status_code == 401
    assert rid
    assert response.json()["request_id"] == rid


def test_log_event_binds_context_and_truncates(caplog):
    token = request_id_ctx_var.set("rid-42")
    try:
        with caplog.at_level(logging.INFO, logger="listingai"):
            log_event("warning", "stage degraded", stage="analyzing_visuals", extra={"error_message": "x" * 2000})
    finally:
        request_id_ctx_var.reset(token)

    record = caplog.records[-1]
    assert record.request_id == "rid-42"
    assert record.stage == "analyzing_visuals"
    assert record.error_message.endswith("...<truncated>")
    assert len(record.error_message) < 600


def test_json_formatter_includes_structured_fields():
    record = logging.LogRecord("listingai", logging.INFO, __file__, 1, "hello", None, None)
    record.request_id = "rid-1"
    record.stage = "synthesizing"
    record.user_id = "user_1"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "hello"
    assert payload["request_id"] == "rid-1"
    assert payload["stage"] == "synthesizing"
    assert payload["user_id"] == "user_1"


def test_latency_buckets():
    assert latency_bucket_ms(None) == "unknown"
    assert latency_bucket_ms(50) == "<100ms"
    assert latency_bucket_ms(2500) == "1-5s"
    assert latency_bucket_ms(45000) == ">=30s"


def test_stage_timer_logs_latency_and_outcome(caplog):
    with caplog.at_level(logging.INFO, logger="listingai"):
        with stage_timer("synthesizing", user_id="user_1"):
            pass
        try:
            with stage_timer("analyzing_visuals"):
                raise ValueError("boom")
        except ValueError:
            pass

    finished = [r for r in caplog.records if r.getMessage().endswith("finished")]
    assert [r.stage for r in finished] == ["synthesizing", "analyzing_visuals"]
    assert [r.outcome for r in finished] == ["ok", "error"]
    assert finished[0].latency_bucket == "<100ms"
    assert finished[0].user_id == "user_1"
