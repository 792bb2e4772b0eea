"""
Тесты структурированного логирования (logger.py).
"""

import json
import logging
from io import StringIO

import pytest

from persona_trust.logger import create_test_logger, logger as engine_logger


@pytest.fixture
def capture():
    """Подменить обработчики логгера на StringIO, вернуть буфер"""
    attached = []

    def _attach(log):
        buffer = StringIO()
        handler = logging.StreamHandler(buffer)
        handler.setLevel(logging.DEBUG)
        attached.append((log, list(log.logger.handlers), log.logger.level))
        log.logger.handlers.clear()
        log.logger.addHandler(handler)
        log.logger.setLevel(logging.DEBUG)
        return buffer

    yield _attach

    for log, handlers, level in attached:
        log.logger.handlers.clear()
        log.logger.handlers.extend(handlers)
        log.logger.setLevel(level)
        log.clear_conversation()
        log.clear_context()


def _json_lines(buffer: StringIO):
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line.strip()]


class TestStructuredLoggerBasic:
    """Базовые свойства"""

    def test_name(self):
        assert create_test_logger("basic").name == "persona_trust.basic"

    def test_conversation_id(self):
        log = create_test_logger("conv_id")
        log.set_conversation("sess_1")
        assert log.conversation_id == "sess_1"
        log.clear_conversation()
        assert log.conversation_id is None

    def test_format_structured(self):
        log = create_test_logger("format")
        log.set_context(config_version="v1")
        try:
            entry = log._format_structured("INFO", "msg", key="value")
        finally:
            log.clear_context()
        assert entry["level"] == "INFO"
        assert entry["message"] == "msg"
        assert entry["key"] == "value"
        assert entry["config_version"] == "v1"
        assert entry["timestamp"].endswith("Z")


class TestStructuredLoggerOutput:
    """Вывод в readable и JSON форматах"""

    def test_readable(self, capture, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        log = create_test_logger("readable")
        buffer = capture(log)

        log.set_conversation("sess_1")
        log.info("Turn processed", stage="Demand")

        output = buffer.getvalue()
        assert "[sess_1] Turn processed" in output
        assert "stage=Demand" in output

    def test_json(self, capture, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        log = create_test_logger("json")
        buffer = capture(log)

        log.set_conversation("sess_1")
        log.warning("Кириллица", key="значение")

        data = _json_lines(buffer)[0]
        assert data["level"] == "WARNING"
        assert data["message"] == "Кириллица"
        assert data["conversation_id"] == "sess_1"
        assert data["key"] == "значение"

    def test_metric_and_event(self, capture, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        log = create_test_logger("analytics")
        buffer = capture(log)

        log.metric("trust", 54, evidence_count=3)
        log.event("objection_selected", pool="objection_budget")

        metric, event = _json_lines(buffer)
        assert metric["level"] == "METRIC"
        assert metric["message"] == "trust"
        assert metric["value"] == 54
        assert metric["evidence_count"] == 3
        assert event["level"] == "EVENT"
        assert event["message"] == "objection_selected"
        assert event["pool"] == "objection_budget"

    def test_exception_json_has_traceback(self, capture, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        log = create_test_logger("exception")
        buffer = capture(log)

        try:
            raise RuntimeError("boom")
        except RuntimeError:
            log.exception("Failed")

        data = _json_lines(buffer)[0]
        assert data["level"] == "ERROR"
        assert "RuntimeError: boom" in data["traceback"]


class TestEngineEvents:
    """События хода движка"""

    def test_turn_emits_trust_and_evidence_events(self, capture, monkeypatch, engine):
        monkeypatch.setenv("LOG_FORMAT", "json")
        buffer = capture(engine_logger)

        engine.process_dict({"sessionId": "sess_log", "evidences": ["demand"], "draftReply": "Хорошо."})

        entries = _json_lines(buffer)
        events = {e["message"]: e for e in entries if e["level"] == "EVENT"}
        assert events["evidence_ingested"]["key"] == "demand_letter"
        assert events["trust_computed"]["conversation_id"] == "sess_log"
        assert 0 <= events["trust_computed"]["trust"] <= 100
        metrics = [e for e in entries if e["level"] == "METRIC" and e["message"] == "trust"]
        assert metrics[0]["evidence_count"] == 1
