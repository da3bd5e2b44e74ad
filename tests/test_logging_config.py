import json
import logging

from whatsapp_desk.logging_config import JSONFormatter, PhoneLoggerAdapter, get_logger


def _record(logger_name="whatsapp_desk.test", **extra):
    record = logging.LogRecord(logger_name, logging.INFO, __file__, 1, "Reply routed", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_includes_context(self):
        payload = json.loads(JSONFormatter().format(_record(context={"phone": "27821234567"})))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "whatsapp_desk.test"
        assert payload["message"] == "Reply routed"
        assert payload["context"] == {"phone": "27821234567"}

    def test_without_context(self):
        assert "context" not in json.loads(JSONFormatter().format(_record()))


class TestPhoneLoggerAdapter:
    def test_merges_phone_with_call_context(self):
        adapter = PhoneLoggerAdapter(get_logger("intake_service"), {"phone": "27821234567"})

        msg, kwargs = adapter.process("Reply routed", {"context": {"rule": "help"}})

        assert msg == "Reply routed"
        assert kwargs["extra"] == {"context": {"phone": "27821234567", "rule": "help"}}

    def test_logger_namespace(self):
        assert get_logger("webhook").name == "whatsapp_desk.webhook"
