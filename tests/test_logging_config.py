import json
import logging

from studymate.logging_config import ContextFormatter, JsonFormatter


def _record(context=None) -> logging.LogRecord:
    record = logging.LogRecord("studymate.ai.errors", logging.ERROR, __file__, 1, "Rate Limited: slow down", None, None)
    if context is not None:
        record.context = context
    return record


class TestContextFormatter:
    def test_appends_context_pairs(self):
        line = ContextFormatter("%(levelname)s %(message)s").format(
            _record({"status": 429, "purpose": "chat", "url": None})
        )
        assert line == "ERROR Rate Limited: slow down | status=429 purpose=chat"

    def test_plain_without_context(self):
        line = ContextFormatter("%(message)s").format(_record())
        assert line == "Rate Limited: slow down"


class TestJsonFormatter:
    def test_context_field(self):
        payload = json.loads(JsonFormatter().format(_record({"status": 503, "method": "POST"})))
        assert payload["level"] == "ERROR"
        assert payload["logger"] == "studymate.ai.errors"
        assert payload["context"] == {"status": 503, "method": "POST"}

    def test_non_dict_context_ignored(self):
        payload = json.loads(JsonFormatter().format(_record("oops")))
        assert "context" not in payload
