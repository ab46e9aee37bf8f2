"""
Tests for the JSON log formatter and logging setup.
"""

import json
import logging
import sys

from src.orchestrator.logging_config import JSONFormatter, setup_logging


def make_record(msg="Fetched 3 reviews", exc_info=None, **extra):
    record = logging.LogRecord(
        name="src.data.ingestion_pipeline",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_base_fields(self):
        line = JSONFormatter().format(make_record())
        payload = json.loads(line)

        assert payload["level"] == "INFO"
        assert payload["logger"] == "src.data.ingestion_pipeline"
        assert payload["msg"] == "Fetched 3 reviews"
        assert payload["ts"].endswith("+00:00")
        assert "\n" not in line

    def test_extra_fields_copied_when_present(self):
        payload = json.loads(JSONFormatter().format(
            make_record(run_id="abc", source="amazon", duration=0.42, unrelated="x")
        ))

        assert payload["run_id"] == "abc"
        assert payload["source"] == "amazon"
        assert payload["duration"] == 0.42
        assert "product_id" not in payload
        assert "unrelated" not in payload

    def test_exception_text(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record(exc_info=sys.exc_info())

        payload = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in payload["exception"]


class TestSetupLogging:

    def setup_method(self):
        self.root = logging.getLogger()
        self.saved_handlers = list(self.root.handlers)
        self.saved_level = self.root.level

    def teardown_method(self):
        for handler in list(self.root.handlers):
            self.root.removeHandler(handler)
            handler.close()
        for handler in self.saved_handlers:
            self.root.addHandler(handler)
        self.root.setLevel(self.saved_level)

    def test_json_output_with_rotating_file(self, tmp_path):
        log_file = tmp_path / "logs" / "reviews.log"

        setup_logging(level="debug", json_output=True, log_file=str(log_file))

        assert self.root.level == logging.DEBUG
        assert len(self.root.handlers) == 2
        assert all(isinstance(h.formatter, JSONFormatter) for h in self.root.handlers)
        assert log_file.parent.is_dir()

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(level="chatty")

        assert self.root.level == logging.INFO
        assert len(self.root.handlers) == 1
        assert logging.getLogger("urllib3").level == logging.WARNING
