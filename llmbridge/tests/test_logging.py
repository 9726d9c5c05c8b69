import json
import logging
import sys

from llmbridge.core.logging import (
    JSONFormatter,
    get_logger,
    provider_ctx,
    request_id_ctx,
    setup_logging,
)


def make_record(level=logging.INFO, msg="provider_request_retry"):
    return logging.LogRecord("llmbridge.core.transport", level, __file__, 10, msg, None, None)


def test_json_formatter_includes_context():
    record = make_record()
    record.extra_data = {"attempt": 1, "delay": 2.0}

    id_token = request_id_ctx.set("req-123")
    provider_token = provider_ctx.set("openai")
    try:
        output = json.loads(JSONFormatter().format(record))
    finally:
        request_id_ctx.reset(id_token)
        provider_ctx.reset(provider_token)

    assert output["message"] == "provider_request_retry"
    assert output["level"] == "INFO"
    assert output["request_id"] == "req-123"
    assert output["provider"] == "openai"
    assert output["data"] == {"attempt": 1, "delay": 2.0}
    assert "source" not in output


def test_json_formatter_debug_source():
    output = json.loads(JSONFormatter().format(make_record(level=logging.DEBUG)))
    assert output["source"]["line"] == 10
    assert "request_id" not in output


def test_json_formatter_exception_summary():
    try:
        raise ValueError("bad payload")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

    output = json.loads(JSONFormatter().format(record))
    assert output["error"] == {"type": "ValueError", "message": "bad payload"}


def test_context_logger_moves_data_into_extra(caplog):
    logger = get_logger("llmbridge.tests")
    with caplog.at_level(logging.INFO, logger="llmbridge.tests"):
        logger.info("cache_miss", data={"key": "abc"})

    [record] = caplog.records
    assert record.getMessage() == "cache_miss"
    assert record.extra_data == {"key": "abc"}


def test_setup_logging_replaces_handlers(tmp_path):
    root = logging.getLogger()
    saved = root.handlers[:], root.level
    try:
        log_file = tmp_path / "logs" / "llmbridge.log"
        setup_logging("DEBUG", json_output=False, log_file=str(log_file))
        setup_logging("WARNING", json_output=True)

        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert log_file.parent.exists()
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        for handler in saved[0]:
            root.addHandler(handler)
        root.setLevel(saved[1])
