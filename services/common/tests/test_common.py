import asyncio
import json
import logging
import uuid

import pytest

from services.common.core.logging_config import CustomJsonFormatter, setup_logging
from services.common.core.request_context import (
    accept_request_id,
    clear_request_id,
    generate_request_id,
    get_request_id,
    set_request_id,
)


def _record(msg: str = "Test message", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test-logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=None,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_request_context_basic():
    clear_request_id()
    assert get_request_id() is None

    rid = set_request_id("test-id")
    assert rid == "test-id"
    assert get_request_id() == "test-id"

    clear_request_id()
    assert get_request_id() is None


def test_generate_request_id_creates_uuid():
    req_id = generate_request_id()

    assert str(uuid.UUID(req_id)) == req_id
    assert get_request_id() == req_id
    assert generate_request_id() != req_id
    clear_request_id()


def test_accept_request_id_reuses_valid_header_value():
    assert accept_request_id("  upstream-abc  ") == "upstream-abc"
    assert get_request_id() == "upstream-abc"
    clear_request_id()


@pytest.mark.parametrize("candidate", [None, "", "   ", "x" * 200, "bad\nvalue"])
def test_accept_request_id_generates_when_unusable(candidate):
    req_id = accept_request_id(candidate)

    uuid.UUID(req_id)
    clear_request_id()


@pytest.mark.asyncio
async def test_request_context_isolation():
    async def task(name, delay):
        set_request_id(name)
        await asyncio.sleep(delay)
        return get_request_id()

    results = await asyncio.gather(task("rid-1", 0.02), task("rid-2", 0.01))
    assert results == ["rid-1", "rid-2"]


def test_custom_json_formatter():
    formatter = CustomJsonFormatter()

    clear_request_id()
    output = json.loads(formatter.format(_record()))
    assert output["message"] == "Test message"
    assert output["level"] == "INFO"
    assert output["logger"] == "test-logger"
    assert "request_id" not in output

    set_request_id("rid-123")
    output = json.loads(formatter.format(_record()))
    assert output["request_id"] == "rid-123"

    clear_request_id()


def test_custom_json_formatter_includes_extra_fields():
    formatter = CustomJsonFormatter()
    record = _record(sales_channel_id="storefront-de", client_ip="192.168.1.16", _private="x")

    output = json.loads(formatter.format(record))

    assert output["sales_channel_id"] == "storefront-de"
    assert output["client_ip"] == "192.168.1.16"
    assert "_private" not in output


def test_custom_json_formatter_serializes_exceptions():
    formatter = CustomJsonFormatter()
    try:
        raise ValueError("boom")
    except ValueError:
        import sys

        record = _record(msg="failed")
        record.exc_info = sys.exc_info()

    output = json.loads(formatter.format(record))
    assert "ValueError: boom" in output["exception"]


def test_setup_logging_applies_yaml_with_env_substitution(tmp_path, monkeypatch):
    config_file = tmp_path / "logging.yml"
    config_file.write_text(
        """
version: 1
disable_existing_loggers: false
formatters:
  json:
    (): services.common.core.logging_config.CustomJsonFormatter
handlers:
  console:
    class: logging.StreamHandler
    formatter: json
loggers:
  storefront-test:
    level: ${LOG_LEVEL}
    handlers: [console]
    propagate: false
""",
        encoding="utf-8",
    )
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    setup_logging(str(config_file))

    logger = logging.getLogger("storefront-test")
    assert logger.level == logging.WARNING
    assert isinstance(logger.handlers[0].formatter, CustomJsonFormatter)


def test_setup_logging_falls_back_to_basic_config(tmp_path, monkeypatch):
    calls = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))
    monkeypatch.setenv("LOG_LEVEL", "debug")

    setup_logging(str(tmp_path / "missing.yml"))

    assert calls == {"level": "DEBUG"}
