import io
import logging

import httpx
import pytest

from cors_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)


class BrokenStrException(Exception):
    """An exception that breaks when __str__ is called."""

    def __str__(self):
        raise RuntimeError("Cannot convert to string!")

    def __repr__(self):
        return "BrokenStrException(cannot convert to string)"


@pytest.fixture
def captured_logger():
    stream = io.StringIO()
    logger = logging.getLogger("test_exception_logging")
    logger.handlers = []
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    yield logger, stream
    logger.handlers = []


class TestFormatExceptionMessage:
    def test_regular_message(self):
        assert format_exception_message(ValueError("bad value")) == "bad value"

    def test_empty_message_uses_type_name(self):
        request = httpx.Request("GET", "http://example.com/")
        assert format_exception_message(httpx.ReadTimeout("", request=request)) == "ReadTimeout"

    def test_broken_str_falls_back_to_repr(self):
        assert (
            format_exception_message(BrokenStrException())
            == "BrokenStrException(cannot convert to string)"
        )

    def test_none(self):
        assert format_exception_message(None) == "None"


class TestLogExceptionWithDetails:
    def test_regular_exception(self, captured_logger):
        logger, stream = captured_logger

        try:
            raise ConnectionError("refused")
        except ConnectionError as e:
            log_exception_with_details(logger, "[Proxy]", e)

        output = stream.getvalue()
        assert "ERROR [Proxy] Exception: refused" in output
        assert "Traceback" in output

    def test_level_respected(self, captured_logger):
        logger, stream = captured_logger

        log_exception_with_details(logger, "[Proxy]", ValueError("x"), logging.WARNING)

        assert stream.getvalue().startswith("WARNING [Proxy]")

    def test_single_line_per_exception(self, captured_logger):
        logger, stream = captured_logger

        log_exception_with_details(logger, "[Proxy]", httpx.ConnectError("refused"))

        lines = [line for line in stream.getvalue().splitlines() if "[Proxy]" in line]
        assert lines == ["ERROR [Proxy] Exception: refused"]

    def test_broken_exception_does_not_raise(self, captured_logger):
        logger, stream = captured_logger

        log_exception_with_details(logger, "[Proxy]", BrokenStrException())

        assert "BrokenStrException(cannot convert to string)" in stream.getvalue()

    def test_none_exception(self, captured_logger):
        logger, stream = captured_logger

        log_exception_with_details(logger, "[Proxy]", None)

        assert "[Proxy] Exception: None" in stream.getvalue()

    def test_broken_logger_does_not_raise(self):
        class BrokenLogger:
            def log(self, *args, **kwargs):
                raise RuntimeError("logger down")

        log_exception_with_details(BrokenLogger(), "[Proxy]", ValueError("x"))
