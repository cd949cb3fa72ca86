"""Tests for the structured logging system (autotax_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from autotax_kernel.domain.rules import LeaseMethod
from autotax_kernel.exceptions import ConfigInvalidError
from autotax_kernel.logging_config import (
    CONTEXT_FIELDS,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Each test configures logging from scratch."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def stream():
    """Configure autotax logging into a StringIO at INFO."""
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    configure_logging(handler=handler)
    return buffer


def _records(buffer: StringIO) -> list[dict]:
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line]


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_envelope(self, stream):
        get_logger("test").info("hello")

        (record,) = _records(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "autotax.test"
        assert record["ts"].endswith("+00:00")

    def test_extra_fields_flattened(self, stream):
        get_logger("test").info(
            "tax_calculation_completed", extra={"total_tax": "1200.00", "payment_count": 36}
        )

        (record,) = _records(stream)
        assert record["total_tax"] == "1200.00"
        assert record["payment_count"] == 36

    def test_domain_values_serialized(self, stream):
        get_logger("test").info("values", extra={
            "amount": Decimal("1052.28"),
            "as_of": date(2025, 6, 1),
            "method": LeaseMethod.PAYMENT,
            "codes": frozenset({"TITLE", "DOC"}),
        })

        (record,) = _records(stream)
        assert record["amount"] == "1052.28"
        assert record["as_of"] == "2025-06-01"
        assert record["method"] == "PAYMENT"
        assert record["codes"] == ["DOC", "TITLE"]

    def test_unknown_objects_fall_back_to_str(self, stream):
        get_logger("test").info("odd", extra={"obj": object})

        (record,) = _records(stream)
        assert record["obj"] == str(object)

    def test_context_fields_at_top_level(self, stream):
        LogContext.set(deal_id="D-1", jurisdiction="US_IN", rules_version="2")
        get_logger("test").info("test_msg")

        (record,) = _records(stream)
        assert record["deal_id"] == "D-1"
        assert record["jurisdiction"] == "US_IN"
        assert record["rules_version"] == "2"
        assert "correlation_id" not in record

    def test_plain_exception(self, stream):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        (record,) = _records(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record
        assert "Traceback" in record["traceback"]

    def test_engine_error_fields(self, stream):
        try:
            raise ConfigInvalidError("lease_rules.method", "unrecognized lease method", "WEEKLY")
        except ConfigInvalidError:
            get_logger("test").exception("rules_rejected")

        (record,) = _records(stream)
        assert record["level"] == "ERROR"
        assert record["exc_code"] == "CONFIG_INVALID"
        assert record["exc_type"] == "ConfigInvalidError"
        assert record["exc_field"] == "lease_rules.method"
        assert record["exc_value"] == "WEEKLY"
        assert record["exc_reason"] == "unrecognized lease method"

    def test_formatter_usable_standalone(self):
        record = logging.LogRecord("autotax.x", logging.WARNING, __file__, 1, "m %s", ("a",), None)

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["message"] == "m a"
        assert payload["level"] == "WARNING"


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_is_additive(self):
        LogContext.set(correlation_id="a")
        LogContext.set(rules_version="1", deal_id=None)
        assert LogContext.get_all() == {"correlation_id": "a", "rules_version": "1"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_every_field_settable(self):
        LogContext.set(**{name: name.upper() for name in CONTEXT_FIELDS})
        assert LogContext.get_all() == {name: name.upper() for name in CONTEXT_FIELDS}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="actor_id"):
            LogContext.set(actor_id="x")

    def test_bind_restores_previous_value(self):
        LogContext.set(jurisdiction="US_IN")
        with LogContext.bind(jurisdiction="US_OH"):
            assert LogContext.get_all()["jurisdiction"] == "US_OH"
        assert LogContext.get_all()["jurisdiction"] == "US_IN"

    def test_bind_restores_unset(self):
        with LogContext.bind(deal_id="temp"):
            assert LogContext.get_all() == {"deal_id": "temp"}
        assert LogContext.get_all() == {}

    def test_nested_bind(self):
        with LogContext.bind(correlation_id="outer"):
            with LogContext.bind(correlation_id="inner", deal_id="D-2"):
                assert LogContext.get_all() == {"correlation_id": "inner", "deal_id": "D-2"}
            assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_bind_ignores_none(self):
        LogContext.set(deal_id="D-1")
        with LogContext.bind(deal_id=None, rules_version="3"):
            assert LogContext.get_all() == {"deal_id": "D-1", "rules_version": "3"}

    def test_bind_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(deal_id="D-9"):
                raise RuntimeError("inside")
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_second_call_is_ignored(self):
        first = logging.StreamHandler(StringIO())
        second = logging.StreamHandler(StringIO())
        configure_logging(handler=first)
        configure_logging(handler=second, level=logging.DEBUG)

        handlers = logging.getLogger("autotax").handlers
        assert first in handlers
        assert second not in handlers
        assert logging.getLogger("autotax").level == logging.INFO

    def test_handler_gets_structured_formatter(self):
        handler = logging.StreamHandler(StringIO())
        configure_logging(handler=handler)
        assert isinstance(handler.formatter, StructuredFormatter)

    @pytest.mark.parametrize("level,expected", [
        (logging.ERROR, logging.ERROR),
        ("debug", logging.DEBUG),
        ("WARNING", logging.WARNING),
    ])
    def test_level_by_number_or_name(self, level, expected):
        configure_logging(level=level, handler=logging.StreamHandler(StringIO()))
        assert logging.getLogger("autotax").level == expected

    def test_unknown_level_name(self):
        with pytest.raises(ValueError, match="LOUD"):
            configure_logging(level="LOUD")

    def test_does_not_propagate_to_root(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        assert logging.getLogger("autotax").propagate is False

    def test_child_loggers_share_handler(self):
        buffer = StringIO()
        configure_logging(handler=logging.StreamHandler(buffer), level=logging.DEBUG)
        get_logger("engines.schemes.hut").debug("hierarchy_test")

        (record,) = _records(buffer)
        assert record["logger"] == "autotax.engines.schemes.hut"

    def test_debug_dropped_at_default_level(self, stream):
        logger = get_logger("test")
        logger.debug("hidden")
        logger.info("shown")
        assert [r["message"] for r in _records(stream)] == ["shown"]

    def test_calculation_binds_deal_context(self, stream):
        from autotax_engines.calculator import calculate
        from tests.builders import make_deal, make_rules

        calculate(make_rules(version=4), make_deal(deal_id="D-77"))

        completed = [r for r in _records(stream) if r["message"] == "tax_calculation_completed"]
        assert completed[0]["deal_id"] == "D-77"
        assert completed[0]["jurisdiction"] == "US_TS"
        assert completed[0]["rules_version"] == "4"
        assert LogContext.get_all() == {}
