"""
Pytest fixtures for the autotax test suite.

Provides:
- Structured logging configured once per session
- LogContext isolation between tests
- ``captured_logs`` for asserting on emitted log events

Builders for rules and deals live in ``tests/builders.py``.
"""

import json
import logging
from io import StringIO

import pytest

# Special schemes self-register on import
import autotax_engines.schemes  # noqa: F401
from autotax_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture autotax logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            calculate(rules, deal)
            logs = captured_logs()
            assert any(r["message"] == "tax_calculation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("autotax")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)

