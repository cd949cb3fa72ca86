"""
autotax_engines.tracer -- AUTOTAX_ENGINE_TRACE records for engine calls.

``@traced_engine`` wraps a pure engine entry point and, after a successful
call, logs one record naming the engine, its version, a fingerprint of the
selected arguments and the elapsed time.  The fingerprint is a truncated
SHA-256 of a stable rendering of the arguments: dataclass fields in
declaration order, mapping keys and set members sorted, enums by value.

The wrapper reads its arguments and writes a log record; it never changes
inputs or results.  A fingerprint field that names no argument renders as
"null".  Exceptions from the engine propagate untouched and produce no
trace record.

    @traced_engine("calculator", "1.0", fingerprint_fields=("rules", "deal"))
    def calculate(rules, deal):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from autotax_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting.

    Handles None, numbers, strings, enums, dataclasses (field order),
    mappings (sorted keys) and sequences (order preserved). Sets are sorted.
    Unknown types fall back to ``str(value)``.
    """
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (str, int, float)):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        parts = (
            f"{f.name}:{_canonicalize(getattr(value, f.name))}"
            for f in dataclasses.fields(value)
            if f.compare
        )
        return type(value).__name__ + "(" + ",".join(parts) + ")"
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (set, frozenset)):
        return "{" + ",".join(sorted(_canonicalize(v) for v in value)) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """Compute a deterministic SHA-256 fingerprint of selected arguments.

    Returns a 16-character hex prefix. Identical inputs always produce the
    same fingerprint.
    """
    parts: list[str] = []
    for field in fingerprint_fields:
        parts.append(f"{field}={_canonicalize(arguments.get(field))}")
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Trace successful calls; ``fingerprint_fields`` are argument names, bound positionally or by keyword."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                "AUTOTAX_ENGINE_TRACE",
                extra={
                    "trace_type": "AUTOTAX_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
