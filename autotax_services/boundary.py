"""
autotax_services.boundary -- structured-text entry point.

``calculate_json(rules_json, input_json) -> str`` exposes the engine
contract as two JSON documents in and one out, for embedding hosts that do
not speak Python objects.  Keys are the canonical snake_case names used by
the domain model; any other naming convention is the host adapter's job.

Output is always one of:

    {"ok": true,  "result": {...TaxCalculationResult.to_dict()...}}
    {"ok": false, "error":  {"code": ..., "field": ..., "value": ..., "message": ...}}

Numbers in both inputs are decoded as Decimal; amounts in the output are
decimal strings.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

from autotax_config.validator import validate_rules
from autotax_engines.calculator import calculate
from autotax_kernel.exceptions import (
    ConfigInvalidError,
    InvalidInputError,
    InvariantViolationError,
    TaxEngineError,
)
from autotax_kernel.logging_config import get_logger

from autotax_services.codec import parse_deal

logger = get_logger("services.boundary")


def _decode(document: str, what: str) -> Any:
    try:
        return json.loads(document, parse_float=Decimal)
    except (json.JSONDecodeError, TypeError) as exc:
        reason = f"not a valid JSON document: {exc}"
        if what == "rules":
            raise ConfigInvalidError("<rules>", reason) from None
        raise InvalidInputError("<input>", reason) from None


def calculate_payload(rules_payload: Any, deal_payload: Any) -> dict[str, Any]:
    """Same contract as ``calculate_json`` over already-decoded payloads."""
    try:
        rules = validate_rules(rules_payload)
        deal = parse_deal(deal_payload)
        result = calculate(rules, deal)
    except InvariantViolationError as exc:
        logger.error("calculation_invariant_violated", exc_info=exc)
        return {"ok": False, "error": exc.to_dict()}
    except TaxEngineError as exc:
        logger.warning("calculation_rejected", extra={
            "error_code": exc.code,
            "error_field": exc.field,
        })
        return {"ok": False, "error": exc.to_dict()}
    return {"ok": True, "result": result.to_dict()}


def calculate_json(rules_json: str, input_json: str) -> str:
    """Run one calculation from JSON documents and return a JSON document."""
    try:
        rules_payload = _decode(rules_json, "rules")
        deal_payload = _decode(input_json, "input")
    except TaxEngineError as exc:
        logger.warning("calculation_rejected", extra={
            "error_code": exc.code,
            "error_field": exc.field,
        })
        return json.dumps({"ok": False, "error": exc.to_dict()})
    return json.dumps(calculate_payload(rules_payload, deal_payload))
