"""
Typed Exception Hierarchy for the autotax engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A tax figure is either complete and explainable or it is not produced at all.
Callers must be able to tell a broken rules payload from a broken deal
snapshot without parsing message strings, so every error:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA: the offending field and the received value

Example - WRONG way to handle errors:
    try:
        result = calculate(rules, deal)
    except Exception as e:
        if "payment_count" in str(e):  # FRAGILE - message might change
            ask_for_term()

Example - RIGHT way (what this module enables):
    try:
        result = calculate(rules, deal)
    except InvalidInputError as e:
        api_response(code=e.code, field=e.field, value=e.value)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TaxEngineError (base)
    |
    +-- ConfigInvalidError        rules payload malformed or inconsistent
    +-- InvalidInputError         deal snapshot structurally invalid
    +-- UnsupportedSchemeError    special scheme id not in the registry
    +-- InvariantViolationError   internal defect (never user-facing)

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                          | When Raised
------------------------------|-----------------------------------------------
CONFIG_INVALID                | Missing/inconsistent rules field, unknown
                              | lease method, bad trade-in variant fields
INVALID_INPUT                 | Negative money field, payment_count <= 0,
                              | float money, missing required lease terms
UNSUPPORTED_SCHEME            | Special scheme id not registered at dispatch
INTERNAL_INVARIANT_VIOLATION  | Itemized lines do not sum to the stated total,
                              | lease identity broken, negative base

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CONFIG_INVALID is fatal to that config. Reject the config at load time;
   do not retry calculations with it.

2. INVALID_INPUT and UNSUPPORTED_SCHEME are fatal to one call. They point at
   upstream data and are never transient.

3. InvariantViolationError means the engine produced an inconsistent figure.
   Log it with full context and page a developer; never show it to a user
   as a validation message.

All errors expose ``to_dict()`` for the structured-text boundary.
"""

from typing import Any


class TaxEngineError(Exception):
    """
    Base exception for all autotax errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "TAX_ENGINE_ERROR"

    field: str | None = None
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Structured error payload: code, field, value, message."""
        return {
            "code": self.code,
            "field": self.field,
            "value": None if self.value is None else str(self.value),
            "message": str(self),
        }


class ConfigInvalidError(TaxEngineError):
    """
    A jurisdiction rules payload failed validation.

    Raised once per config at load time; the config must not be used.
    """

    code: str = "CONFIG_INVALID"

    def __init__(self, field: str, reason: str, value: Any = None):
        self.field = field
        self.value = value
        self.reason = reason
        msg = f"Invalid rules config at {field}: {reason}"
        if value is not None:
            msg += f" (got {value!r})"
        super().__init__(msg)


class InvalidInputError(TaxEngineError):
    """A deal snapshot is structurally invalid for this calculation."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, reason: str, value: Any = None):
        self.field = field
        self.value = value
        self.reason = reason
        msg = f"Invalid deal input at {field}: {reason}"
        if value is not None:
            msg += f" (got {value!r})"
        super().__init__(msg)


class UnsupportedSchemeError(TaxEngineError):
    """A special tax scheme id is not present in the scheme registry."""

    code: str = "UNSUPPORTED_SCHEME"

    def __init__(self, scheme_id: str, field: str = "vehicle_tax_scheme"):
        self.scheme_id = scheme_id
        self.field = field
        self.value = scheme_id
        super().__init__(f"Unsupported tax scheme {scheme_id!r} at {field}")


class InvariantViolationError(TaxEngineError):
    """
    The engine produced an internally inconsistent result.

    This is a defect in the engine, not a problem with the caller's data.
    """

    code: str = "INTERNAL_INVARIANT_VIOLATION"

    def __init__(self, invariant: str, detail: str):
        self.invariant = invariant
        self.field = invariant
        self.detail = detail
        super().__init__(f"Invariant {invariant} violated: {detail}")
