"""
Rules Validator (``autotax_config.validator``).

Responsibility
--------------
Checks a parsed ``TaxRulesConfig`` for internal consistency before first
use, and turns a raw payload into a validated config in one step
(``validate_rules``).

Architecture position
---------------------
**Config layer** -- load-time validation, invoked once per
(jurisdiction, version).  Reads the special-scheme registry from
``autotax_engines`` so a config can never name a scheme the engines
cannot run.

Invariants enforced
-------------------
* Trade-in policy fields match the policy tag: PERCENT has
  0 <= percent <= 1, CAPPED has cap_amount >= 0.
* Every referenced special-scheme id is registered, and its ``extras``
  parameter section passes the scheme's own checks.
* Fee codes, rebate sources and reciprocity overrides are unique.
* Reciprocity proof-age limits are non-negative and weight bands ordered.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the config
  MUST NOT be used; ``validate_rules`` raises ``ConfigInvalidError`` for
  the first one, naming its field.
* Validation warnings (``ConfigValidationResult.warnings``)  -> the config
  is usable but should be reviewed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from autotax_engines.schemes import SchemeRegistry
from autotax_kernel.domain.rules import (
    STANDARD_SCHEMES,
    TaxRulesConfig,
    TradeInPolicyType,
)
from autotax_kernel.exceptions import ConfigInvalidError
from autotax_kernel.logging_config import get_logger

from autotax_config.loader import parse_rules

logger = get_logger("config.validator")


@dataclass(frozen=True)
class ConfigIssue:
    field: str
    reason: str

    def __str__(self) -> str:
        return f"{self.field}: {self.reason}"


@dataclass
class ConfigValidationResult:
    """
    Result of rules validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block use but should be reviewed.
    """

    errors: list[ConfigIssue] = field(default_factory=list)
    warnings: list[ConfigIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, field_name: str, reason: str) -> None:
        self.errors.append(ConfigIssue(field_name, reason))

    def add_warning(self, field_name: str, reason: str) -> None:
        self.warnings.append(ConfigIssue(field_name, reason))

    def raise_if_invalid(self) -> None:
        if self.errors:
            first = self.errors[0]
            raise ConfigInvalidError(first.field, first.reason)


def validate_config(config: TaxRulesConfig) -> ConfigValidationResult:
    """
    Validate a parsed rules config.

    Postconditions:
        - Returns a ``ConfigValidationResult`` with errors and warnings.
        - A config with errors MUST NOT be used for calculation.
    """
    result = ConfigValidationResult()

    _validate_identity(config, result)
    _validate_trade_in_policy(config, result)
    _validate_rebates(config, result)
    _validate_fee_codes(config, result)
    _validate_schemes(config, result)
    _validate_reciprocity(config, result)

    return result


def validate_rules(raw: Mapping[str, Any] | TaxRulesConfig) -> TaxRulesConfig:
    """
    Parse (when given a raw payload) and validate one jurisdiction's rules.

    Returns:
        The validated, immutable ``TaxRulesConfig``.

    Raises:
        ConfigInvalidError: naming the first offending field.
    """
    config = raw if isinstance(raw, TaxRulesConfig) else parse_rules(raw)
    result = validate_config(config)
    for warning in result.warnings:
        logger.warning("rules_validation_warning", extra={
            "jurisdiction": config.jurisdiction,
            "field": warning.field,
            "reason": warning.reason,
        })
    if not result.is_valid:
        logger.error("rules_validation_failed", extra={
            "jurisdiction": config.jurisdiction,
            "errors": [str(e) for e in result.errors],
        })
    result.raise_if_invalid()
    return config


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def _validate_identity(config: TaxRulesConfig, result: ConfigValidationResult) -> None:
    if not config.jurisdiction.strip():
        result.add_error("jurisdiction", "must not be empty")
    if config.version < 1:
        result.add_error("version", "must be >= 1")


def _validate_trade_in_policy(config: TaxRulesConfig, result: ConfigValidationResult) -> None:
    policy = config.trade_in_policy
    match policy.type:
        case TradeInPolicyType.PERCENT:
            if policy.percent is None:
                result.add_error("trade_in_policy.percent", "required for PERCENT policy")
            elif not Decimal("0") <= policy.percent <= Decimal("1"):
                result.add_error("trade_in_policy.percent", "must be between 0 and 1")
        case TradeInPolicyType.CAPPED:
            if policy.cap_amount is None:
                result.add_error("trade_in_policy.cap_amount", "required for CAPPED policy")
            elif policy.cap_amount < Decimal("0"):
                result.add_error("trade_in_policy.cap_amount", "cannot be negative")
        case TradeInPolicyType.FULL_CREDIT | TradeInPolicyType.NONE:
            if policy.cap_amount is not None or policy.percent is not None:
                result.add_warning(
                    "trade_in_policy",
                    f"cap_amount/percent ignored for {policy.type.value} policy",
                )


def _validate_rebates(config: TaxRulesConfig, result: ConfigValidationResult) -> None:
    seen: set[str] = set()
    for i, rule in enumerate(config.rebates):
        if rule.applies_to.value in seen:
            result.add_error(
                f"rebates[{i}].applies_to",
                f"duplicate rebate rule for {rule.applies_to.value}",
            )
        seen.add(rule.applies_to.value)


def _duplicate_codes(codes: Iterable[str]) -> list[tuple[int, str]]:
    seen: set[str] = set()
    duplicates = []
    for i, code in enumerate(codes):
        if code in seen:
            duplicates.append((i, code))
        seen.add(code)
    return duplicates


def _validate_fee_codes(config: TaxRulesConfig, result: ConfigValidationResult) -> None:
    lease_rules = config.lease_rules
    for path, rules in (
        ("fee_tax_rules", config.fee_tax_rules),
        ("lease_rules.fee_tax_rules", lease_rules.fee_tax_rules),
        ("lease_rules.title_fee_rules", lease_rules.title_fee_rules),
    ):
        for i, code in _duplicate_codes(r.code for r in rules):
            result.add_error(f"{path}[{i}].code", f"duplicate fee code {code}")

    for i, rule in enumerate(lease_rules.title_fee_rules):
        if rule.rolls_into_cap_cost and rule.rolls_into_monthly:
            result.add_warning(
                f"lease_rules.title_fee_rules[{i}]",
                "rolls_into_cap_cost and rolls_into_monthly both set; cap cost wins",
            )


def _validate_scheme_id(
    scheme_id: str,
    field_name: str,
    config: TaxRulesConfig,
    result: ConfigValidationResult,
) -> None:
    if not SchemeRegistry.has_scheme(scheme_id):
        supported = ", ".join(sorted(STANDARD_SCHEMES) + SchemeRegistry.list_scheme_ids())
        result.add_error(
            field_name, f"unknown scheme {scheme_id!r}; supported: {supported}"
        )
        return
    scheme = SchemeRegistry.get(scheme_id, field=field_name)
    for problem_field, reason in scheme.validate_extras(config.extras.get(scheme.extras_key)):
        result.add_error(problem_field, reason)


def _validate_schemes(config: TaxRulesConfig, result: ConfigValidationResult) -> None:
    if not config.is_standard_scheme:
        _validate_scheme_id(config.vehicle_tax_scheme, "vehicle_tax_scheme", config, result)

    lease_scheme = config.lease_rules.special_scheme
    if lease_scheme and lease_scheme != config.vehicle_tax_scheme:
        _validate_scheme_id(lease_scheme, "lease_rules.special_scheme", config, result)


def _validate_reciprocity(config: TaxRulesConfig, result: ConfigValidationResult) -> None:
    policy = config.reciprocity
    if not policy.enabled and policy.overrides:
        result.add_warning("reciprocity.overrides", "overrides present but reciprocity is disabled")

    overlap = policy.exempt_jurisdictions & policy.non_reciprocal_jurisdictions
    if overlap:
        result.add_warning(
            "reciprocity",
            f"listed as both exempt and non-reciprocal: {', '.join(sorted(overlap))}",
        )

    seen: set[tuple[Any, ...]] = set()
    for i, override in enumerate(policy.overrides):
        path = f"reciprocity.overrides[{i}]"
        key = (
            override.origin_jurisdiction,
            tuple(sorted(c.value for c in override.vehicle_classes)),
            override.min_gvw_lbs,
            override.max_gvw_lbs,
        )
        if key in seen:
            result.add_error(
                f"{path}.origin_jurisdiction",
                f"duplicate override for {override.origin_jurisdiction}",
            )
        seen.add(key)

        if override.max_age_days is not None and override.max_age_days < 0:
            result.add_error(f"{path}.max_age_days", "cannot be negative")
        if (
            override.min_gvw_lbs is not None
            and override.max_gvw_lbs is not None
            and override.min_gvw_lbs > override.max_gvw_lbs
        ):
            result.add_error(f"{path}.min_gvw_lbs", "must not exceed max_gvw_lbs")
