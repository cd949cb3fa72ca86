"""
Rules Loader (``autotax_config.loader``).

Responsibility
--------------
Loads jurisdiction rule files (YAML) and parses raw payloads (YAML or
JSON, canonical snake_case keys) into the frozen ``TaxRulesConfig`` model.
Parsing is structural only; cross-field consistency is the validator's job.

Architecture position
---------------------
**Config layer** -- sits above ``autotax_kernel`` and beside
``autotax_engines``.  The kernel and engines never import from here.

Invariants enforced
-------------------
* Every parse error raises ``ConfigInvalidError`` naming the dotted path of
  the offending field; required fields never get silent defaults.
* Every parsed object is a frozen dataclass; lists become tuples, sets
  become frozensets, ``extras`` becomes a read-only mapping.
* Numbers are parsed as ``Decimal`` via ``str()`` so a YAML float such as
  ``0.07`` becomes exactly ``Decimal("0.07")``.
* ``compute_checksum`` is deterministic for identical payloads.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required key, unknown enum member, wrong type
  -> ``ConfigInvalidError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

import yaml

from autotax_kernel.domain.rules import (
    STATE_PLUS_LOCAL,
    DocFeeTaxability,
    FeeTaxRule,
    LeaseMethod,
    LeaseRebateBehavior,
    LeaseTaxRules,
    LeaseTradeInCredit,
    RebateRule,
    RebateSource,
    ReciprocityBasis,
    ReciprocityMode,
    ReciprocityOverride,
    ReciprocityRules,
    ReciprocityScope,
    TaxRulesConfig,
    TitleFeeRule,
    TradeInPolicy,
    TradeInPolicyType,
    VehicleClass,
)
from autotax_kernel.exceptions import ConfigInvalidError
from autotax_kernel.utils.hashing import hash_payload

E = TypeVar("E", bound=Enum)

_MISSING = object()


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _section(data: Mapping[str, Any], key: str, path: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigInvalidError(f"{path}{key}", "must be a mapping", value)
    return value


def _require(data: Mapping[str, Any], key: str, path: str) -> Any:
    value = data.get(key, _MISSING)
    if value is _MISSING or value is None:
        raise ConfigInvalidError(f"{path}{key}", "is required")
    return value


def _bool(data: Mapping[str, Any], key: str, path: str, default: bool | None) -> bool | None:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigInvalidError(f"{path}{key}", "must be true or false", value)
    return value


def _required_bool(data: Mapping[str, Any], key: str, path: str) -> bool:
    value = _require(data, key, path)
    if not isinstance(value, bool):
        raise ConfigInvalidError(f"{path}{key}", "must be true or false", value)
    return value


def _int(data: Mapping[str, Any], key: str, path: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigInvalidError(f"{path}{key}", "must be an integer", value)
    return value


def parse_decimal(value: Any, field: str) -> Decimal:
    """Parse a YAML/JSON number or numeric string into Decimal."""
    if isinstance(value, bool) or value is None:
        raise ConfigInvalidError(field, "must be a number", value)
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ConfigInvalidError(field, "must be a number", value) from None


def parse_enum(enum_cls: type[E], value: Any, field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigInvalidError(field, f"must be one of {allowed}", value) from None


def _enum(
    enum_cls: type[E],
    data: Mapping[str, Any],
    key: str,
    path: str,
    default: E | None,
) -> E | None:
    value = data.get(key)
    if value is None:
        return default
    return parse_enum(enum_cls, value, f"{path}{key}")


def _list(data: Mapping[str, Any], key: str, path: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigInvalidError(f"{path}{key}", "must be a list", value)
    return value


def _entries(
    data: Mapping[str, Any], key: str, path: str
) -> list[tuple[int, Mapping[str, Any]]]:
    entries = []
    for i, item in enumerate(_list(data, key, path)):
        if not isinstance(item, Mapping):
            raise ConfigInvalidError(f"{path}{key}[{i}]", "must be a mapping", item)
        entries.append((i, item))
    return entries


def _scheme_id(value: Any) -> str | None:
    # "NONE" in a lease section means no lease-specific override
    if value is None or str(value).upper() == "NONE":
        return None
    return str(value)


def _codes(data: Mapping[str, Any], key: str, path: str) -> frozenset[str]:
    return frozenset(str(code) for code in _list(data, key, path))


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def parse_trade_in_policy(data: Mapping[str, Any]) -> TradeInPolicy:
    path = "trade_in_policy."
    policy_type = parse_enum(TradeInPolicyType, _require(data, "type", path), f"{path}type")
    cap_amount = data.get("cap_amount")
    percent = data.get("percent")
    return TradeInPolicy(
        type=policy_type,
        cap_amount=parse_decimal(cap_amount, f"{path}cap_amount") if cap_amount is not None else None,
        percent=parse_decimal(percent, f"{path}percent") if percent is not None else None,
    )


def parse_rebate_rule(data: Mapping[str, Any], path: str) -> RebateRule:
    return RebateRule(
        applies_to=parse_enum(
            RebateSource, _require(data, "applies_to", path), f"{path}applies_to"
        ),
        taxable=_required_bool(data, "taxable", path),
        notes=data.get("notes"),
    )


def parse_fee_rule(data: Mapping[str, Any], path: str) -> FeeTaxRule:
    return FeeTaxRule(
        code=str(_require(data, "code", path)),
        taxable=_bool(data, "taxable", path, False),
        notes=data.get("notes"),
    )


def parse_title_fee_rule(data: Mapping[str, Any], path: str) -> TitleFeeRule:
    return TitleFeeRule(
        code=str(_require(data, "code", path)),
        taxable=_bool(data, "taxable", path, False),
        rolls_into_cap_cost=_bool(data, "rolls_into_cap_cost", path, False),
        rolls_into_upfront=_bool(data, "rolls_into_upfront", path, True),
        rolls_into_monthly=_bool(data, "rolls_into_monthly", path, False),
    )


def parse_lease_rules(data: Mapping[str, Any]) -> LeaseTaxRules:
    path = "lease_rules."
    method_raw = _require(data, "method", path)
    return LeaseTaxRules(
        method=parse_enum(LeaseMethod, method_raw, f"{path}method"),
        tax_cap_reduction=_bool(data, "tax_cap_reduction", path, False),
        rebate_behavior=_enum(
            LeaseRebateBehavior, data, "rebate_behavior", path,
            LeaseRebateBehavior.FOLLOW_RETAIL_RULE,
        ),
        doc_fee_taxability=_enum(
            DocFeeTaxability, data, "doc_fee_taxability", path,
            DocFeeTaxability.FOLLOW_RETAIL_RULE,
        ),
        trade_in_credit=_enum(
            LeaseTradeInCredit, data, "trade_in_credit", path,
            LeaseTradeInCredit.FOLLOW_RETAIL_RULE,
        ),
        negative_equity_taxable=_bool(data, "negative_equity_taxable", path, False),
        fee_tax_rules=tuple(
            parse_fee_rule(item, f"{path}fee_tax_rules[{i}].")
            for i, item in _entries(data, "fee_tax_rules", path)
        ),
        title_fee_rules=tuple(
            parse_title_fee_rule(item, f"{path}title_fee_rules[{i}].")
            for i, item in _entries(data, "title_fee_rules", path)
        ),
        tax_fees_upfront=_bool(data, "tax_fees_upfront", path, True),
        special_scheme=_scheme_id(data.get("special_scheme")),
        notes=data.get("notes"),
    )


def parse_reciprocity_override(data: Mapping[str, Any], path: str) -> ReciprocityOverride:
    return ReciprocityOverride(
        origin_jurisdiction=str(_require(data, "origin_jurisdiction", path)),
        mode=_enum(ReciprocityMode, data, "mode", path, None),
        scope=_enum(ReciprocityScope, data, "scope", path, None),
        disallow_credit=_bool(data, "disallow_credit", path, False),
        max_age_days=_int(data, "max_age_days", path),
        require_same_owner=_bool(data, "require_same_owner", path, False),
        require_proof_of_tax_paid=_bool(data, "require_proof_of_tax_paid", path, None),
        cap_at_this_states_tax=_bool(data, "cap_at_this_states_tax", path, None),
        vehicle_classes=frozenset(
            parse_enum(VehicleClass, value, f"{path}vehicle_classes[{i}]")
            for i, value in enumerate(_list(data, "vehicle_classes", path))
        ),
        min_gvw_lbs=_int(data, "min_gvw_lbs", path),
        max_gvw_lbs=_int(data, "max_gvw_lbs", path),
        notes=data.get("notes"),
    )


def parse_reciprocity(data: Mapping[str, Any]) -> ReciprocityRules:
    path = "reciprocity."
    return ReciprocityRules(
        enabled=_bool(data, "enabled", path, False),
        scope=_enum(ReciprocityScope, data, "scope", path, ReciprocityScope.BOTH),
        home_state_behavior=_enum(
            ReciprocityMode, data, "home_state_behavior", path, ReciprocityMode.NONE
        ),
        require_proof_of_tax_paid=_bool(data, "require_proof_of_tax_paid", path, False),
        basis=_enum(ReciprocityBasis, data, "basis", path, ReciprocityBasis.TAX_PAID),
        cap_at_this_states_tax=_bool(data, "cap_at_this_states_tax", path, True),
        has_lease_exception=_bool(data, "has_lease_exception", path, False),
        overrides=tuple(
            parse_reciprocity_override(item, f"{path}overrides[{i}].")
            for i, item in _entries(data, "overrides", path)
        ),
        exempt_jurisdictions=_codes(data, "exempt_jurisdictions", path),
        non_reciprocal_jurisdictions=_codes(data, "non_reciprocal_jurisdictions", path),
        notes=data.get("notes"),
    )


def parse_rules(data: Mapping[str, Any]) -> TaxRulesConfig:
    """
    Parse a raw rules payload into ``TaxRulesConfig``.

    Preconditions:
        - ``data`` uses the canonical snake_case field names.
    Postconditions:
        - Returns a frozen config whose ``checksum`` is the SHA-256 of the
          canonical payload.
    Raises:
        ConfigInvalidError: naming the first structurally invalid field.
    """
    if not isinstance(data, Mapping):
        raise ConfigInvalidError("<root>", "rules payload must be a mapping")

    version = _require(data, "version", "")
    if isinstance(version, bool) or not isinstance(version, int):
        raise ConfigInvalidError("version", "must be an integer", version)

    return TaxRulesConfig(
        jurisdiction=str(_require(data, "jurisdiction", "")),
        version=version,
        trade_in_policy=parse_trade_in_policy(_section(data, "trade_in_policy", "")),
        lease_rules=parse_lease_rules(_section(data, "lease_rules", "")),
        rebates=tuple(
            parse_rebate_rule(item, f"rebates[{i}].")
            for i, item in _entries(data, "rebates", "")
        ),
        doc_fee_taxable=_bool(data, "doc_fee_taxable", "", False),
        fee_tax_rules=tuple(
            parse_fee_rule(item, f"fee_tax_rules[{i}].")
            for i, item in _entries(data, "fee_tax_rules", "")
        ),
        tax_on_accessories=_bool(data, "tax_on_accessories", "", True),
        tax_on_negative_equity=_bool(data, "tax_on_negative_equity", "", False),
        tax_on_service_contracts=_bool(data, "tax_on_service_contracts", "", False),
        tax_on_gap=_bool(data, "tax_on_gap", "", False),
        vehicle_tax_scheme=str(data.get("vehicle_tax_scheme") or STATE_PLUS_LOCAL),
        local_sales_tax_applies=_bool(data, "local_sales_tax_applies", "", True),
        reciprocity=parse_reciprocity(_section(data, "reciprocity", "")),
        extras=_section(data, "extras", ""),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: Mapping[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of a raw rules payload."""
    return hash_payload(data)
