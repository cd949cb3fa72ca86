"""
autotax_services.codec -- canonical deal payload to ``TaxCalculationInput``.

Responsibility:
    Parse a deal snapshot received as a dict (decoded JSON, canonical
    snake_case keys matching ``TaxCalculationInput``) into the immutable
    domain object, coercing amounts and rates to Decimal.

Architecture position:
    Services -- boundary glue; no calculation logic.

Failure modes:
    - InvalidInputError naming the dotted field path for a missing required
      field, a float amount, a non-numeric value, an unknown enum member or
      a malformed date.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any

from autotax_kernel.domain.deal import (
    DealType,
    FeeItem,
    LeaseTerms,
    PriorTaxPaid,
    TaxCalculationInput,
    TaxRateComponent,
    VehicleInfo,
)
from autotax_kernel.domain.money import ZERO, to_money, to_rate
from autotax_kernel.domain.rules import VehicleClass
from autotax_kernel.exceptions import InvalidInputError

_MONEY_DEFAULTS = (
    "accessories_amount",
    "trade_in_value",
    "rebate_manufacturer",
    "rebate_dealer",
    "doc_fee",
    "service_contracts",
    "gap",
    "negative_equity",
    "tax_already_collected",
)


def _require(data: Mapping[str, Any], key: str, path: str = "") -> Any:
    value = data.get(key)
    if value is None:
        raise InvalidInputError(f"{path}{key}", "is required")
    return value


def _money(data: Mapping[str, Any], key: str, path: str = "") -> Decimal:
    value = data.get(key)
    return ZERO if value is None else to_money(value, f"{path}{key}")


def _optional_money(data: Mapping[str, Any], key: str, path: str = "") -> Decimal | None:
    value = data.get(key)
    return None if value is None else to_money(value, f"{path}{key}")


def _int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(field, "must be an integer", value)
    return value


def _optional_int(data: Mapping[str, Any], key: str, path: str) -> int | None:
    value = data.get(key)
    return None if value is None else _int(value, f"{path}{key}")


def _bool(data: Mapping[str, Any], key: str, path: str, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise InvalidInputError(f"{path}{key}", "must be true or false", value)
    return value


def parse_date(value: Any, field: str) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise InvalidInputError(field, "must be an ISO date (YYYY-MM-DD)", value) from None
    raise InvalidInputError(field, "must be an ISO date (YYYY-MM-DD)", value)


def _mapping(value: Any, field: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise InvalidInputError(field, "must be an object", value)
    return value


def _items(data: Mapping[str, Any], key: str) -> list[tuple[str, Mapping[str, Any]]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidInputError(key, "must be a list", value)
    return [
        (f"{key}[{i}].", _mapping(item, f"{key}[{i}]")) for i, item in enumerate(value)
    ]


def parse_rates(data: Mapping[str, Any]) -> tuple[TaxRateComponent, ...]:
    return tuple(
        TaxRateComponent(
            label=str(_require(item, "label", path)),
            rate=to_rate(_require(item, "rate", path), f"{path}rate"),
        )
        for path, item in _items(data, "rates")
    )


def parse_fees(data: Mapping[str, Any]) -> tuple[FeeItem, ...]:
    return tuple(
        FeeItem(
            code=str(_require(item, "code", path)),
            amount=to_money(_require(item, "amount", path), f"{path}amount"),
        )
        for path, item in _items(data, "other_fees")
    )


def parse_prior_tax(value: Any) -> PriorTaxPaid | None:
    if value is None:
        return None
    data = _mapping(value, "prior_tax")
    path = "prior_tax."
    effective_rate = data.get("effective_rate")
    paid_date = data.get("paid_date")
    return PriorTaxPaid(
        jurisdiction=str(_require(data, "jurisdiction", path)),
        amount=to_money(_require(data, "amount", path), f"{path}amount"),
        effective_rate=(
            to_rate(effective_rate, f"{path}effective_rate")
            if effective_rate is not None
            else None
        ),
        paid_date=parse_date(paid_date, f"{path}paid_date") if paid_date is not None else None,
        proof_provided=_bool(data, "proof_provided", path, False),
        same_owner=_bool(data, "same_owner", path, True),
    )


def parse_vehicle(value: Any) -> VehicleInfo:
    if value is None:
        return VehicleInfo()
    data = _mapping(value, "vehicle")
    path = "vehicle."
    vehicle_class = data.get("vehicle_class")
    if vehicle_class is not None:
        try:
            vehicle_class = VehicleClass(vehicle_class)
        except ValueError:
            raise InvalidInputError(
                f"{path}vehicle_class", "unknown vehicle class", vehicle_class
            ) from None
    vehicle_type = data.get("vehicle_type")
    return VehicleInfo(
        vehicle_class=vehicle_class,
        vehicle_type=str(vehicle_type) if vehicle_type is not None else None,
        gvw_lbs=_optional_int(data, "gvw_lbs", path),
        model_year=_optional_int(data, "model_year", path),
        assessed_value=_optional_money(data, "assessed_value", path),
    )


def parse_lease(value: Any) -> LeaseTerms | None:
    if value is None:
        return None
    data = _mapping(value, "lease")
    path = "lease."
    return LeaseTerms(
        gross_cap_cost=to_money(_require(data, "gross_cap_cost", path), f"{path}gross_cap_cost"),
        base_payment=to_money(_require(data, "base_payment", path), f"{path}base_payment"),
        payment_count=_int(_require(data, "payment_count", path), f"{path}payment_count"),
        cap_reduction_cash=_money(data, "cap_reduction_cash", path),
        cap_reduction_trade_in=_money(data, "cap_reduction_trade_in", path),
        cap_reduction_rebate_manufacturer=_money(data, "cap_reduction_rebate_manufacturer", path),
        cap_reduction_rebate_dealer=_money(data, "cap_reduction_rebate_dealer", path),
    )


def parse_deal(data: Any) -> TaxCalculationInput:
    """Parse a canonical deal payload; raises InvalidInputError naming the field."""
    data = _mapping(data, "<input>")

    deal_type_raw = _require(data, "deal_type")
    try:
        deal_type = DealType(deal_type_raw)
    except ValueError:
        raise InvalidInputError(
            "deal_type", "must be one of CASH, FINANCE, LEASE", deal_type_raw
        ) from None

    deal_id = data.get("deal_id")
    home = data.get("home_jurisdiction")
    registration = data.get("registration_jurisdiction")
    return TaxCalculationInput(
        jurisdiction=str(_require(data, "jurisdiction")),
        as_of_date=parse_date(_require(data, "as_of_date"), "as_of_date"),
        deal_type=deal_type,
        vehicle_price=to_money(_require(data, "vehicle_price"), "vehicle_price"),
        rates=parse_rates(data),
        other_fees=parse_fees(data),
        home_jurisdiction=str(home) if home is not None else None,
        registration_jurisdiction=str(registration) if registration is not None else None,
        prior_tax=parse_prior_tax(data.get("prior_tax")),
        vehicle=parse_vehicle(data.get("vehicle")),
        lease=parse_lease(data.get("lease")),
        deal_id=str(deal_id) if deal_id is not None else None,
        **{name: _money(data, name) for name in _MONEY_DEFAULTS},
    )
