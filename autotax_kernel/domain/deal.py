"""
Deal -- immutable snapshot of one vehicle deal for one tax calculation.

The deal-management system assembles this from live deal state; the engine
only reads it. All monetary fields are Decimal dollars, all rates are
Decimal fractions (0.0725 == 7.25%).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from autotax_kernel.domain.money import ZERO
from autotax_kernel.domain.rules import VehicleClass


class DealType(str, Enum):
    CASH = "CASH"
    FINANCE = "FINANCE"
    LEASE = "LEASE"

    @property
    def is_retail(self) -> bool:
        return self is not DealType.LEASE


# Vehicle type -> class, used when the caller supplies no explicit class.
_VEHICLE_TYPE_CLASSES: dict[str, VehicleClass] = {
    "CAR": VehicleClass.PASSENGER,
    "SUV": VehicleClass.PASSENGER,
    "VAN": VehicleClass.PASSENGER,
    "PICKUP": VehicleClass.LIGHT_TRUCK,
    "TRUCK": VehicleClass.LIGHT_TRUCK,
    "MOTORCYCLE": VehicleClass.MOTORCYCLE,
    "RV": VehicleClass.RV,
}

LIGHT_VEHICLE_MAX_GVW_LBS = 10_000
LIGHT_TRUCK_MAX_GVW_LBS = 26_000


@dataclass(frozen=True)
class TaxRateComponent:
    """One jurisdictional layer (state, county, city, district) of the rate."""

    label: str
    rate: Decimal


@dataclass(frozen=True)
class FeeItem:
    code: str
    amount: Decimal


@dataclass(frozen=True)
class PriorTaxPaid:
    """Tax already paid to another jurisdiction on the same vehicle."""

    jurisdiction: str
    amount: Decimal
    effective_rate: Decimal | None = None
    paid_date: date | None = None
    proof_provided: bool = False
    same_owner: bool = True


@dataclass(frozen=True)
class VehicleInfo:
    vehicle_class: VehicleClass | None = None
    vehicle_type: str | None = None
    gvw_lbs: int | None = None
    model_year: int | None = None
    assessed_value: Decimal | None = None

    def resolved_class(self) -> VehicleClass:
        """Explicit class, else mapped from type, else derived from weight."""
        if self.vehicle_class is not None:
            return self.vehicle_class
        if self.vehicle_type:
            mapped = _VEHICLE_TYPE_CLASSES.get(self.vehicle_type.upper())
            if mapped is not None:
                return mapped
        if self.gvw_lbs is not None:
            if self.gvw_lbs <= LIGHT_VEHICLE_MAX_GVW_LBS:
                return VehicleClass.PASSENGER
            if self.gvw_lbs <= LIGHT_TRUCK_MAX_GVW_LBS:
                return VehicleClass.LIGHT_TRUCK
            return VehicleClass.HEAVY_TRUCK
        return VehicleClass.PASSENGER


@dataclass(frozen=True)
class LeaseTerms:
    gross_cap_cost: Decimal
    base_payment: Decimal
    payment_count: int
    cap_reduction_cash: Decimal = ZERO
    cap_reduction_trade_in: Decimal = ZERO
    cap_reduction_rebate_manufacturer: Decimal = ZERO
    cap_reduction_rebate_dealer: Decimal = ZERO


@dataclass(frozen=True)
class TaxCalculationInput:
    """
    One deal snapshot.

    Contract:
        Exists only for the duration of one calculation call. ``lease`` is
        required for LEASE deals and ignored (with a trail note) otherwise.
    """

    jurisdiction: str
    as_of_date: date
    deal_type: DealType
    vehicle_price: Decimal
    rates: tuple[TaxRateComponent, ...] = ()
    accessories_amount: Decimal = ZERO
    trade_in_value: Decimal = ZERO
    rebate_manufacturer: Decimal = ZERO
    rebate_dealer: Decimal = ZERO
    doc_fee: Decimal = ZERO
    other_fees: tuple[FeeItem, ...] = ()
    service_contracts: Decimal = ZERO
    gap: Decimal = ZERO
    negative_equity: Decimal = ZERO
    tax_already_collected: Decimal = ZERO
    home_jurisdiction: str | None = None
    registration_jurisdiction: str | None = None
    prior_tax: PriorTaxPaid | None = None
    vehicle: VehicleInfo = VehicleInfo()
    lease: LeaseTerms | None = None
    deal_id: str | None = None

    # Monetary fields that must be >= 0, in reporting order.
    MONEY_FIELDS = (
        "vehicle_price",
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

    @property
    def effective_registration_jurisdiction(self) -> str:
        return self.registration_jurisdiction or self.jurisdiction
