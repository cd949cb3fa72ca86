"""
Rules -- immutable jurisdiction tax policy model.

Responsibility:
    Typed, frozen representation of one jurisdiction's vehicle tax rules:
    trade-in policy, rebate and fee taxability, product flags, the vehicle
    tax scheme id, lease rules and reciprocity rules.

Architecture position:
    Kernel > Domain -- pure data, zero I/O. Built by ``autotax_config`` from
    YAML/JSON payloads and consumed read-only by ``autotax_engines``.

Invariants enforced:
    - Configs are immutable: frozen dataclasses, tuples for lists,
      frozensets for jurisdiction sets, read-only mappings for ``extras``.
    - Closed variants: every policy choice is an Enum member, so an
      unhandled case is a visible gap in a ``match`` rather than a silent
      string fall-through.

Audit relevance:
    ``version`` is carried into every result so a figure can be traced to
    the exact rules that produced it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any

from autotax_kernel.domain.money import ZERO, round_money


# ---------------------------------------------------------------------------
# Closed variants
# ---------------------------------------------------------------------------


class TradeInPolicyType(str, Enum):
    """How much trade-in allowance reduces the taxable base."""

    FULL_CREDIT = "FULL_CREDIT"
    CAPPED = "CAPPED"
    PERCENT = "PERCENT"
    NONE = "NONE"


class RebateSource(str, Enum):
    MANUFACTURER = "MANUFACTURER"
    DEALER = "DEALER"
    ANY = "ANY"


class LeaseMethod(str, Enum):
    """When lease tax is levied."""

    CAP_COST = "CAP_COST"  # whole adjusted cap cost taxed upfront
    CAP_REDUCTION = "CAP_REDUCTION"  # only upfront cap reductions taxed
    PAYMENT = "PAYMENT"  # each periodic payment taxed


class LeaseRebateBehavior(str, Enum):
    FOLLOW_RETAIL_RULE = "FOLLOW_RETAIL_RULE"
    ALWAYS_TAXABLE = "ALWAYS_TAXABLE"
    ALWAYS_NON_TAXABLE = "ALWAYS_NON_TAXABLE"


class DocFeeTaxability(str, Enum):
    ALWAYS = "ALWAYS"
    FOLLOW_RETAIL_RULE = "FOLLOW_RETAIL_RULE"
    NEVER = "NEVER"
    ONLY_UPFRONT = "ONLY_UPFRONT"


class LeaseTradeInCredit(str, Enum):
    NONE = "NONE"
    FULL = "FULL"
    CAP_COST_ONLY = "CAP_COST_ONLY"
    APPLIED_TO_PAYMENT = "APPLIED_TO_PAYMENT"
    FOLLOW_RETAIL_RULE = "FOLLOW_RETAIL_RULE"


class ReciprocityScope(str, Enum):
    RETAIL_ONLY = "RETAIL_ONLY"  # cash and finance deals
    LEASE_ONLY = "LEASE_ONLY"
    BOTH = "BOTH"


class ReciprocityMode(str, Enum):
    NONE = "NONE"
    CREDIT_UP_TO_STATE_RATE = "CREDIT_UP_TO_STATE_RATE"
    CREDIT_FULL = "CREDIT_FULL"
    HOME_STATE_ONLY = "HOME_STATE_ONLY"


class ReciprocityBasis(str, Enum):
    TAX_PAID = "TAX_PAID"
    EFFECTIVE_RATE = "EFFECTIVE_RATE"


class VehicleClass(str, Enum):
    PASSENGER = "PASSENGER"
    LIGHT_TRUCK = "LIGHT_TRUCK"
    HEAVY_TRUCK = "HEAVY_TRUCK"
    MOTORCYCLE = "MOTORCYCLE"
    RV = "RV"
    OTHER = "OTHER"


# Standard (non-special) vehicle tax scheme ids.
STATE_ONLY = "STATE_ONLY"
STATE_PLUS_LOCAL = "STATE_PLUS_LOCAL"
STANDARD_SCHEMES: frozenset[str] = frozenset({STATE_ONLY, STATE_PLUS_LOCAL})

# Wildcard origin for reciprocity overrides.
ANY_ORIGIN = "ALL"


# ---------------------------------------------------------------------------
# Policy value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TradeInPolicy:
    """
    Tagged trade-in policy.

    Only the field belonging to ``type`` is meaningful: ``cap_amount`` for
    CAPPED, ``percent`` (a 0..1 fraction) for PERCENT.
    """

    type: TradeInPolicyType
    cap_amount: Decimal | None = None
    percent: Decimal | None = None

    @classmethod
    def full_credit(cls) -> TradeInPolicy:
        return cls(TradeInPolicyType.FULL_CREDIT)

    @classmethod
    def capped(cls, cap_amount: Decimal) -> TradeInPolicy:
        return cls(TradeInPolicyType.CAPPED, cap_amount=cap_amount)

    @classmethod
    def percent_of(cls, percent: Decimal) -> TradeInPolicy:
        return cls(TradeInPolicyType.PERCENT, percent=percent)

    @classmethod
    def no_credit(cls) -> TradeInPolicy:
        return cls(TradeInPolicyType.NONE)

    def credit_for(self, trade_in_value: Decimal) -> Decimal:
        """Trade-in allowance that may reduce the base, rounded to cents."""
        match self.type:
            case TradeInPolicyType.FULL_CREDIT:
                return round_money(trade_in_value)
            case TradeInPolicyType.CAPPED:
                return round_money(min(trade_in_value, self.cap_amount or ZERO))
            case TradeInPolicyType.PERCENT:
                return round_money(trade_in_value * (self.percent or ZERO))
            case TradeInPolicyType.NONE:
                return ZERO
        raise ValueError(f"Unhandled trade-in policy: {self.type}")


@dataclass(frozen=True)
class RebateRule:
    applies_to: RebateSource
    taxable: bool
    notes: str | None = None


@dataclass(frozen=True)
class FeeTaxRule:
    code: str
    taxable: bool
    notes: str | None = None


@dataclass(frozen=True)
class TitleFeeRule:
    """Lease-specific placement of a fee's tax liability."""

    code: str
    taxable: bool
    rolls_into_cap_cost: bool = False
    rolls_into_upfront: bool = True
    rolls_into_monthly: bool = False


@dataclass(frozen=True)
class LeaseTaxRules:
    method: LeaseMethod
    tax_cap_reduction: bool = False
    rebate_behavior: LeaseRebateBehavior = LeaseRebateBehavior.FOLLOW_RETAIL_RULE
    doc_fee_taxability: DocFeeTaxability = DocFeeTaxability.FOLLOW_RETAIL_RULE
    trade_in_credit: LeaseTradeInCredit = LeaseTradeInCredit.FOLLOW_RETAIL_RULE
    negative_equity_taxable: bool = False
    fee_tax_rules: tuple[FeeTaxRule, ...] = ()
    title_fee_rules: tuple[TitleFeeRule, ...] = ()
    tax_fees_upfront: bool = True
    special_scheme: str | None = None
    notes: str | None = None

    def fee_rule(self, code: str) -> FeeTaxRule | None:
        return next((r for r in self.fee_tax_rules if r.code == code), None)

    def title_fee_rule(self, code: str) -> TitleFeeRule | None:
        return next((r for r in self.title_fee_rules if r.code == code), None)


@dataclass(frozen=True)
class ReciprocityOverride:
    """Per-origin-jurisdiction adjustment to the base reciprocity policy."""

    origin_jurisdiction: str
    mode: ReciprocityMode | None = None
    scope: ReciprocityScope | None = None
    disallow_credit: bool = False
    max_age_days: int | None = None
    require_same_owner: bool = False
    require_proof_of_tax_paid: bool | None = None
    cap_at_this_states_tax: bool | None = None
    vehicle_classes: frozenset[VehicleClass] = frozenset()
    min_gvw_lbs: int | None = None
    max_gvw_lbs: int | None = None
    notes: str | None = None

    def applies_to_vehicle(self, vehicle_class: VehicleClass, gvw_lbs: int | None) -> bool:
        if self.vehicle_classes and vehicle_class not in self.vehicle_classes:
            return False
        if self.min_gvw_lbs is not None or self.max_gvw_lbs is not None:
            if gvw_lbs is None:
                return False
            if self.min_gvw_lbs is not None and gvw_lbs < self.min_gvw_lbs:
                return False
            if self.max_gvw_lbs is not None and gvw_lbs > self.max_gvw_lbs:
                return False
        return True


@dataclass(frozen=True)
class ReciprocityRules:
    enabled: bool = False
    scope: ReciprocityScope = ReciprocityScope.BOTH
    home_state_behavior: ReciprocityMode = ReciprocityMode.NONE
    require_proof_of_tax_paid: bool = False
    basis: ReciprocityBasis = ReciprocityBasis.TAX_PAID
    cap_at_this_states_tax: bool = True
    has_lease_exception: bool = False
    overrides: tuple[ReciprocityOverride, ...] = ()
    exempt_jurisdictions: frozenset[str] = frozenset()
    non_reciprocal_jurisdictions: frozenset[str] = frozenset()
    notes: str | None = None

    def find_override(
        self,
        origin: str,
        vehicle_class: VehicleClass,
        gvw_lbs: int | None,
    ) -> ReciprocityOverride | None:
        """Exact-origin overrides win over ``ALL`` wildcards; first match in order."""
        for wanted in (origin, ANY_ORIGIN):
            for override in self.overrides:
                if override.origin_jurisdiction == wanted and override.applies_to_vehicle(
                    vehicle_class, gvw_lbs
                ):
                    return override
        return None


def freeze(value: Any) -> Any:
    """Recursively convert dicts/lists into read-only mappings/tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


@dataclass(frozen=True)
class TaxRulesConfig:
    """
    One jurisdiction's validated, versioned vehicle tax rules.

    Contract:
        Built once per (jurisdiction, version) by ``autotax_config`` and held
        as read-only reference data for the process lifetime.

    Guarantees:
        - Immutable; safe to share across threads without locking.
        - ``extras`` is a read-only mapping of jurisdiction quirks (special
          scheme parameters live here).
    """

    jurisdiction: str
    version: int
    trade_in_policy: TradeInPolicy
    lease_rules: LeaseTaxRules
    rebates: tuple[RebateRule, ...] = ()
    doc_fee_taxable: bool = False
    fee_tax_rules: tuple[FeeTaxRule, ...] = ()
    tax_on_accessories: bool = True
    tax_on_negative_equity: bool = False
    tax_on_service_contracts: bool = False
    tax_on_gap: bool = False
    vehicle_tax_scheme: str = STATE_PLUS_LOCAL
    local_sales_tax_applies: bool = True
    reciprocity: ReciprocityRules = field(default_factory=ReciprocityRules)
    extras: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    checksum: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extras", freeze(self.extras))

    def fee_rule(self, code: str) -> FeeTaxRule | None:
        return next((r for r in self.fee_tax_rules if r.code == code), None)

    def rebate_rule(self, source: RebateSource) -> RebateRule | None:
        """Exact-source rule first, then an ``ANY`` rule."""
        for wanted in (source, RebateSource.ANY):
            for rule in self.rebates:
                if rule.applies_to == wanted:
                    return rule
        return None

    @property
    def is_standard_scheme(self) -> bool:
        return self.vehicle_tax_scheme in STANDARD_SCHEMES
