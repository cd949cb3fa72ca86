"""
Pure domain layer.

Rules, deal snapshots, results and money helpers with NO dependencies on:
- Configuration files
- Time/clock
- I/O

All domain objects except the call-local AuditTrailBuilder are immutable.
"""

from autotax_kernel.domain.audit import AuditTrailBuilder
from autotax_kernel.domain.deal import (
    DealType,
    FeeItem,
    LeaseTerms,
    PriorTaxPaid,
    TaxCalculationInput,
    TaxRateComponent,
    VehicleInfo,
)
from autotax_kernel.domain.money import (
    CENT,
    ZERO,
    allocate_by_weight,
    clamp_non_negative,
    floor_to_cent,
    round_money,
    to_money,
    to_rate,
)
from autotax_kernel.domain.results import (
    BaseBreakdown,
    DebugTrail,
    LeaseBreakdown,
    TaxBreakdown,
    TaxCalculationResult,
    TaxLine,
)
from autotax_kernel.domain.rules import (
    ANY_ORIGIN,
    STANDARD_SCHEMES,
    STATE_ONLY,
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

__all__ = [
    # Rules
    "ANY_ORIGIN",
    "DocFeeTaxability",
    "FeeTaxRule",
    "LeaseMethod",
    "LeaseRebateBehavior",
    "LeaseTaxRules",
    "LeaseTradeInCredit",
    "RebateRule",
    "RebateSource",
    "ReciprocityBasis",
    "ReciprocityMode",
    "ReciprocityOverride",
    "ReciprocityRules",
    "ReciprocityScope",
    "STANDARD_SCHEMES",
    "STATE_ONLY",
    "STATE_PLUS_LOCAL",
    "TaxRulesConfig",
    "TitleFeeRule",
    "TradeInPolicy",
    "TradeInPolicyType",
    "VehicleClass",
    # Deal
    "DealType",
    "FeeItem",
    "LeaseTerms",
    "PriorTaxPaid",
    "TaxCalculationInput",
    "TaxRateComponent",
    "VehicleInfo",
    # Results
    "AuditTrailBuilder",
    "BaseBreakdown",
    "DebugTrail",
    "LeaseBreakdown",
    "TaxBreakdown",
    "TaxCalculationResult",
    "TaxLine",
    # Money
    "CENT",
    "ZERO",
    "allocate_by_weight",
    "clamp_non_negative",
    "floor_to_cent",
    "round_money",
    "to_money",
    "to_rate",
]
