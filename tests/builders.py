"""
Test data builders for rules configs, deal snapshots and raw payloads.

Every builder takes keyword overrides on top of a small, fully-specified
default so a test states only what it is about:

    rules = make_rules(trade_in_policy=TradeInPolicy.capped(Decimal("5000")))
    deal = make_deal(trade_in_value=Decimal("8000"))
"""

from datetime import date
from decimal import Decimal
from typing import Any

from autotax_kernel.domain.deal import (
    DealType,
    LeaseTerms,
    PriorTaxPaid,
    TaxCalculationInput,
    TaxRateComponent,
)
from autotax_kernel.domain.rules import (
    LeaseMethod,
    LeaseTaxRules,
    RebateRule,
    RebateSource,
    ReciprocityMode,
    ReciprocityRules,
    TaxRulesConfig,
    TradeInPolicy,
)

TEST_JURISDICTION = "US_TS"
DEAL_DATE = date(2025, 6, 1)


def rate(label: str, value: str) -> TaxRateComponent:
    return TaxRateComponent(label, Decimal(value))


def state_rate(value: str = "0.06") -> tuple[TaxRateComponent, ...]:
    return (rate("STATE", value),)


def make_rules(**overrides: Any) -> TaxRulesConfig:
    """Plain state-plus-local rules: full trade-in credit, payment-taxed leases."""
    fields: dict[str, Any] = {
        "jurisdiction": TEST_JURISDICTION,
        "version": 1,
        "trade_in_policy": TradeInPolicy.full_credit(),
        "lease_rules": LeaseTaxRules(method=LeaseMethod.PAYMENT),
        "rebates": (
            RebateRule(RebateSource.MANUFACTURER, taxable=False),
            RebateRule(RebateSource.DEALER, taxable=True),
        ),
        "doc_fee_taxable": False,
        "tax_on_accessories": True,
        "tax_on_negative_equity": False,
        "tax_on_service_contracts": False,
        "tax_on_gap": False,
    }
    fields.update(overrides)
    return TaxRulesConfig(**fields)


def make_lease_rules(**overrides: Any) -> LeaseTaxRules:
    fields: dict[str, Any] = {"method": LeaseMethod.PAYMENT}
    fields.update(overrides)
    return LeaseTaxRules(**fields)


def reciprocal_rules(**reciprocity: Any) -> TaxRulesConfig:
    """Rules with reciprocity enabled, full capped credit, no proof required."""
    fields: dict[str, Any] = {
        "enabled": True,
        "home_state_behavior": ReciprocityMode.CREDIT_FULL,
        "cap_at_this_states_tax": True,
    }
    fields.update(reciprocity)
    return make_rules(reciprocity=ReciprocityRules(**fields))


def make_deal(**overrides: Any) -> TaxCalculationInput:
    """A $30,000 cash deal at a 6% state rate with nothing else on it."""
    fields: dict[str, Any] = {
        "jurisdiction": TEST_JURISDICTION,
        "as_of_date": DEAL_DATE,
        "deal_type": DealType.CASH,
        "vehicle_price": Decimal("30000"),
        "rates": state_rate(),
    }
    fields.update(overrides)
    return TaxCalculationInput(**fields)


def make_lease_terms(**overrides: Any) -> LeaseTerms:
    fields: dict[str, Any] = {
        "gross_cap_cost": Decimal("30000"),
        "base_payment": Decimal("400"),
        "payment_count": 36,
    }
    fields.update(overrides)
    return LeaseTerms(**fields)


def make_lease_deal(terms: LeaseTerms | None = None, **overrides: Any) -> TaxCalculationInput:
    return make_deal(
        deal_type=DealType.LEASE,
        lease=terms or make_lease_terms(),
        **overrides,
    )


def prior_tax(amount: str, jurisdiction: str = "US_XX", **overrides: Any) -> PriorTaxPaid:
    return PriorTaxPaid(jurisdiction=jurisdiction, amount=Decimal(amount), **overrides)


# ---------------------------------------------------------------------------
# Raw payloads (decoded JSON / YAML)
# ---------------------------------------------------------------------------


def rules_payload(**overrides: Any) -> dict[str, Any]:
    """Raw rules payload that parses and validates cleanly."""
    payload: dict[str, Any] = {
        "jurisdiction": TEST_JURISDICTION,
        "version": 1,
        "trade_in_policy": {"type": "FULL_CREDIT"},
        "rebates": [
            {"applies_to": "MANUFACTURER", "taxable": False},
            {"applies_to": "DEALER", "taxable": True},
        ],
        "doc_fee_taxable": False,
        "fee_tax_rules": [
            {"code": "TITLE", "taxable": False},
            {"code": "ACQUISITION_FEE", "taxable": True},
        ],
        "vehicle_tax_scheme": "STATE_PLUS_LOCAL",
        "lease_rules": {"method": "PAYMENT"},
        "reciprocity": {"enabled": False},
    }
    payload.update(overrides)
    return payload


def deal_payload(**overrides: Any) -> dict[str, Any]:
    """Raw deal payload matching ``make_deal()``."""
    payload: dict[str, Any] = {
        "jurisdiction": TEST_JURISDICTION,
        "as_of_date": DEAL_DATE.isoformat(),
        "deal_type": "CASH",
        "vehicle_price": "30000",
        "rates": [{"label": "STATE", "rate": "0.06"}],
    }
    payload.update(overrides)
    return payload
