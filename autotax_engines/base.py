"""
Module: autotax_engines.base
Responsibility:
    Build the taxable base for cash and finance deals: trade-in credit,
    rebate taxability, accessories, doc fee and itemized fees, and add-on
    products (service contracts, GAP, negative equity).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import autotax_kernel.

Invariants enforced:
    - Every base component is clamped to >= 0.
    - total = vehicle + fees + products (BaseBreakdown checks it).
    - Purity: no clock access, no I/O.

Failure modes:
    - InvalidInputError when a monetary field is negative or not a Decimal.
    - Lease-only fields on a cash/finance deal are ignored with a note.

Audit relevance:
    Every amount that enters or is excluded from the base is recorded on
    the AuditTrailBuilder, including fee codes with no jurisdiction rule.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

from autotax_kernel.domain.audit import AuditTrailBuilder
from autotax_kernel.domain.deal import FeeItem, TaxCalculationInput
from autotax_kernel.domain.money import ZERO, clamp_non_negative
from autotax_kernel.domain.results import BaseBreakdown
from autotax_kernel.domain.rules import (
    FeeTaxRule,
    RebateSource,
    TaxRulesConfig,
    TradeInPolicy,
)
from autotax_kernel.exceptions import InvalidInputError
from autotax_kernel.logging_config import get_logger

from autotax_engines.rates import validate_rates

logger = get_logger("engines.base")


# ---------------------------------------------------------------------------
# Input checks
# ---------------------------------------------------------------------------


def require_money(value: object, field: str) -> None:
    if not isinstance(value, Decimal) or isinstance(value, bool):
        raise InvalidInputError(field, "must be a Decimal amount", value)
    if not value.is_finite():
        raise InvalidInputError(field, "must be finite", value)
    if value < ZERO:
        raise InvalidInputError(field, "cannot be negative", value)


def validate_deal(deal: TaxCalculationInput, trail: AuditTrailBuilder) -> None:
    """Reject structurally invalid deal snapshots before any computation."""
    for name in TaxCalculationInput.MONEY_FIELDS:
        require_money(getattr(deal, name), name)
    for index, fee in enumerate(deal.other_fees):
        require_money(fee.amount, f"other_fees[{index}].amount")
    validate_rates(deal.rates)

    if deal.prior_tax is not None:
        require_money(deal.prior_tax.amount, "prior_tax.amount")
        if deal.prior_tax.effective_rate is not None:
            require_money(deal.prior_tax.effective_rate, "prior_tax.effective_rate")
    if deal.vehicle.assessed_value is not None:
        require_money(deal.vehicle.assessed_value, "vehicle.assessed_value")

    if deal.deal_type.is_retail and deal.lease is not None:
        trail.note(f"Lease terms supplied on a {deal.deal_type.value} deal were ignored")
        logger.debug("lease_fields_ignored", extra={"deal_type": deal.deal_type.value})


# ---------------------------------------------------------------------------
# Building blocks shared with the lease engine and special schemes
# ---------------------------------------------------------------------------


def apply_trade_in(
    price: Decimal,
    trade_in_value: Decimal,
    policy: TradeInPolicy,
    trail: AuditTrailBuilder,
) -> Decimal:
    """Reduce ``price`` by the policy's trade-in credit, clamped at 0."""
    credit = min(policy.credit_for(trade_in_value), price)
    trail.applied_trade_in += credit
    if trade_in_value > ZERO:
        trail.note(
            f"Trade-in {trade_in_value} under {policy.type.value} policy: "
            f"credit {credit} applied"
        )
    return clamp_non_negative(price - credit)


def rebate_is_taxable(
    rules: TaxRulesConfig,
    source: RebateSource,
    trail: AuditTrailBuilder,
) -> bool:
    rule = rules.rebate_rule(source)
    if rule is None:
        trail.note(
            f"No rebate rule for {source.value} rebates; treated as non-taxable "
            f"(coverage gap, confirm with jurisdiction)"
        )
        return False
    return rule.taxable


def split_rebates(
    rules: TaxRulesConfig,
    manufacturer: Decimal,
    dealer: Decimal,
    trail: AuditTrailBuilder,
) -> tuple[Decimal, Decimal]:
    """Return (taxable, non_taxable) rebate totals and record them."""
    taxable = ZERO
    non_taxable = ZERO
    for source, amount in (
        (RebateSource.MANUFACTURER, manufacturer),
        (RebateSource.DEALER, dealer),
    ):
        if amount <= ZERO:
            continue
        if rebate_is_taxable(rules, source, trail):
            taxable += amount
        else:
            non_taxable += amount
    trail.taxable_rebates += taxable
    trail.non_taxable_rebates += non_taxable
    return taxable, non_taxable


def itemized_fees_base(
    fees: tuple[FeeItem, ...],
    lookup: Callable[[str], FeeTaxRule | None],
    trail: AuditTrailBuilder,
) -> Decimal:
    """Sum the taxable itemized fees; unmatched codes are non-taxable and flagged."""
    total = ZERO
    for fee in fees:
        rule = lookup(fee.code)
        if rule is None:
            trail.unmatched_fee(fee.code)
            continue
        if rule.taxable:
            total += fee.amount
            trail.taxable_fee(fee.code, fee.amount)
    return total


def products_base(
    deal: TaxCalculationInput,
    service_contracts_taxable: bool,
    gap_taxable: bool,
    negative_equity_taxable: bool,
    trail: AuditTrailBuilder,
) -> Decimal:
    total = ZERO
    if service_contracts_taxable and deal.service_contracts > ZERO:
        total += deal.service_contracts
        trail.taxable_service_contracts += deal.service_contracts
    if gap_taxable and deal.gap > ZERO:
        total += deal.gap
        trail.taxable_gap += deal.gap
    if negative_equity_taxable and deal.negative_equity > ZERO:
        total += deal.negative_equity
        trail.taxable_negative_equity += deal.negative_equity
    return total


# ---------------------------------------------------------------------------
# Cash / finance base
# ---------------------------------------------------------------------------


def compute_retail_bases(
    rules: TaxRulesConfig,
    deal: TaxCalculationInput,
    trail: AuditTrailBuilder,
    trade_in_policy: TradeInPolicy | None = None,
    negative_equity_taxable: bool | None = None,
) -> BaseBreakdown:
    """
    Taxable base for a cash or finance deal.

    Vehicle base: price less trade-in credit (clamped at 0), plus taxable
    rebates added back, plus accessories when taxable. Non-taxable rebates
    never enter the base. ``trade_in_policy`` and
    ``negative_equity_taxable`` let a special scheme substitute its own
    treatment for the jurisdiction defaults.
    """
    policy = trade_in_policy or rules.trade_in_policy

    vehicle = apply_trade_in(deal.vehicle_price, deal.trade_in_value, policy, trail)

    taxable_rebates, _ = split_rebates(
        rules, deal.rebate_manufacturer, deal.rebate_dealer, trail
    )
    vehicle += taxable_rebates

    if deal.accessories_amount > ZERO:
        if rules.tax_on_accessories:
            vehicle += deal.accessories_amount
        else:
            trail.note(f"Accessories {deal.accessories_amount} not taxable")

    fees = ZERO
    if deal.doc_fee > ZERO:
        if rules.doc_fee_taxable:
            fees += deal.doc_fee
            trail.taxable_doc_fee += deal.doc_fee
        else:
            trail.note(f"Doc fee {deal.doc_fee} not taxable")
    fees += itemized_fees_base(deal.other_fees, rules.fee_rule, trail)

    products = products_base(
        deal,
        rules.tax_on_service_contracts,
        rules.tax_on_gap,
        rules.tax_on_negative_equity
        if negative_equity_taxable is None
        else negative_equity_taxable,
        trail,
    )

    bases = BaseBreakdown.of(
        clamp_non_negative(vehicle),
        clamp_non_negative(fees),
        clamp_non_negative(products),
    )
    logger.debug("retail_base_computed", extra={
        "vehicle_base": str(bases.vehicle),
        "fees_base": str(bases.fees),
        "products_base": str(bases.products),
        "total_base": str(bases.total),
    })
    return bases
