"""
Module: autotax_engines.lease
Responsibility:
    Build lease taxable bases under the jurisdiction's timing method and
    run each timing bucket through rate application.

    CAP_COST       whole adjusted cap cost taxed once, upfront
    CAP_REDUCTION  only taxable upfront cap reductions taxed, upfront
    PAYMENT        upfront fees/products upfront, then each payment taxed

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - total_tax_over_term == upfront tax + per-period tax x payment_count,
      exactly (LeaseBreakdown checks it).
    - Reported bases cover the whole term: upfront parts plus per-period
      parts times payment_count.
    - Amounts rolled into the monthly charge are amortized to whole cents.

Failure modes:
    - InvalidInputError when lease terms are missing, a lease amount is
      negative, payment_count is negative, or (PAYMENT) payment_count <= 0.
    - ConfigInvalidError for an unrecognized lease method.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from autotax_kernel.domain.audit import AuditTrailBuilder
from autotax_kernel.domain.deal import LeaseTerms, TaxCalculationInput, TaxRateComponent
from autotax_kernel.domain.money import ZERO, clamp_non_negative, round_money
from autotax_kernel.domain.results import BaseBreakdown, LeaseBreakdown
from autotax_kernel.domain.rules import (
    DocFeeTaxability,
    LeaseMethod,
    LeaseRebateBehavior,
    LeaseTradeInCredit,
    RebateSource,
    TaxRulesConfig,
)
from autotax_kernel.exceptions import ConfigInvalidError, InvalidInputError
from autotax_kernel.logging_config import get_logger

from autotax_engines.base import products_base, rebate_is_taxable, require_money
from autotax_engines.rates import apply_rates

logger = get_logger("engines.lease")

SERVICE_CONTRACT_CODE = "SERVICE_CONTRACT"
GAP_CODE = "GAP"


class FeePlacement(str, Enum):
    """Where a lease fee's tax liability lands."""

    UPFRONT = "upfront"
    MONTHLY = "monthly"
    IN_CAP_COST = "in_cap_cost"
    NOT_TAXABLE = "not_taxable"


@dataclass(frozen=True)
class LeaseOutcome:
    bases: BaseBreakdown  # over the whole term
    breakdown: LeaseBreakdown


@dataclass(frozen=True)
class LeaseAmounts:
    """Lease-side view of the deal's trade-in and rebates."""

    trade_in: Decimal
    rebate_manufacturer: Decimal
    rebate_dealer: Decimal

    @classmethod
    def of(cls, deal: TaxCalculationInput, terms: LeaseTerms) -> LeaseAmounts:
        def pick(primary: Decimal, fallback: Decimal) -> Decimal:
            return primary if primary > ZERO else fallback

        return cls(
            trade_in=pick(terms.cap_reduction_trade_in, deal.trade_in_value),
            rebate_manufacturer=pick(
                terms.cap_reduction_rebate_manufacturer, deal.rebate_manufacturer
            ),
            rebate_dealer=pick(terms.cap_reduction_rebate_dealer, deal.rebate_dealer),
        )


def require_lease_terms(deal: TaxCalculationInput) -> LeaseTerms:
    terms = deal.lease
    if terms is None:
        raise InvalidInputError("lease", "lease terms are required for LEASE deals")
    for name in (
        "gross_cap_cost",
        "base_payment",
        "cap_reduction_cash",
        "cap_reduction_trade_in",
        "cap_reduction_rebate_manufacturer",
        "cap_reduction_rebate_dealer",
    ):
        require_money(getattr(terms, name), f"lease.{name}")
    if not isinstance(terms.payment_count, int) or isinstance(terms.payment_count, bool):
        raise InvalidInputError("lease.payment_count", "must be an integer", terms.payment_count)
    if terms.payment_count < 0:
        raise InvalidInputError("lease.payment_count", "cannot be negative", terms.payment_count)
    return terms


def lease_trade_in_credit(
    rules: TaxRulesConfig,
    trade_in: Decimal,
    trail: AuditTrailBuilder,
) -> Decimal:
    """Trade-in amount that reduces (or is excluded from) the taxable lease base."""
    match rules.lease_rules.trade_in_credit:
        case LeaseTradeInCredit.FOLLOW_RETAIL_RULE:
            credit = rules.trade_in_policy.credit_for(trade_in)
        case LeaseTradeInCredit.FULL | LeaseTradeInCredit.CAP_COST_ONLY:
            credit = round_money(trade_in)
        case LeaseTradeInCredit.APPLIED_TO_PAYMENT:
            if trade_in > ZERO:
                trail.note("Lease trade-in applied to payment; already reflected in base payment")
            credit = ZERO
        case LeaseTradeInCredit.NONE:
            credit = ZERO
        case other:
            raise ConfigInvalidError(
                "lease_rules.trade_in_credit", "unrecognized lease trade-in mode", other
            )
    trail.applied_trade_in += credit
    return credit


def lease_rebate_taxable(
    rules: TaxRulesConfig,
    source: RebateSource,
    trail: AuditTrailBuilder,
) -> bool:
    match rules.lease_rules.rebate_behavior:
        case LeaseRebateBehavior.ALWAYS_TAXABLE:
            return True
        case LeaseRebateBehavior.ALWAYS_NON_TAXABLE:
            return False
        case _:
            return rebate_is_taxable(rules, source, trail)


def _split_lease_rebates(
    rules: TaxRulesConfig,
    amounts: LeaseAmounts,
    trail: AuditTrailBuilder,
) -> tuple[Decimal, Decimal]:
    taxable = ZERO
    non_taxable = ZERO
    for source, amount in (
        (RebateSource.MANUFACTURER, amounts.rebate_manufacturer),
        (RebateSource.DEALER, amounts.rebate_dealer),
    ):
        if amount <= ZERO:
            continue
        if lease_rebate_taxable(rules, source, trail):
            taxable += amount
        else:
            non_taxable += amount
    trail.taxable_rebates += taxable
    trail.non_taxable_rebates += non_taxable
    return taxable, non_taxable


def _doc_fee_placement(rules: TaxRulesConfig) -> FeePlacement:
    lease_rules = rules.lease_rules
    match lease_rules.doc_fee_taxability:
        case DocFeeTaxability.NEVER:
            return FeePlacement.NOT_TAXABLE
        case DocFeeTaxability.ONLY_UPFRONT:
            return FeePlacement.UPFRONT
        case DocFeeTaxability.FOLLOW_RETAIL_RULE if not rules.doc_fee_taxable:
            return FeePlacement.NOT_TAXABLE
    if lease_rules.method is LeaseMethod.PAYMENT and not lease_rules.tax_fees_upfront:
        return FeePlacement.MONTHLY
    return FeePlacement.UPFRONT


def _fee_placement(rules: TaxRulesConfig, code: str) -> FeePlacement | None:
    """Placement for an itemized fee, or None when no rule covers the code."""
    lease_rules = rules.lease_rules
    title_rule = lease_rules.title_fee_rule(code)
    if title_rule is not None:
        if not title_rule.taxable:
            return FeePlacement.NOT_TAXABLE
        if title_rule.rolls_into_cap_cost:
            return FeePlacement.IN_CAP_COST
        if title_rule.rolls_into_monthly and lease_rules.method is LeaseMethod.PAYMENT:
            return FeePlacement.MONTHLY
        return FeePlacement.UPFRONT

    rule = lease_rules.fee_rule(code) or rules.fee_rule(code)
    if rule is None:
        return None
    if not rule.taxable:
        return FeePlacement.NOT_TAXABLE
    if lease_rules.method is LeaseMethod.PAYMENT and not lease_rules.tax_fees_upfront:
        return FeePlacement.MONTHLY
    return FeePlacement.UPFRONT


def _lease_product_flags(rules: TaxRulesConfig) -> tuple[bool, bool]:
    """Service-contract and GAP taxability; lease fee rules override retail flags."""
    lease_rules = rules.lease_rules
    sc_rule = lease_rules.fee_rule(SERVICE_CONTRACT_CODE)
    gap_rule = lease_rules.fee_rule(GAP_CODE)
    return (
        sc_rule.taxable if sc_rule is not None else rules.tax_on_service_contracts,
        gap_rule.taxable if gap_rule is not None else rules.tax_on_gap,
    )


def _amortize(amount: Decimal, payment_count: int) -> Decimal:
    return round_money(amount / payment_count) if payment_count > 0 else ZERO


def _taxable_cap_reductions(
    rules: TaxRulesConfig,
    terms: LeaseTerms,
    amounts: LeaseAmounts,
    trade_credit: Decimal,
    taxable_rebates: Decimal,
    trail: AuditTrailBuilder,
) -> Decimal:
    """Cash down, uncredited trade equity and taxable rebates, when cap reductions are taxed."""
    if not rules.lease_rules.tax_cap_reduction:
        trail.note("Cap reductions are not taxed in this jurisdiction")
        return ZERO
    uncredited_trade = clamp_non_negative(amounts.trade_in - trade_credit)
    total = terms.cap_reduction_cash + uncredited_trade + taxable_rebates
    trail.note(
        f"Taxable cap reduction {total}: cash {terms.cap_reduction_cash}, "
        f"uncredited trade-in {uncredited_trade}, taxable rebates {taxable_rebates}"
    )
    return total


def compute_lease_tax(
    rules: TaxRulesConfig,
    deal: TaxCalculationInput,
    rates: tuple[TaxRateComponent, ...],
    trail: AuditTrailBuilder,
) -> LeaseOutcome:
    """Lease bases and timing buckets for ``rules.lease_rules.method``."""
    terms = require_lease_terms(deal)
    lease_rules = rules.lease_rules
    method = lease_rules.method
    if not isinstance(method, LeaseMethod):
        raise ConfigInvalidError("lease_rules.method", "unrecognized lease method", method)
    if method is LeaseMethod.PAYMENT:
        if terms.payment_count <= 0:
            raise InvalidInputError(
                "lease.payment_count", "must be positive for payment-taxed leases",
                terms.payment_count,
            )
    count = terms.payment_count

    logger.info("lease_tax_started", extra={
        "method": method.value,
        "payment_count": count,
        "gross_cap_cost": str(terms.gross_cap_cost),
        "base_payment": str(terms.base_payment),
    })

    amounts = LeaseAmounts.of(deal, terms)
    trade_credit = lease_trade_in_credit(rules, amounts.trade_in, trail)
    taxable_rebates, non_taxable_rebates = _split_lease_rebates(rules, amounts, trail)

    # Fees
    upfront_fees = ZERO
    monthly_fees = ZERO
    cap_cost_fees = ZERO
    placements: list[tuple[str, Decimal, FeePlacement]] = []
    if deal.doc_fee > ZERO:
        placement = _doc_fee_placement(rules)
        placements.append(("DOC_FEE", deal.doc_fee, placement))
        if placement is not FeePlacement.NOT_TAXABLE:
            trail.taxable_doc_fee += deal.doc_fee
    for fee in deal.other_fees:
        placement = _fee_placement(rules, fee.code)
        if placement is None:
            trail.unmatched_fee(fee.code)
            continue
        placements.append((fee.code, fee.amount, placement))
        if placement is not FeePlacement.NOT_TAXABLE:
            trail.taxable_fee(fee.code, fee.amount)

    for code, amount, placement in placements:
        match placement:
            case FeePlacement.UPFRONT:
                upfront_fees += amount
            case FeePlacement.MONTHLY:
                monthly_fees += amount
            case FeePlacement.IN_CAP_COST:
                if method is LeaseMethod.CAP_COST:
                    cap_cost_fees += amount
                else:
                    trail.note(f"Fee {code} rolls into cap cost; taxed through the payment")
            case FeePlacement.NOT_TAXABLE:
                pass

    # Products (negative equity handled per method below)
    sc_taxable, gap_taxable = _lease_product_flags(rules)
    upfront_products = products_base(deal, sc_taxable, gap_taxable, False, trail)
    negative_equity = ZERO
    if lease_rules.negative_equity_taxable and deal.negative_equity > ZERO:
        negative_equity = deal.negative_equity
        trail.taxable_negative_equity += negative_equity

    per_period = BaseBreakdown.zero()
    match method:
        case LeaseMethod.CAP_COST:
            reductions = trade_credit + non_taxable_rebates
            if not lease_rules.tax_cap_reduction:
                reductions += terms.cap_reduction_cash
            vehicle = clamp_non_negative(terms.gross_cap_cost - reductions)
            trail.note(
                f"Cap cost {terms.gross_cap_cost} less non-taxed reductions "
                f"{reductions} taxed upfront"
            )
            upfront = BaseBreakdown.of(
                vehicle,
                upfront_fees + monthly_fees + cap_cost_fees,
                upfront_products + negative_equity,
            )
        case LeaseMethod.CAP_REDUCTION:
            vehicle = _taxable_cap_reductions(
                rules, terms, amounts, trade_credit, taxable_rebates, trail
            )
            upfront = BaseBreakdown.of(
                vehicle,
                upfront_fees + monthly_fees,
                upfront_products + negative_equity,
            )
        case LeaseMethod.PAYMENT:
            vehicle = _taxable_cap_reductions(
                rules, terms, amounts, trade_credit, taxable_rebates, trail
            )
            upfront = BaseBreakdown.of(vehicle, upfront_fees, upfront_products)
            per_period = BaseBreakdown.of(
                terms.base_payment,
                _amortize(monthly_fees, count),
                _amortize(negative_equity, count),
            )
            if monthly_fees > ZERO:
                trail.note(f"Fees {monthly_fees} rolled into the monthly charge over {count} payments")
        case _:
            raise ConfigInvalidError("lease_rules.method", "unrecognized lease method", method)

    upfront_tax = apply_rates(upfront.total, rates)
    per_period_tax = apply_rates(per_period.total, rates)
    breakdown = LeaseBreakdown.build(
        method=method,
        payment_count=count,
        upfront_base=upfront.total,
        upfront_tax=upfront_tax,
        per_period_base=per_period.total,
        per_period_tax=per_period_tax,
    )

    logger.info("lease_tax_computed", extra={
        "method": method.value,
        "upfront_base": str(upfront.total),
        "upfront_tax": str(upfront_tax.total),
        "per_period_base": str(per_period.total),
        "per_period_tax": str(per_period_tax.total),
        "total_tax_over_term": str(breakdown.total_tax_over_term),
    })
    return LeaseOutcome(bases=upfront + per_period.scaled(count), breakdown=breakdown)
