"""
Module: autotax_engines.reciprocity
Responsibility:
    Credit against this jurisdiction's computed tax for tax already paid to
    a prior jurisdiction on the same vehicle, and apply that credit to the
    itemized tax lines (and lease timing buckets).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - The applied credit never exceeds the prior tax paid.
    - With capping enabled the credit never exceeds this jurisdiction's
      own tax; in every case tax after credit is never negative.
    - Credit allocation is exact to the cent across tax lines; for leases
      the term identity still holds after the credit.

Failure modes:
    - InvalidInputError when the EFFECTIVE_RATE basis is configured but the
      prior-tax record carries no effective rate.

Audit relevance:
    Every reason a credit was allowed, reduced or refused is written to the
    trail, together with the final credit amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from autotax_kernel.domain.audit import AuditTrailBuilder
from autotax_kernel.domain.deal import DealType, PriorTaxPaid, TaxCalculationInput
from autotax_kernel.domain.money import ZERO, allocate_by_weight, floor_to_cent, round_money
from autotax_kernel.domain.results import LeaseBreakdown, TaxBreakdown
from autotax_kernel.domain.rules import (
    ReciprocityBasis,
    ReciprocityMode,
    ReciprocityOverride,
    ReciprocityScope,
    TaxRulesConfig,
)
from autotax_kernel.exceptions import InvalidInputError
from autotax_kernel.logging_config import get_logger

logger = get_logger("engines.reciprocity")


@dataclass(frozen=True)
class ReciprocityDecision:
    """Outcome of the credit policy, before it is applied to tax lines."""

    credit: Decimal
    mode: ReciprocityMode | None = None
    override: ReciprocityOverride | None = None
    capped: bool = False


_NO_CREDIT = ReciprocityDecision(credit=ZERO)


def _in_scope(scope: ReciprocityScope, deal_type: DealType) -> bool:
    match scope:
        case ReciprocityScope.BOTH:
            return True
        case ReciprocityScope.RETAIL_ONLY:
            return deal_type.is_retail
        case ReciprocityScope.LEASE_ONLY:
            return deal_type is DealType.LEASE
    return False


def _within_time_window(
    prior: PriorTaxPaid,
    deal: TaxCalculationInput,
    max_age_days: int,
    trail: AuditTrailBuilder,
) -> bool:
    if prior.paid_date is None:
        trail.note(
            f"Reciprocity requires the date tax was paid in {prior.jurisdiction}; none provided"
        )
        return False
    days_since = (deal.as_of_date - prior.paid_date).days
    if days_since < 0:
        trail.note(f"Tax paid date {prior.paid_date.isoformat()} is after the deal date")
        return False
    if days_since > max_age_days:
        trail.note(
            f"Tax paid {days_since} days ago, outside the {max_age_days}-day reciprocity window"
        )
        return False
    trail.note(f"Tax paid {days_since} days ago, within the {max_age_days}-day window")
    return True


def _candidate_credit(
    rules: TaxRulesConfig,
    prior: PriorTaxPaid,
    own_base: Decimal,
    trail: AuditTrailBuilder,
) -> Decimal:
    if rules.reciprocity.basis is ReciprocityBasis.EFFECTIVE_RATE:
        if prior.effective_rate is None:
            raise InvalidInputError(
                "prior_tax.effective_rate",
                "required when reciprocity credit is based on the prior effective rate",
            )
        recomputed = round_money(own_base * prior.effective_rate)
        candidate = min(recomputed, floor_to_cent(prior.amount))
        trail.note(
            f"Prior tax recomputed at {prior.jurisdiction} rate {prior.effective_rate} "
            f"on base {own_base}: {recomputed}"
        )
        return candidate
    # only whole cents can come off the tax lines
    return floor_to_cent(prior.amount)


def determine_credit(
    rules: TaxRulesConfig,
    deal: TaxCalculationInput,
    own_tax: Decimal,
    own_base: Decimal,
    trail: AuditTrailBuilder,
) -> ReciprocityDecision:
    """
    Decide the reciprocity credit for one deal.

    ``own_tax`` is this jurisdiction's tax before credit (for leases, the
    total over the term) and ``own_base`` the matching taxable base.
    """
    prior = deal.prior_tax
    policy = rules.reciprocity
    if prior is None or prior.amount <= ZERO:
        trail.note("No tax paid to another jurisdiction; reciprocity not applied")
        return _NO_CREDIT
    if not policy.enabled:
        trail.note(f"{rules.jurisdiction} does not offer reciprocity credit")
        return _NO_CREDIT

    origin = prior.jurisdiction
    if origin == deal.effective_registration_jurisdiction:
        trail.note(f"Prior tax was paid to the registration jurisdiction {origin}; no credit")
        return _NO_CREDIT
    if origin in policy.non_reciprocal_jurisdictions:
        trail.note(f"{rules.jurisdiction} does not reciprocate with {origin}")
        return _NO_CREDIT
    if origin in policy.exempt_jurisdictions:
        trail.note(f"{origin} levies no comparable tax; no reciprocity credit")
        return _NO_CREDIT

    override = policy.find_override(
        origin, deal.vehicle.resolved_class(), deal.vehicle.gvw_lbs
    )

    scope = override.scope if override and override.scope else policy.scope
    if not _in_scope(scope, deal.deal_type):
        trail.note(f"Reciprocity scope {scope.value} excludes {deal.deal_type.value} deals")
        return _NO_CREDIT
    if policy.has_lease_exception and deal.deal_type is DealType.LEASE:
        trail.note("Leases are excepted from reciprocity credit")
        return _NO_CREDIT

    if override is not None:
        if override.disallow_credit:
            trail.note(f"{rules.jurisdiction} disallows credit for tax paid to {origin}")
            return _NO_CREDIT
        if override.max_age_days is not None and not _within_time_window(
            prior, deal, override.max_age_days, trail
        ):
            return _NO_CREDIT
        if override.require_same_owner and not prior.same_owner:
            trail.note(f"Credit requires the same owner as when tax was paid in {origin}")
            return _NO_CREDIT

    proof_required = policy.require_proof_of_tax_paid
    if override is not None and override.require_proof_of_tax_paid is not None:
        proof_required = override.require_proof_of_tax_paid
    if proof_required and not prior.proof_provided:
        trail.note(f"Proof of tax paid to {origin} is required but was not provided")
        return _NO_CREDIT

    mode = override.mode if override and override.mode else policy.home_state_behavior
    cap = policy.cap_at_this_states_tax
    if override is not None and override.cap_at_this_states_tax is not None:
        cap = override.cap_at_this_states_tax

    candidate = _candidate_credit(rules, prior, own_base, trail)

    match mode:
        case ReciprocityMode.NONE:
            trail.note("Reciprocity mode NONE; no credit")
            return ReciprocityDecision(ZERO, mode, override)
        case ReciprocityMode.CREDIT_UP_TO_STATE_RATE:
            cap = True
        case ReciprocityMode.HOME_STATE_ONLY:
            if origin != deal.home_jurisdiction:
                trail.note(f"No credit: {origin} is not the owner's home jurisdiction")
                return ReciprocityDecision(ZERO, mode, override)
            cap = True
        case ReciprocityMode.CREDIT_FULL:
            pass

    credit = candidate
    capped = False
    if cap and credit > own_tax:
        credit = own_tax
        capped = True
        trail.note(f"Credit capped at {rules.jurisdiction} tax {own_tax}")
    elif credit > own_tax:
        trail.note(
            f"Uncapped credit {credit} exceeds {rules.jurisdiction} tax {own_tax}; "
            f"tax floored at 0"
        )
        credit = own_tax

    trail.note(
        f"Reciprocity credit {credit} for {prior.amount} tax paid to {origin} "
        f"({mode.value})"
    )
    logger.info("reciprocity_credit_determined", extra={
        "origin": origin,
        "mode": mode.value,
        "prior_amount": str(prior.amount),
        "own_tax": str(own_tax),
        "credit": str(credit),
        "capped": capped,
        "override_applied": override is not None,
    })
    return ReciprocityDecision(credit, mode, override, capped)


def apply_credit(taxes: TaxBreakdown, credit: Decimal) -> TaxBreakdown:
    """Reduce tax lines by ``credit`` in proportion to their amounts."""
    if credit <= ZERO:
        return taxes
    amounts = [line.amount for line in taxes.lines]
    shares = allocate_by_weight(min(credit, taxes.total), amounts)
    return taxes.with_amounts(a - s for a, s in zip(amounts, shares))


def apply_credit_to_lease(
    lease: LeaseBreakdown,
    credit: Decimal,
) -> tuple[LeaseBreakdown, Decimal]:
    """
    Apply ``credit`` to upfront tax first, then spread the rest per period.

    The per-period reduction is truncated to whole cents so the term
    identity stays exact; returns the new breakdown and the credit actually
    applied.
    """
    if credit <= ZERO:
        return lease, ZERO
    upfront_part = min(credit, lease.upfront_tax.total)
    remainder = credit - upfront_part
    per_period_part = ZERO
    if remainder > ZERO and lease.payment_count > 0:
        per_period_part = min(
            floor_to_cent(remainder / lease.payment_count),
            lease.per_period_tax.total,
        )

    adjusted = LeaseBreakdown.build(
        method=lease.method,
        payment_count=lease.payment_count,
        upfront_base=lease.upfront_base,
        upfront_tax=apply_credit(lease.upfront_tax, upfront_part),
        per_period_base=lease.per_period_base,
        per_period_tax=apply_credit(lease.per_period_tax, per_period_part),
    )
    return adjusted, upfront_part + per_period_part * lease.payment_count
