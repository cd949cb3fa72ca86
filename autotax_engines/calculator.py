"""
Module: autotax_engines.calculator
Responsibility:
    Top-level entry point: ``calculate(rules, deal) -> TaxCalculationResult``.
    Picks the special-scheme, cash/finance or lease path, applies
    reciprocity credit and assembles the audited result.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The only function callers outside the engines package need.

Invariants enforced:
    - Purity: identical (rules, deal) always yields an identical result; no
      clock access and no shared mutable state.
    - Config immutability: ``rules`` is read, never written.
    - No partial results: every failure raises a TaxEngineError subclass.

Failure modes:
    - InvalidInputError for a structurally invalid deal snapshot.
    - ConfigInvalidError for an unrecognized lease method.
    - UnsupportedSchemeError for a special-scheme id with no registered
      strategy.

Audit relevance:
    ``result.debug`` records every adjustment; ``rules_version`` is carried
    through unchanged so a result can be traced to the exact config used.
"""

from __future__ import annotations

import time

from autotax_kernel.domain.audit import AuditTrailBuilder
from autotax_kernel.domain.deal import DealType, TaxCalculationInput
from autotax_kernel.domain.results import (
    BaseBreakdown,
    LeaseBreakdown,
    TaxBreakdown,
    TaxCalculationResult,
)
from autotax_kernel.domain.rules import TaxRulesConfig
from autotax_kernel.logging_config import LogContext, get_logger

from autotax_engines.base import compute_retail_bases, validate_deal
from autotax_engines.lease import compute_lease_tax, require_lease_terms
from autotax_engines.rates import applicable_rates, apply_rates
from autotax_engines.reciprocity import (
    apply_credit,
    apply_credit_to_lease,
    determine_credit,
)
from autotax_engines.schemes import SchemeRegistry, SpecialScheme
from autotax_engines.tracer import traced_engine

logger = get_logger("engines.calculator")


def resolve_scheme(rules: TaxRulesConfig, deal: TaxCalculationInput) -> SpecialScheme | None:
    """
    The special scheme that replaces the standard pipeline, if any.

    For LEASE deals ``lease_rules.special_scheme`` takes precedence over
    ``vehicle_tax_scheme``.
    """
    if deal.deal_type is DealType.LEASE and rules.lease_rules.special_scheme:
        return SchemeRegistry.get(
            rules.lease_rules.special_scheme, field="lease_rules.special_scheme"
        )
    if rules.is_standard_scheme:
        return None
    return SchemeRegistry.get(rules.vehicle_tax_scheme)


def _standard_path(
    rules: TaxRulesConfig,
    deal: TaxCalculationInput,
    trail: AuditTrailBuilder,
) -> tuple[str, BaseBreakdown, TaxBreakdown, LeaseBreakdown | None]:
    rates = applicable_rates(rules, deal.rates, trail)
    if deal.deal_type is DealType.LEASE:
        outcome = compute_lease_tax(rules, deal, rates, trail)
        return (
            rules.lease_rules.method.value,
            outcome.bases,
            outcome.breakdown.term_taxes(),
            outcome.breakdown,
        )
    bases = compute_retail_bases(rules, deal, trail)
    return rules.vehicle_tax_scheme, bases, apply_rates(bases.total, rates), None


@traced_engine("calculator", "1.0", fingerprint_fields=("rules", "deal"))
def calculate(rules: TaxRulesConfig, deal: TaxCalculationInput) -> TaxCalculationResult:
    """
    Compute the tax owed on one deal under one jurisdiction's rules.

    Args:
        rules: Validated, immutable rules for the deal's jurisdiction.
        deal: Immutable deal snapshot.

    Returns:
        A complete TaxCalculationResult.

    Raises:
        InvalidInputError, ConfigInvalidError, UnsupportedSchemeError.
    """
    with LogContext.bind(
        deal_id=deal.deal_id,
        jurisdiction=rules.jurisdiction,
        rules_version=str(rules.version),
    ):
        t0 = time.monotonic()
        logger.info("tax_calculation_started", extra={
            "deal_type": deal.deal_type.value,
            "vehicle_tax_scheme": rules.vehicle_tax_scheme,
        })

        trail = AuditTrailBuilder()
        validate_deal(deal, trail)
        if deal.deal_type is DealType.LEASE:
            require_lease_terms(deal)

        scheme = resolve_scheme(rules, deal)
        if scheme is not None:
            trail.note(f"Special scheme {scheme.scheme_id} replaces standard sales tax")
            outcome = scheme.compute(rules, deal, trail)
            mode, bases, taxes, lease = (
                scheme.scheme_id, outcome.bases, outcome.taxes, outcome.lease,
            )
        else:
            mode, bases, taxes, lease = _standard_path(rules, deal, trail)

        decision = determine_credit(rules, deal, taxes.total, bases.total, trail)
        if decision.credit > 0:
            if lease is not None:
                lease, applied = apply_credit_to_lease(lease, decision.credit)
                taxes = lease.term_taxes()
                if applied < decision.credit:
                    trail.note(
                        f"Credit {decision.credit} reduced to {applied} to keep "
                        f"per-payment tax in whole cents"
                    )
            else:
                applied = min(decision.credit, taxes.total)
                taxes = apply_credit(taxes, applied)
            trail.reciprocity_credit = applied
            logger.info("reciprocity_credit_applied", extra={
                "credit": str(applied),
                "tax_after_credit": str(taxes.total),
            })

        result = TaxCalculationResult(
            jurisdiction=rules.jurisdiction,
            rules_version=rules.version,
            deal_type=deal.deal_type,
            mode=mode,
            bases=bases,
            taxes=taxes,
            debug=trail.build(),
            lease=lease,
            tax_already_collected=deal.tax_already_collected,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("tax_calculation_completed", extra={
            "mode": mode,
            "total_base": str(bases.total),
            "total_tax": str(result.total_tax),
            "balance_due": str(result.balance_due),
            "duration_ms": duration_ms,
        })
        return result
