"""
Rate Application -- apply rate components to a taxable base.

Each component is applied independently to the same base (no compounding):
line = round(base x rate, 2, half-up), total = sum of lines. An empty or
all-zero rate list is valid and yields a total of 0.

Usage:
    from decimal import Decimal
    from autotax_engines.rates import apply_rates
    from autotax_kernel.domain import TaxRateComponent

    taxes = apply_rates(
        Decimal("20000"),
        (TaxRateComponent("STATE", Decimal("0.06")),),
    )
    print(taxes.total)  # 1200.00
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from autotax_kernel.domain.audit import AuditTrailBuilder
from autotax_kernel.domain.deal import TaxRateComponent
from autotax_kernel.domain.money import ZERO, round_money
from autotax_kernel.domain.results import TaxBreakdown, TaxLine
from autotax_kernel.domain.rules import STATE_ONLY, TaxRulesConfig
from autotax_kernel.exceptions import InvalidInputError
from autotax_kernel.logging_config import get_logger

logger = get_logger("engines.rates")

# Label identifying the state-level component in a rate list.
STATE_COMPONENT_LABEL = "STATE"


def validate_rates(rates: Sequence[TaxRateComponent]) -> None:
    for index, component in enumerate(rates):
        if not isinstance(component.rate, Decimal):
            raise InvalidInputError(
                f"rates[{index}].rate", "must be a Decimal fraction", component.rate
            )
        if not component.rate.is_finite():
            raise InvalidInputError(
                f"rates[{index}].rate", "must be finite", component.rate
            )
        if component.rate < ZERO:
            raise InvalidInputError(
                f"rates[{index}].rate", "rate cannot be negative", component.rate
            )


def applicable_rates(
    rules: TaxRulesConfig,
    rates: Sequence[TaxRateComponent],
    trail: AuditTrailBuilder,
) -> tuple[TaxRateComponent, ...]:
    """
    Filter the caller's rate components down to those the rules allow.

    Under a STATE_ONLY scheme, or when local sales tax does not apply to
    vehicles, only components labelled STATE are kept.
    """
    state_only = rules.vehicle_tax_scheme == STATE_ONLY or not rules.local_sales_tax_applies
    if not state_only:
        return tuple(rates)

    kept = tuple(c for c in rates if c.label.upper() == STATE_COMPONENT_LABEL)
    dropped = [c.label for c in rates if c.label.upper() != STATE_COMPONENT_LABEL]
    if dropped:
        trail.note(
            f"Local rate components not applied to vehicles in "
            f"{rules.jurisdiction}: {', '.join(dropped)}"
        )
        logger.debug("local_rates_dropped", extra={
            "jurisdiction": rules.jurisdiction,
            "dropped": dropped,
        })
    return kept


def apply_rates(base: Decimal, rates: Sequence[TaxRateComponent]) -> TaxBreakdown:
    """Itemize tax on ``base`` for each component, in the caller's order."""
    return TaxBreakdown.from_lines(
        TaxLine(label=c.label, rate=c.rate, amount=round_money(base * c.rate))
        for c in rates
    )
