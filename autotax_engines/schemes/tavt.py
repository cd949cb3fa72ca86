"""
Title ad valorem tax (TAVT).

A one-time tax on the vehicle's value at title transfer, replacing sales
and use tax. Fees and add-on products are outside the base. Parameters
(``extras.ga_tavt``):

    rate                            TAVT rate, 0..1
    lease_base_mode                 CAP_COST | AGREED_VALUE
    allow_trade_in_credit           trade-in reduces the base
    apply_negative_equity_to_base   rolled-in negative equity is taxed
    use_assessed_value              base is the assessed value when supplied
    use_higher_of_price_or_assessed base is max(price, assessed value)
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from autotax_kernel.domain.audit import AuditTrailBuilder
from autotax_kernel.domain.deal import DealType, TaxCalculationInput
from autotax_kernel.domain.money import ZERO, clamp_non_negative, round_money
from autotax_kernel.domain.results import BaseBreakdown, TaxBreakdown, TaxLine
from autotax_kernel.domain.rules import TaxRulesConfig
from autotax_kernel.logging_config import get_logger

from autotax_engines.schemes.registry import (
    ExtrasProblem,
    SchemeOutcome,
    SpecialScheme,
    register_scheme,
)

logger = get_logger("engines.schemes.tavt")

LEASE_BASE_MODES = ("CAP_COST", "AGREED_VALUE")


@register_scheme
class TitleAdValoremTax(SpecialScheme):
    scheme_id = "SPECIAL_TAVT"
    extras_key = "ga_tavt"
    line_label = "GA_TAVT"

    def validate_extras(self, params: Mapping[str, Any] | None) -> list[ExtrasProblem]:
        if params is None:
            return [(f"extras.{self.extras_key}", "required by SPECIAL_TAVT")]
        problems = self.rate_problems(params, "rate")
        mode = params.get("lease_base_mode", "CAP_COST")
        if mode not in LEASE_BASE_MODES:
            problems.append((
                f"extras.{self.extras_key}.lease_base_mode",
                f"must be one of {', '.join(LEASE_BASE_MODES)}",
            ))
        return problems

    def _raw_base(
        self,
        params: Mapping[str, Any],
        deal: TaxCalculationInput,
        trail: AuditTrailBuilder,
    ) -> Decimal:
        if deal.deal_type is DealType.LEASE and deal.lease is not None:
            if params.get("lease_base_mode", "CAP_COST") == "CAP_COST":
                trail.note(f"TAVT lease base: gross cap cost {deal.lease.gross_cap_cost}")
                return deal.lease.gross_cap_cost
            trail.note(f"TAVT lease base: agreed value {deal.vehicle_price}")
            return deal.vehicle_price

        base = deal.vehicle_price
        assessed = deal.vehicle.assessed_value
        if assessed is not None:
            if params.get("use_higher_of_price_or_assessed"):
                base = max(base, assessed)
                trail.note(f"TAVT base is the higher of price and assessed value: {base}")
            elif params.get("use_assessed_value"):
                base = assessed
                trail.note(f"TAVT base is the assessed value {assessed}")
        return base

    def compute(
        self,
        rules: TaxRulesConfig,
        deal: TaxCalculationInput,
        trail: AuditTrailBuilder,
    ) -> SchemeOutcome:
        params = self.params(rules)
        rate = self.rate_param(params, "rate")

        base = self._raw_base(params, deal, trail)

        trade_in = deal.trade_in_value
        if deal.lease is not None and deal.lease.cap_reduction_trade_in > ZERO:
            trade_in = deal.lease.cap_reduction_trade_in
        if trade_in > ZERO:
            if params.get("allow_trade_in_credit"):
                credit = min(round_money(trade_in), base)
                base -= credit
                trail.applied_trade_in += credit
                trail.note(f"TAVT trade-in credit {credit}")
            else:
                trail.note(f"Trade-in {trade_in} does not reduce the TAVT base")

        if deal.negative_equity > ZERO:
            if params.get("apply_negative_equity_to_base"):
                base += deal.negative_equity
                trail.taxable_negative_equity += deal.negative_equity
            else:
                trail.note(f"Negative equity {deal.negative_equity} not added to TAVT base")

        base = clamp_non_negative(base)
        trail.note("TAVT applies to the vehicle only; fees and products are excluded")

        bases = BaseBreakdown.of(base, ZERO, ZERO)
        taxes = TaxBreakdown.from_lines(
            [TaxLine(self.line_label, rate, round_money(base * rate))]
        )
        logger.info("tavt_computed", extra={
            "base": str(base),
            "rate": str(rate),
            "tax": str(taxes.total),
        })
        return SchemeOutcome(bases, taxes, self.upfront_only_lease(deal, bases, taxes, trail))
