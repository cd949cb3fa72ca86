"""
Highway use tax (HUT).

A state-only tax levied at titling instead of sales tax. The base follows
the standard cash/finance rules for rebates, fees and products; trade-in
credit is full or none per ``include_trade_in_reduction``. Local rate
components never apply. Leases are taxed once on the gross cap cost.

Parameters (``extras.nc_hut``): rate, include_trade_in_reduction.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from autotax_kernel.domain.audit import AuditTrailBuilder
from autotax_kernel.domain.deal import DealType, TaxCalculationInput
from autotax_kernel.domain.money import ZERO, round_money
from autotax_kernel.domain.results import TaxBreakdown, TaxLine
from autotax_kernel.domain.rules import TaxRulesConfig, TradeInPolicy
from autotax_kernel.logging_config import get_logger

from autotax_engines.base import compute_retail_bases
from autotax_engines.schemes.registry import (
    ExtrasProblem,
    SchemeOutcome,
    SpecialScheme,
    register_scheme,
)

logger = get_logger("engines.schemes.hut")


@register_scheme
class HighwayUseTax(SpecialScheme):
    scheme_id = "SPECIAL_HUT"
    extras_key = "nc_hut"
    line_label = "NC_HUT"

    def validate_extras(self, params: Mapping[str, Any] | None) -> list[ExtrasProblem]:
        if params is None:
            return [(f"extras.{self.extras_key}", "required by SPECIAL_HUT")]
        return self.rate_problems(params, "rate")

    def compute(
        self,
        rules: TaxRulesConfig,
        deal: TaxCalculationInput,
        trail: AuditTrailBuilder,
    ) -> SchemeOutcome:
        params = self.params(rules)
        rate = self.rate_param(params, "rate")

        policy = (
            TradeInPolicy.full_credit()
            if params.get("include_trade_in_reduction", True)
            else TradeInPolicy.no_credit()
        )

        basis = deal
        if deal.deal_type is DealType.LEASE and deal.lease is not None:
            terms = deal.lease
            basis = replace(
                deal,
                vehicle_price=terms.gross_cap_cost,
                trade_in_value=(
                    terms.cap_reduction_trade_in
                    if terms.cap_reduction_trade_in > ZERO
                    else deal.trade_in_value
                ),
            )
            trail.note(f"HUT lease base starts from gross cap cost {terms.gross_cap_cost}")

        bases = compute_retail_bases(rules, basis, trail, trade_in_policy=policy)
        taxes = TaxBreakdown.from_lines(
            [TaxLine(self.line_label, rate, round_money(bases.total * rate))]
        )
        trail.note("HUT is state-only; local rate components are not applied")
        logger.info("hut_computed", extra={
            "base": str(bases.total),
            "rate": str(rate),
            "tax": str(taxes.total),
        })
        return SchemeOutcome(bases, taxes, self.upfront_only_lease(deal, bases, taxes, trail))
