"""
Motor vehicle privilege tax.

Collected by the DMV at titling in place of sales tax, with a rate that may
depend on vehicle class. Rebates, fees and products follow the
jurisdiction's standard flags; trade-in credit and negative equity follow
the scheme parameters (``extras.wv_privilege``):

    base_rate                      default rate, 0..1
    vehicle_class_rates            {VEHICLE_CLASS: rate}
    allow_trade_in_credit          full trade-in credit when true
    apply_negative_equity_to_base  rolled-in negative equity is taxed
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from decimal import Decimal
from typing import Any

from autotax_kernel.domain.audit import AuditTrailBuilder
from autotax_kernel.domain.deal import DealType, TaxCalculationInput
from autotax_kernel.domain.money import ZERO, round_money
from autotax_kernel.domain.results import TaxBreakdown, TaxLine
from autotax_kernel.domain.rules import TaxRulesConfig, TradeInPolicy, VehicleClass
from autotax_kernel.logging_config import get_logger

from autotax_engines.base import compute_retail_bases
from autotax_engines.schemes.registry import (
    ExtrasProblem,
    SchemeOutcome,
    SpecialScheme,
    register_scheme,
)

logger = get_logger("engines.schemes.privilege")


@register_scheme
class PrivilegeTax(SpecialScheme):
    scheme_id = "DMV_PRIVILEGE_TAX"
    extras_key = "wv_privilege"
    line_label = "WV_PRIVILEGE"

    def validate_extras(self, params: Mapping[str, Any] | None) -> list[ExtrasProblem]:
        if params is None:
            return [(f"extras.{self.extras_key}", "required by DMV_PRIVILEGE_TAX")]
        problems = self.rate_problems(params, "base_rate")
        class_rates = params.get("vehicle_class_rates") or {}
        if not isinstance(class_rates, Mapping):
            return problems + [(
                f"extras.{self.extras_key}.vehicle_class_rates", "must be a mapping"
            )]
        valid_classes = {c.value for c in VehicleClass}
        for name in class_rates:
            field = f"extras.{self.extras_key}.vehicle_class_rates.{name}"
            if name not in valid_classes:
                problems.append((field, "unknown vehicle class"))
                continue
            problems.extend(
                (field, reason) for _, reason in self.rate_problems(class_rates, name)
            )
        return problems

    def rate_for(self, params: Mapping[str, Any], vehicle_class: VehicleClass) -> Decimal:
        class_rates = params.get("vehicle_class_rates") or {}
        if vehicle_class.value in class_rates:
            return self.rate_param(class_rates, vehicle_class.value)
        return self.rate_param(params, "base_rate")

    def compute(
        self,
        rules: TaxRulesConfig,
        deal: TaxCalculationInput,
        trail: AuditTrailBuilder,
    ) -> SchemeOutcome:
        params = self.params(rules)
        vehicle_class = deal.vehicle.resolved_class()
        rate = self.rate_for(params, vehicle_class)
        trail.note(f"Privilege tax rate {rate} for vehicle class {vehicle_class.value}")

        policy = (
            TradeInPolicy.full_credit()
            if params.get("allow_trade_in_credit", True)
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
            trail.note(f"Privilege tax lease base starts from gross cap cost {terms.gross_cap_cost}")

        bases = compute_retail_bases(
            rules,
            basis,
            trail,
            trade_in_policy=policy,
            negative_equity_taxable=bool(params.get("apply_negative_equity_to_base", False)),
        )
        taxes = TaxBreakdown.from_lines(
            [TaxLine(self.line_label, rate, round_money(bases.total * rate))]
        )
        logger.info("privilege_tax_computed", extra={
            "vehicle_class": vehicle_class.value,
            "base": str(bases.total),
            "rate": str(rate),
            "tax": str(taxes.total),
        })
        return SchemeOutcome(bases, taxes, self.upfront_only_lease(deal, bases, taxes, trail))
