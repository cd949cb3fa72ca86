"""
Results -- immutable, self-checking tax calculation results.

Responsibility:
    Value objects for base breakdowns, itemized tax lines, lease timing
    buckets, the debug trail and the top-level result, plus the canonical
    dict payload used at the structured-text boundary.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.

Invariants enforced:
    - NON_NEGATIVE_BASE and BASE_CONSERVATION in ``BaseBreakdown``.
    - TAX_LINE_CONSERVATION in ``TaxBreakdown``.
    - LEASE_TERM_CONSISTENCY in ``LeaseBreakdown``.
    A violation raises ``InvariantViolationError``: it means the engine is
    wrong, never that the caller's data is.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from autotax_kernel.domain.deal import DealType, FeeItem
from autotax_kernel.domain.money import CENT, ZERO, clamp_non_negative
from autotax_kernel.domain.rules import LeaseMethod
from autotax_kernel.exceptions import InvariantViolationError
from autotax_kernel.invariants import CONSERVATION_TOLERANCE_CENTS, EngineInvariant


def _money(value: Decimal) -> str:
    return str(value)


@dataclass(frozen=True)
class BaseBreakdown:
    vehicle: Decimal
    fees: Decimal
    products: Decimal
    total: Decimal

    def __post_init__(self) -> None:
        for name in ("vehicle", "fees", "products", "total"):
            if getattr(self, name) < ZERO:
                raise InvariantViolationError(
                    EngineInvariant.NON_NEGATIVE_BASE.value,
                    f"{name} base is {getattr(self, name)}",
                )
        if self.vehicle + self.fees + self.products != self.total:
            raise InvariantViolationError(
                EngineInvariant.BASE_CONSERVATION.value,
                f"{self.vehicle} + {self.fees} + {self.products} != {self.total}",
            )

    @classmethod
    def of(cls, vehicle: Decimal, fees: Decimal, products: Decimal) -> BaseBreakdown:
        return cls(vehicle, fees, products, vehicle + fees + products)

    @classmethod
    def zero(cls) -> BaseBreakdown:
        return cls.of(ZERO, ZERO, ZERO)

    def scaled(self, factor: int) -> BaseBreakdown:
        return BaseBreakdown.of(self.vehicle * factor, self.fees * factor, self.products * factor)

    def __add__(self, other: BaseBreakdown) -> BaseBreakdown:
        return BaseBreakdown.of(
            self.vehicle + other.vehicle,
            self.fees + other.fees,
            self.products + other.products,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "vehicle": _money(self.vehicle),
            "fees": _money(self.fees),
            "products": _money(self.products),
            "total": _money(self.total),
        }


@dataclass(frozen=True)
class TaxLine:
    label: str
    rate: Decimal
    amount: Decimal

    def to_dict(self) -> dict[str, str]:
        return {"label": self.label, "rate": str(self.rate), "amount": _money(self.amount)}


@dataclass(frozen=True)
class TaxBreakdown:
    lines: tuple[TaxLine, ...]
    total: Decimal

    def __post_init__(self) -> None:
        line_sum = sum((line.amount for line in self.lines), ZERO)
        if abs(line_sum - self.total) > CENT * CONSERVATION_TOLERANCE_CENTS:
            raise InvariantViolationError(
                EngineInvariant.TAX_LINE_CONSERVATION.value,
                f"lines sum to {line_sum}, stated total {self.total}",
            )

    @classmethod
    def from_lines(cls, lines: Iterable[TaxLine]) -> TaxBreakdown:
        lines = tuple(lines)
        return cls(lines, sum((line.amount for line in lines), ZERO))

    @classmethod
    def empty(cls) -> TaxBreakdown:
        return cls((), ZERO)

    def with_amounts(self, amounts: Iterable[Decimal]) -> TaxBreakdown:
        """Same labels and rates, new amounts."""
        return TaxBreakdown.from_lines(
            TaxLine(line.label, line.rate, amount)
            for line, amount in zip(self.lines, amounts, strict=True)
        )

    def to_dict(self) -> dict[str, Any]:
        return {"lines": [line.to_dict() for line in self.lines], "total": _money(self.total)}


@dataclass(frozen=True)
class LeaseBreakdown:
    method: LeaseMethod | str
    payment_count: int
    upfront_base: Decimal
    upfront_tax: TaxBreakdown
    per_period_base: Decimal
    per_period_tax: TaxBreakdown
    total_tax_over_term: Decimal

    def __post_init__(self) -> None:
        expected = self.upfront_tax.total + self.per_period_tax.total * self.payment_count
        if expected != self.total_tax_over_term:
            raise InvariantViolationError(
                EngineInvariant.LEASE_TERM_CONSISTENCY.value,
                f"{self.upfront_tax.total} + {self.per_period_tax.total} x "
                f"{self.payment_count} != {self.total_tax_over_term}",
            )

    @classmethod
    def build(
        cls,
        method: LeaseMethod | str,
        payment_count: int,
        upfront_base: Decimal,
        upfront_tax: TaxBreakdown,
        per_period_base: Decimal,
        per_period_tax: TaxBreakdown,
    ) -> LeaseBreakdown:
        return cls(
            method=method,
            payment_count=payment_count,
            upfront_base=upfront_base,
            upfront_tax=upfront_tax,
            per_period_base=per_period_base,
            per_period_tax=per_period_tax,
            total_tax_over_term=upfront_tax.total + per_period_tax.total * payment_count,
        )

    def term_taxes(self) -> TaxBreakdown:
        """
        Per-component tax over the whole term.

        Components are matched by label; a component present in only one
        bucket contributes only that bucket's amount.
        """
        order: list[tuple[str, Decimal]] = []
        amounts: dict[str, Decimal] = {}
        for line in self.upfront_tax.lines:
            if line.label not in amounts:
                order.append((line.label, line.rate))
                amounts[line.label] = ZERO
            amounts[line.label] += line.amount
        for line in self.per_period_tax.lines:
            if line.label not in amounts:
                order.append((line.label, line.rate))
                amounts[line.label] = ZERO
            amounts[line.label] += line.amount * self.payment_count
        return TaxBreakdown.from_lines(
            TaxLine(label, rate, amounts[label]) for label, rate in order
        )

    def to_dict(self) -> dict[str, Any]:
        method = self.method.value if isinstance(self.method, LeaseMethod) else self.method
        return {
            "method": method,
            "payment_count": self.payment_count,
            "upfront_base": _money(self.upfront_base),
            "upfront_tax": self.upfront_tax.to_dict(),
            "per_period_base": _money(self.per_period_base),
            "per_period_tax": self.per_period_tax.to_dict(),
            "total_tax_over_term": _money(self.total_tax_over_term),
        }


@dataclass(frozen=True)
class DebugTrail:
    """Every adjustment behind a result, in the order it was decided."""

    applied_trade_in: Decimal = ZERO
    taxable_rebates: Decimal = ZERO
    non_taxable_rebates: Decimal = ZERO
    taxable_doc_fee: Decimal = ZERO
    taxable_fees: tuple[FeeItem, ...] = ()
    unmatched_fee_codes: tuple[str, ...] = ()
    taxable_service_contracts: Decimal = ZERO
    taxable_gap: Decimal = ZERO
    taxable_negative_equity: Decimal = ZERO
    reciprocity_credit: Decimal = ZERO
    notes: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "applied_trade_in": _money(self.applied_trade_in),
            "taxable_rebates": _money(self.taxable_rebates),
            "non_taxable_rebates": _money(self.non_taxable_rebates),
            "taxable_doc_fee": _money(self.taxable_doc_fee),
            "taxable_fees": [
                {"code": fee.code, "amount": _money(fee.amount)} for fee in self.taxable_fees
            ],
            "unmatched_fee_codes": list(self.unmatched_fee_codes),
            "taxable_service_contracts": _money(self.taxable_service_contracts),
            "taxable_gap": _money(self.taxable_gap),
            "taxable_negative_equity": _money(self.taxable_negative_equity),
            "reciprocity_credit": _money(self.reciprocity_credit),
            "notes": list(self.notes),
        }


@dataclass(frozen=True)
class TaxCalculationResult:
    """
    Complete, self-consistent outcome of one calculation.

    Contract:
        ``taxes.total`` is the tax owed on the deal. For leases it equals
        ``lease.total_tax_over_term`` and ``taxes.lines`` itemize each rate
        component over the whole term.
    """

    jurisdiction: str
    rules_version: int
    deal_type: DealType
    mode: str
    bases: BaseBreakdown
    taxes: TaxBreakdown
    debug: DebugTrail
    lease: LeaseBreakdown | None = None
    tax_already_collected: Decimal = ZERO

    @property
    def total_tax(self) -> Decimal:
        return self.taxes.total

    @property
    def balance_due(self) -> Decimal:
        return clamp_non_negative(self.taxes.total - self.tax_already_collected)

    def to_dict(self) -> dict[str, Any]:
        return {
            "jurisdiction": self.jurisdiction,
            "rules_version": self.rules_version,
            "deal_type": self.deal_type.value,
            "mode": self.mode,
            "bases": self.bases.to_dict(),
            "taxes": self.taxes.to_dict(),
            "lease": self.lease.to_dict() if self.lease is not None else None,
            "tax_already_collected": _money(self.tax_already_collected),
            "balance_due": _money(self.balance_due),
            "debug": self.debug.to_dict(),
        }
