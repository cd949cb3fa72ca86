"""Audit trail builder -- accumulates every adjustment a calculation makes."""

from __future__ import annotations

from decimal import Decimal

from autotax_kernel.domain.deal import FeeItem
from autotax_kernel.domain.money import ZERO
from autotax_kernel.domain.results import DebugTrail


class AuditTrailBuilder:
    """
    Call-local accumulator behind ``DebugTrail``.

    One builder per calculation; engines record into it as they decide and
    ``build()`` freezes the result. Amount setters accumulate so a scheme
    may record, say, dealer and manufacturer rebates separately.
    """

    def __init__(self) -> None:
        self.applied_trade_in = ZERO
        self.taxable_rebates = ZERO
        self.non_taxable_rebates = ZERO
        self.taxable_doc_fee = ZERO
        self.taxable_service_contracts = ZERO
        self.taxable_gap = ZERO
        self.taxable_negative_equity = ZERO
        self.reciprocity_credit = ZERO
        self._taxable_fees: list[FeeItem] = []
        self._unmatched_fee_codes: list[str] = []
        self._notes: list[str] = []

    def note(self, message: str) -> None:
        self._notes.append(message)

    def taxable_fee(self, code: str, amount: Decimal) -> None:
        self._taxable_fees.append(FeeItem(code, amount))

    def unmatched_fee(self, code: str) -> None:
        if code not in self._unmatched_fee_codes:
            self._unmatched_fee_codes.append(code)
        self.note(
            f"Fee code {code} has no tax rule for this jurisdiction; treated as "
            f"non-taxable (coverage gap, confirm with jurisdiction)"
        )

    @property
    def notes(self) -> tuple[str, ...]:
        return tuple(self._notes)

    def build(self) -> DebugTrail:
        return DebugTrail(
            applied_trade_in=self.applied_trade_in,
            taxable_rebates=self.taxable_rebates,
            non_taxable_rebates=self.non_taxable_rebates,
            taxable_doc_fee=self.taxable_doc_fee,
            taxable_fees=tuple(self._taxable_fees),
            unmatched_fee_codes=tuple(self._unmatched_fee_codes),
            taxable_service_contracts=self.taxable_service_contracts,
            taxable_gap=self.taxable_gap,
            taxable_negative_equity=self.taxable_negative_equity,
            reciprocity_credit=self.reciprocity_credit,
            notes=tuple(self._notes),
        )
