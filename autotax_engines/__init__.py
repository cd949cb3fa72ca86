"""
Pure tax calculation engines.

All engines are pure: no I/O, no clock access, no shared mutable state.
They consume a validated ``TaxRulesConfig`` and a ``TaxCalculationInput``
and produce immutable results.

Modules:
    rates        Rate components to itemized tax lines.
    base         Cash/finance taxable base.
    lease        Lease timing methods (cap cost, cap reduction, payment).
    reciprocity  Credit for tax paid to a prior jurisdiction.
    schemes      Special schemes that replace the standard pipeline.
    calculator   ``calculate(rules, deal)``, the single entry point.
"""

from autotax_engines.calculator import calculate, resolve_scheme
from autotax_engines.schemes import SchemeRegistry, SpecialScheme

__all__ = [
    "calculate",
    "resolve_scheme",
    "SchemeRegistry",
    "SpecialScheme",
]
