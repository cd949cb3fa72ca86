"""
Engine Invariants Contract.

These invariants hold for every calculation regardless of jurisdiction.
No rules payload, extension key or special scheme may switch them off.

This module exists solely to declare them explicitly. Enforcement lives in
``autotax_kernel.domain.results`` (self-checks on construction) and in
``autotax_engines.calculator``.
"""

from enum import Enum, unique


@unique
class EngineInvariant(str, Enum):
    """Non-configurable guarantees of the calculation engine.

    Rules decide *what* is taxed and at which rate, never *whether* these
    hold.
    """

    NON_NEGATIVE_BASE = "non_negative_base"
    """Every taxable-base component is clamped to >= 0 after all
    adjustments. Checked by BaseBreakdown."""

    BASE_CONSERVATION = "base_conservation"
    """Total base equals vehicle + fees + products exactly. Checked by
    BaseBreakdown."""

    TAX_LINE_CONSERVATION = "tax_line_conservation"
    """Itemized tax lines sum to the stated total within one cent. Checked by
    TaxBreakdown."""

    LEASE_TERM_CONSISTENCY = "lease_term_consistency"
    """total_tax_over_term == upfront tax + per-period tax x payment_count.
    Checked by LeaseBreakdown."""

    RECIPROCITY_BOUND = "reciprocity_bound"
    """An applied reciprocity credit never exceeds the prior tax paid, never
    exceeds this jurisdiction's tax when capping is on, and never drives tax
    below zero. Enforced by autotax_engines.reciprocity."""

    CONFIG_IMMUTABILITY = "config_immutability"
    """Rules configs are frozen reference data and are never mutated by a
    calculation. Enforced by frozen dataclasses and read-only mappings."""

    PURITY = "purity"
    """Identical (rules, deal) inputs yield identical results. Engines read
    no clock, perform no I/O and keep no state between calls."""


# All invariants as a frozenset for programmatic checks.
ALL_ENGINE_INVARIANTS: frozenset[EngineInvariant] = frozenset(EngineInvariant)

# Tolerance for the one-cent conservation checks.
CONSERVATION_TOLERANCE_CENTS = 1

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_layer_boundaries.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "autotax_engines",
    "autotax_config",
    "autotax_services",
)

# The engines package may not import from these packages.
FORBIDDEN_ENGINE_IMPORTS: tuple[str, ...] = (
    "autotax_config",
    "autotax_services",
)
