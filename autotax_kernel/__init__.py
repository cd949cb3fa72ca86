"""
autotax kernel - pure domain layer for vehicle sales/use tax.

Provides:
- Typed, coded exceptions
- Structured JSON logging
- Immutable rules, deal and result models
- Cent-exact money helpers and the audit trail builder

Nothing in this package performs I/O or reads the clock.
"""

__version__ = "0.1.0"
