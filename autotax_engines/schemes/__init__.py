"""
Special tax schemes.

Importing this package registers every bundled scheme with
``SchemeRegistry``.
"""

from autotax_engines.schemes.registry import (
    SchemeOutcome,
    SchemeRegistry,
    SpecialScheme,
    register_scheme,
)

# Self-registering strategies
from autotax_engines.schemes import hut, privilege, tavt  # noqa: F401, E402

__all__ = [
    "SchemeOutcome",
    "SchemeRegistry",
    "SpecialScheme",
    "register_scheme",
]
