"""Utility modules for the autotax kernel."""

from autotax_kernel.utils.hashing import (
    canonicalize_json,
    hash_calculation,
    hash_payload,
)

__all__ = [
    "canonicalize_json",
    "hash_calculation",
    "hash_payload",
]
