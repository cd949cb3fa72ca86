"""
Deterministic hashing utilities.

Rules checksums and calculation fingerprints must be reproducible across
processes and hosts, so every hash goes through ``canonicalize_json``.
"""

import hashlib
import json
from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any


def _canonical_value(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # 1.10 and 1.1 are the same amount
        return str(obj.normalize())
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Mapping):
        return dict(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    raise TypeError(f"Cannot canonicalize {type(obj).__name__} for hashing")


def canonicalize_json(data: Any) -> str:
    """Sorted keys, no whitespace, Decimals normalized, enums by value."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_canonical_value,
    )


def hash_payload(payload: Mapping[str, Any]) -> str:
    """Hex SHA-256 of the canonical form of ``payload``."""
    canonical = canonicalize_json(dict(payload))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_calculation(rules_checksum: str, deal: Mapping[str, Any]) -> str:
    """
    Fingerprint one (rules, deal) pair.

    Equal fingerprints mean bit-identical results, so the value works as a
    cache or replay key and as the correlation id of a calculation.
    """
    return hash_payload({"rules": rules_checksum, "deal": dict(deal)})
