"""Tests for canonical JSON and payload hashing (autotax_kernel.utils.hashing)."""

from dataclasses import asdict
from datetime import date
from decimal import Decimal

import pytest

from autotax_kernel.domain.deal import DealType
from autotax_kernel.utils.hashing import canonicalize_json, hash_calculation, hash_payload
from tests.builders import make_deal


class TestCanonicalizeJson:

    def test_sorted_and_compact(self):
        assert canonicalize_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_domain_types(self):
        payload = {
            "amount": Decimal("1.10"),
            "type": DealType.LEASE,
            "on": date(2025, 6, 1),
            "codes": frozenset({"TITLE", "DOC"}),
        }
        assert canonicalize_json(payload) == (
            '{"amount":"1.1","codes":["DOC","TITLE"],"on":"2025-06-01","type":"LEASE"}'
        )

    def test_unsupported_type(self):
        with pytest.raises(TypeError, match="object"):
            canonicalize_json({"x": object()})


class TestHashes:

    def test_equal_amounts_hash_equal(self):
        assert hash_payload({"rate": Decimal("0.070")}) == hash_payload({"rate": Decimal("0.07")})

    def test_key_order_irrelevant(self):
        assert hash_payload({"a": 1, "b": 2}) == hash_payload({"b": 2, "a": 1})

    def test_sha256_hex(self):
        digest = hash_payload({"a": 1})
        assert len(digest) == 64
        int(digest, 16)

    def test_calculation_fingerprint(self):
        deal = asdict(make_deal())
        same = hash_calculation("abc", deal)

        assert same == hash_calculation("abc", asdict(make_deal()))
        assert same != hash_calculation("abd", deal)
        assert same != hash_calculation("abc", asdict(make_deal(vehicle_price=Decimal("30001"))))
