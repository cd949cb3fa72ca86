"""
Tests for the rules and deal value objects: trade-in policy arithmetic,
rule lookups, reciprocity override matching and vehicle class resolution.
"""

from decimal import Decimal
from types import MappingProxyType

import pytest

from autotax_kernel.domain.deal import DealType, VehicleInfo
from autotax_kernel.domain.rules import (
    FeeTaxRule,
    RebateRule,
    RebateSource,
    ReciprocityOverride,
    ReciprocityRules,
    TradeInPolicy,
    VehicleClass,
)
from tests.builders import make_rules


class TestTradeInPolicy:

    @pytest.mark.parametrize("policy,expected", [
        (TradeInPolicy.full_credit(), "8000.00"),
        (TradeInPolicy.capped(Decimal("5000")), "5000.00"),
        (TradeInPolicy.capped(Decimal("9000")), "8000.00"),
        (TradeInPolicy.percent_of(Decimal("0.333")), "2664.00"),
        (TradeInPolicy.no_credit(), "0"),
    ])
    def test_credit_for(self, policy, expected):
        assert policy.credit_for(Decimal("8000")) == Decimal(expected)

    def test_credit_rounded_to_cents(self):
        assert TradeInPolicy.percent_of(Decimal("0.5")).credit_for(Decimal("100.01")) == Decimal("50.01")


class TestRuleLookups:

    def test_exact_rebate_rule_wins_over_any(self):
        rules = make_rules(rebates=(
            RebateRule(RebateSource.ANY, taxable=True),
            RebateRule(RebateSource.MANUFACTURER, taxable=False),
        ))
        assert rules.rebate_rule(RebateSource.MANUFACTURER).taxable is False
        assert rules.rebate_rule(RebateSource.DEALER).taxable is True

    def test_no_rebate_rule(self):
        assert make_rules(rebates=()).rebate_rule(RebateSource.DEALER) is None

    def test_fee_rule_by_code(self):
        rules = make_rules(fee_tax_rules=(FeeTaxRule("TITLE", taxable=False),))
        assert rules.fee_rule("TITLE").taxable is False
        assert rules.fee_rule("title") is None

    def test_standard_scheme_detection(self):
        assert make_rules().is_standard_scheme
        assert make_rules(vehicle_tax_scheme="STATE_ONLY").is_standard_scheme
        assert not make_rules(vehicle_tax_scheme="SPECIAL_HUT").is_standard_scheme

    def test_plain_dict_extras_frozen(self):
        rules = make_rules(extras={"nc_hut": {"rate": "0.03"}})
        with pytest.raises(TypeError):
            rules.extras["nc_hut"]["rate"] = "0.5"

    def test_proxy_extras_frozen_all_the_way_down(self):
        nested = {"rate": "0.03", "tiers": [{"up_to": "10000"}]}
        rules = make_rules(extras=MappingProxyType({"nc_hut": nested}))

        with pytest.raises(TypeError):
            rules.extras["nc_hut"]["rate"] = "0.5"
        assert isinstance(rules.extras["nc_hut"]["tiers"], tuple)
        nested["rate"] = "0.9"
        assert rules.extras["nc_hut"]["rate"] == "0.03"


class TestReciprocityOverrides:

    def setup_method(self):
        self.light = ReciprocityOverride("US_XX", max_gvw_lbs=26000, max_age_days=30)
        self.heavy = ReciprocityOverride("US_XX", min_gvw_lbs=26001, disallow_credit=True)
        self.wildcard = ReciprocityOverride("ALL", max_age_days=90)
        self.rules = ReciprocityRules(
            enabled=True, overrides=(self.wildcard, self.light, self.heavy)
        )

    def test_exact_origin_beats_wildcard(self):
        assert self.rules.find_override("US_XX", VehicleClass.PASSENGER, 5000) is self.light

    def test_weight_band_selects_override(self):
        assert self.rules.find_override("US_XX", VehicleClass.HEAVY_TRUCK, 40000) is self.heavy

    def test_unknown_weight_skips_banded_overrides(self):
        assert self.rules.find_override("US_XX", VehicleClass.PASSENGER, None) is self.wildcard

    def test_wildcard_for_other_origins(self):
        assert self.rules.find_override("US_YY", VehicleClass.PASSENGER, None) is self.wildcard

    def test_vehicle_class_filter(self):
        override = ReciprocityOverride("US_XX", vehicle_classes=frozenset({VehicleClass.RV}))
        assert override.applies_to_vehicle(VehicleClass.RV, None)
        assert not override.applies_to_vehicle(VehicleClass.PASSENGER, None)

    def test_no_overrides(self):
        assert ReciprocityRules().find_override("US_XX", VehicleClass.PASSENGER, None) is None


class TestVehicleClassResolution:

    @pytest.mark.parametrize("vehicle,expected", [
        (VehicleInfo(vehicle_class=VehicleClass.RV, gvw_lbs=40000), VehicleClass.RV),
        (VehicleInfo(vehicle_type="pickup"), VehicleClass.LIGHT_TRUCK),
        (VehicleInfo(vehicle_type="rv"), VehicleClass.RV),
        (VehicleInfo(vehicle_type="hovercraft", gvw_lbs=9000), VehicleClass.PASSENGER),
        (VehicleInfo(gvw_lbs=10000), VehicleClass.PASSENGER),
        (VehicleInfo(gvw_lbs=10001), VehicleClass.LIGHT_TRUCK),
        (VehicleInfo(gvw_lbs=26000), VehicleClass.LIGHT_TRUCK),
        (VehicleInfo(gvw_lbs=26001), VehicleClass.HEAVY_TRUCK),
        (VehicleInfo(), VehicleClass.PASSENGER),
    ])
    def test_resolved_class(self, vehicle, expected):
        assert vehicle.resolved_class() is expected


class TestDealType:

    def test_retail_types(self):
        assert DealType.CASH.is_retail
        assert DealType.FINANCE.is_retail
        assert not DealType.LEASE.is_retail
