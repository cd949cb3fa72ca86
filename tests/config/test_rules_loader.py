"""
Tests for rules payload parsing (autotax_config.loader).

Covers required fields, enum parsing, dotted error paths, Decimal
conversion of YAML floats, immutability of the parsed config and checksum
determinism.
"""

import dataclasses
from decimal import Decimal

import pytest
import yaml

from autotax_config.loader import compute_checksum, load_yaml_file, parse_rules
from autotax_kernel.domain.rules import (
    LeaseMethod,
    RebateSource,
    ReciprocityMode,
    STATE_PLUS_LOCAL,
    TradeInPolicyType,
    VehicleClass,
)
from autotax_kernel.exceptions import ConfigInvalidError
from tests.builders import rules_payload


class TestParseRules:
    """Happy-path parsing into the frozen model."""

    def test_minimal_payload(self):
        config = parse_rules(rules_payload())

        assert config.jurisdiction == "US_TS"
        assert config.version == 1
        assert config.trade_in_policy.type is TradeInPolicyType.FULL_CREDIT
        assert config.lease_rules.method is LeaseMethod.PAYMENT
        assert config.rebate_rule(RebateSource.DEALER).taxable is True
        assert config.fee_rule("ACQUISITION_FEE").taxable is True
        assert config.vehicle_tax_scheme == STATE_PLUS_LOCAL

    def test_defaults_for_optional_fields(self):
        payload = rules_payload()
        del payload["vehicle_tax_scheme"]
        del payload["reciprocity"]

        config = parse_rules(payload)

        assert config.vehicle_tax_scheme == STATE_PLUS_LOCAL
        assert config.tax_on_accessories is True
        assert config.local_sales_tax_applies is True
        assert config.reciprocity.enabled is False
        assert config.lease_rules.tax_fees_upfront is True

    def test_yaml_float_parsed_exactly(self):
        payload = rules_payload(trade_in_policy={"type": "PERCENT", "percent": 0.07})
        config = parse_rules(payload)
        assert config.trade_in_policy.percent == Decimal("0.07")

    def test_capped_policy(self):
        payload = rules_payload(trade_in_policy={"type": "CAPPED", "cap_amount": 5000})
        assert parse_rules(payload).trade_in_policy.cap_amount == Decimal("5000")

    def test_lease_special_scheme_none_means_no_override(self):
        payload = rules_payload(lease_rules={"method": "PAYMENT", "special_scheme": "NONE"})
        assert parse_rules(payload).lease_rules.special_scheme is None

    def test_reciprocity_section(self):
        payload = rules_payload(reciprocity={
            "enabled": True,
            "home_state_behavior": "CREDIT_UP_TO_STATE_RATE",
            "exempt_jurisdictions": ["US_OR", "US_NH"],
            "overrides": [{
                "origin_jurisdiction": "US_XX",
                "max_age_days": 90,
                "vehicle_classes": ["LIGHT_TRUCK"],
            }],
        })

        reciprocity = parse_rules(payload).reciprocity

        assert reciprocity.home_state_behavior is ReciprocityMode.CREDIT_UP_TO_STATE_RATE
        assert reciprocity.exempt_jurisdictions == frozenset({"US_OR", "US_NH"})
        override = reciprocity.overrides[0]
        assert override.max_age_days == 90
        assert override.vehicle_classes == frozenset({VehicleClass.LIGHT_TRUCK})
        assert override.require_proof_of_tax_paid is None

    def test_lists_become_tuples(self):
        config = parse_rules(rules_payload())
        assert isinstance(config.rebates, tuple)
        assert isinstance(config.fee_tax_rules, tuple)


class TestParseErrors:
    """Every parse error names the dotted path of the offending field."""

    @pytest.mark.parametrize("payload,field", [
        ({**rules_payload(), "lease_rules": {}}, "lease_rules.method"),
        ({**rules_payload(), "lease_rules": {"method": "WEEKLY"}}, "lease_rules.method"),
        ({**rules_payload(), "trade_in_policy": {}}, "trade_in_policy.type"),
        ({**rules_payload(), "trade_in_policy": {"type": "HALF"}}, "trade_in_policy.type"),
        ({**rules_payload(), "version": "1"}, "version"),
        ({**rules_payload(), "version": True}, "version"),
        ({**rules_payload(), "rebates": [{"applies_to": "DEALER"}]}, "rebates[0].taxable"),
        ({**rules_payload(), "rebates": ["DEALER"]}, "rebates[0]"),
        ({**rules_payload(), "fee_tax_rules": [{"code": "X", "taxable": "yes"}]}, "fee_tax_rules[0].taxable"),
        ({**rules_payload(), "doc_fee_taxable": "no"}, "doc_fee_taxable"),
        ({**rules_payload(), "reciprocity": {"overrides": [{"max_age_days": 90}]}},
         "reciprocity.overrides[0].origin_jurisdiction"),
        ({**rules_payload(), "reciprocity": {"overrides": [
            {"origin_jurisdiction": "ALL", "vehicle_classes": ["BOAT"]}]}},
         "reciprocity.overrides[0].vehicle_classes[0]"),
        ({**rules_payload(), "extras": ["not", "a", "mapping"]}, "extras"),
    ])
    def test_field_named(self, payload, field):
        with pytest.raises(ConfigInvalidError) as exc_info:
            parse_rules(payload)
        assert exc_info.value.field == field
        assert exc_info.value.code == "CONFIG_INVALID"

    def test_missing_jurisdiction(self):
        payload = rules_payload()
        del payload["jurisdiction"]
        with pytest.raises(ConfigInvalidError) as exc_info:
            parse_rules(payload)
        assert exc_info.value.field == "jurisdiction"

    def test_unknown_enum_lists_allowed_values(self):
        with pytest.raises(ConfigInvalidError) as exc_info:
            parse_rules(rules_payload(lease_rules={"method": "WEEKLY"}))
        assert "CAP_COST, CAP_REDUCTION, PAYMENT" in str(exc_info.value)

    def test_non_mapping_root(self):
        with pytest.raises(ConfigInvalidError) as exc_info:
            parse_rules(["jurisdiction", "US_TS"])
        assert exc_info.value.field == "<root>"


class TestImmutability:

    def test_config_is_frozen(self):
        config = parse_rules(rules_payload())
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.version = 2

    def test_extras_read_only(self):
        config = parse_rules(rules_payload(extras={"doc_fee_cap_amount": 250}))
        with pytest.raises(TypeError):
            config.extras["doc_fee_cap_amount"] = 999

    def test_nested_extras_read_only(self):
        config = parse_rules(rules_payload(extras={"nc_hut": {"rate": 0.03}}))
        with pytest.raises(TypeError):
            config.extras["nc_hut"]["rate"] = 0.5


class TestChecksum:

    def test_deterministic(self):
        assert parse_rules(rules_payload()).checksum == parse_rules(rules_payload()).checksum

    def test_key_order_irrelevant(self):
        payload = rules_payload()
        reordered = dict(reversed(list(payload.items())))
        assert compute_checksum(payload) == compute_checksum(reordered)

    def test_changes_with_content(self):
        assert compute_checksum(rules_payload()) != compute_checksum(rules_payload(version=2))

    def test_checksum_excluded_from_equality(self):
        a = parse_rules(rules_payload())
        b = dataclasses.replace(a, checksum="other")
        assert a == b


class TestLoadYamlFile:

    def test_loads_mapping(self, tmp_path):
        path = tmp_path / "US_TS.yaml"
        path.write_text(yaml.safe_dump(rules_payload()))
        assert load_yaml_file(path)["jurisdiction"] == "US_TS"

    def test_empty_file_is_empty_mapping(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml_file(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("jurisdiction: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_yaml_file(path)
