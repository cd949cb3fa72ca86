"""
Tests for the JSON-in / JSON-out boundary (autotax_services.boundary).

Covers the success envelope, the structured error envelope for each error
kind, Decimal decoding and output determinism.
"""

import json

from autotax_services.boundary import calculate_json, calculate_payload
from tests.builders import deal_payload, rules_payload


def _run(rules=None, deal=None):
    rules_json = json.dumps(rules if rules is not None else rules_payload())
    deal_json = json.dumps(deal if deal is not None else deal_payload())
    return json.loads(calculate_json(rules_json, deal_json))


class TestSuccess:

    def test_ok_envelope(self):
        output = _run()

        assert output["ok"] is True
        result = output["result"]
        assert result["jurisdiction"] == "US_TS"
        assert result["rules_version"] == 1
        assert result["deal_type"] == "CASH"
        assert result["taxes"]["total"] == "1800.00"
        assert result["balance_due"] == "1800.00"
        assert result["lease"] is None

    def test_json_numbers_decoded_exactly(self):
        rules_json = json.dumps(rules_payload())
        deal_json = (
            '{"jurisdiction": "US_TS", "as_of_date": "2025-06-01", "deal_type": "CASH", '
            '"vehicle_price": 19999.99, "rates": [{"label": "STATE", "rate": 0.07}]}'
        )

        output = json.loads(calculate_json(rules_json, deal_json))

        assert output["ok"] is True
        assert output["result"]["taxes"]["total"] == "1400.00"

    def test_lease_result(self):
        deal = deal_payload(
            deal_type="LEASE",
            lease={"gross_cap_cost": "30000", "base_payment": "400", "payment_count": 36},
        )

        result = _run(deal=deal)["result"]

        assert result["lease"]["per_period_tax"]["total"] == "24.00"
        assert result["lease"]["total_tax_over_term"] == "864.00"
        assert result["taxes"]["total"] == "864.00"

    def test_output_deterministic(self):
        rules_json = json.dumps(rules_payload())
        deal_json = json.dumps(deal_payload(trade_in_value="5000"))
        assert calculate_json(rules_json, deal_json) == calculate_json(rules_json, deal_json)

    def test_payload_variant_matches_json_variant(self):
        from_payload = calculate_payload(rules_payload(), deal_payload())
        from_json = _run()
        assert json.loads(json.dumps(from_payload)) == from_json


class TestErrors:
    """Every failure is a structured error envelope, never a partial result."""

    def _error(self, **kwargs):
        output = _run(**kwargs)
        assert output["ok"] is False
        assert "result" not in output
        return output["error"]

    def test_malformed_input_document(self):
        output = json.loads(calculate_json(json.dumps(rules_payload()), "{not json"))
        assert output["ok"] is False
        assert output["error"]["code"] == "INVALID_INPUT"
        assert output["error"]["field"] == "<input>"

    def test_malformed_rules_document(self):
        output = json.loads(calculate_json("[1, 2", json.dumps(deal_payload())))
        assert output["error"]["code"] == "CONFIG_INVALID"
        assert output["error"]["field"] == "<rules>"

    def test_invalid_rules(self):
        error = self._error(rules=rules_payload(trade_in_policy={"type": "PERCENT", "percent": "2"}))
        assert error["code"] == "CONFIG_INVALID"
        assert error["field"] == "trade_in_policy.percent"

    def test_unknown_scheme_rejected_by_validation(self):
        error = self._error(rules=rules_payload(vehicle_tax_scheme="SPECIAL_XYZ"))
        assert error["code"] == "CONFIG_INVALID"
        assert error["field"] == "vehicle_tax_scheme"

    def test_negative_price(self):
        error = self._error(deal=deal_payload(vehicle_price="-1"))
        assert error["code"] == "INVALID_INPUT"
        assert error["field"] == "vehicle_price"
        assert error["value"] == "-1"

    def test_float_in_python_payload_rejected(self):
        output = calculate_payload(rules_payload(), deal_payload(vehicle_price=30000.0))
        assert output["ok"] is False
        assert output["error"]["field"] == "vehicle_price"

    def test_lease_without_terms(self):
        error = self._error(deal=deal_payload(deal_type="LEASE"))
        assert error["code"] == "INVALID_INPUT"
        assert error["field"] == "lease"

    def test_missing_required_field(self):
        deal = deal_payload()
        del deal["as_of_date"]
        error = self._error(deal=deal)
        assert error["field"] == "as_of_date"

    def test_rejection_logged(self, captured_logs):
        _run(deal=deal_payload(vehicle_price="-1"))
        rejected = [r for r in captured_logs() if r["message"] == "calculation_rejected"]
        assert rejected[0]["error_code"] == "INVALID_INPUT"
        assert rejected[0]["error_field"] == "vehicle_price"
