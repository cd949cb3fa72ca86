"""
autotax_services -- hosting helpers around the pure engine.

    TaxCalculationService   rules cache per (jurisdiction, version),
                            calculate() and compare()
    calculate_json          JSON documents in, JSON document out
    parse_deal              canonical deal payload -> TaxCalculationInput
"""

from autotax_services.boundary import calculate_json, calculate_payload
from autotax_services.codec import parse_deal
from autotax_services.tax_service import TaxCalculationService

__all__ = [
    "TaxCalculationService",
    "calculate_json",
    "calculate_payload",
    "parse_deal",
]
