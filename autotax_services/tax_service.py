"""
autotax_services.tax_service -- validated-rules cache and calculation facade.

Responsibility:
    Hold validated ``TaxRulesConfig`` objects for the process lifetime,
    keyed by (jurisdiction, version), and run single or side-by-side
    calculations against them.

Architecture position:
    Services -- stateful orchestration over config + engines.
    The engines stay pure; the only state here is the rules cache.

Invariants enforced:
    - A config is validated once before it enters the cache and is never
      mutated afterwards.
    - The engine never auto-selects a rule version: ``version=None`` means
      "the config this service was given or loaded for the jurisdiction",
      and the version used is always reported in the result.
    - A deal is only calculated under rules for its own jurisdiction.

Failure modes:
    - FileNotFoundError / ConfigInvalidError from the rules loader.
    - ConfigInvalidError when an explicit version is requested that is not
      cached.
    - InvalidInputError when the deal's jurisdiction does not match.
    - Any TaxEngineError from ``calculate`` propagates unchanged.

Usage:
    service = TaxCalculationService()
    result = service.calculate("US_IN", deal)
    scenarios = service.compare("US_IN", [deal_36, deal_48])
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from dataclasses import asdict
from pathlib import Path

from autotax_config import get_rules
from autotax_config.validator import validate_rules
from autotax_engines.calculator import calculate
from autotax_kernel.domain.deal import TaxCalculationInput
from autotax_kernel.domain.results import TaxCalculationResult
from autotax_kernel.domain.rules import TaxRulesConfig
from autotax_kernel.exceptions import ConfigInvalidError, InvalidInputError
from autotax_kernel.logging_config import LogContext, get_logger
from autotax_kernel.utils.hashing import hash_calculation

logger = get_logger("services.tax")

RulesLoader = Callable[[str], TaxRulesConfig]


class TaxCalculationService:
    """
    Calculation facade with a per-process rules cache.

    Contract:
        Thread-safe.  Configs are loaded lazily through ``rules_loader``
        (default: ``autotax_config.get_rules``) or registered explicitly
        with ``register_rules``.
    """

    def __init__(
        self,
        config_dir: Path | None = None,
        rules_loader: RulesLoader | None = None,
    ):
        self._loader: RulesLoader = rules_loader or (
            lambda jurisdiction: get_rules(jurisdiction, config_dir)
        )
        self._lock = threading.Lock()
        self._by_version: dict[tuple[str, int], TaxRulesConfig] = {}
        self._current: dict[str, TaxRulesConfig] = {}

    # ------------------------------------------------------------------
    # Rules cache
    # ------------------------------------------------------------------

    def register_rules(self, rules: TaxRulesConfig) -> TaxRulesConfig:
        """Validate ``rules`` and make it the current config for its jurisdiction."""
        validated = validate_rules(rules)
        with self._lock:
            self._by_version[(validated.jurisdiction, validated.version)] = validated
            self._current[validated.jurisdiction] = validated
        logger.info("rules_registered", extra={
            "jurisdiction": validated.jurisdiction,
            "rules_version": validated.version,
            "checksum": validated.checksum,
        })
        return validated

    def rules_for(self, jurisdiction: str, version: int | None = None) -> TaxRulesConfig:
        """Cached rules for ``jurisdiction``; loads on first use when no version is given."""
        with self._lock:
            if version is not None:
                cached = self._by_version.get((jurisdiction, version))
                if cached is None:
                    raise ConfigInvalidError(
                        "version",
                        f"rules version {version} for {jurisdiction} is not loaded",
                        version,
                    )
                return cached
            cached = self._current.get(jurisdiction)
            if cached is not None:
                return cached

        loaded = self._loader(jurisdiction)
        with self._lock:
            # Another thread may have loaded it meanwhile; keep the first.
            current = self._current.setdefault(jurisdiction, loaded)
            self._by_version.setdefault((current.jurisdiction, current.version), current)
        logger.info("rules_cached", extra={
            "jurisdiction": current.jurisdiction,
            "rules_version": current.version,
        })
        return current

    def cached_keys(self) -> list[tuple[str, int]]:
        with self._lock:
            return sorted(self._by_version)

    def clear(self) -> None:
        with self._lock:
            self._by_version.clear()
            self._current.clear()

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def calculate(
        self,
        jurisdiction: str,
        deal: TaxCalculationInput,
        version: int | None = None,
    ) -> TaxCalculationResult:
        if deal.jurisdiction != jurisdiction:
            raise InvalidInputError(
                "jurisdiction",
                f"deal is for {deal.jurisdiction}, rules requested for {jurisdiction}",
                deal.jurisdiction,
            )
        rules = self.rules_for(jurisdiction, version)
        fingerprint = hash_calculation(rules.checksum or "", asdict(deal))
        with LogContext.bind(correlation_id=fingerprint[:16]):
            logger.debug("calculation_requested", extra={
                "calculation_fingerprint": fingerprint,
            })
            return calculate(rules, deal)

    def compare(
        self,
        jurisdiction: str,
        deals: Sequence[TaxCalculationInput],
        version: int | None = None,
    ) -> list[TaxCalculationResult]:
        """
        Side-by-side scenarios under one config, results in input order.

        All scenarios use the same rules object, so differences between the
        results come from the deals alone.
        """
        rules = self.rules_for(jurisdiction, version)
        results = [self.calculate(jurisdiction, deal, rules.version) for deal in deals]
        logger.info("scenarios_compared", extra={
            "jurisdiction": jurisdiction,
            "rules_version": rules.version,
            "scenario_count": len(results),
            "total_taxes": [str(r.total_tax) for r in results],
        })
        return results
