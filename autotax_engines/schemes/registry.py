"""SchemeRegistry -- scheme id to SpecialScheme strategy dispatch."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar

from autotax_kernel.domain.audit import AuditTrailBuilder
from autotax_kernel.domain.deal import DealType, TaxCalculationInput
from autotax_kernel.domain.money import ZERO
from autotax_kernel.domain.results import BaseBreakdown, LeaseBreakdown, TaxBreakdown
from autotax_kernel.domain.rules import TaxRulesConfig
from autotax_kernel.exceptions import ConfigInvalidError, UnsupportedSchemeError

# (field, reason) pairs reported by SpecialScheme.validate_extras
ExtrasProblem = tuple[str, str]


@dataclass(frozen=True)
class SchemeOutcome:
    """What a special scheme hands back to the calculator, before reciprocity."""

    bases: BaseBreakdown
    taxes: TaxBreakdown
    lease: LeaseBreakdown | None = None


class SpecialScheme(ABC):
    """
    A self-contained alternative tax regime.

    A scheme replaces base computation, lease timing and rate application
    entirely. It consumes the same deal snapshot as the standard path and
    reads its parameters from ``rules.extras[extras_key]``.
    """

    scheme_id: ClassVar[str]
    extras_key: ClassVar[str]
    line_label: ClassVar[str]
    version: ClassVar[str] = "1.0"

    @abstractmethod
    def validate_extras(self, params: Mapping[str, Any] | None) -> list[ExtrasProblem]:
        """Problems with this scheme's parameter section; empty when valid."""

    @abstractmethod
    def compute(
        self,
        rules: TaxRulesConfig,
        deal: TaxCalculationInput,
        trail: AuditTrailBuilder,
    ) -> SchemeOutcome:
        ...

    # Helpers shared by the concrete schemes

    def params(self, rules: TaxRulesConfig) -> Mapping[str, Any]:
        params = rules.extras.get(self.extras_key)
        if params is None:
            raise ConfigInvalidError(
                f"extras.{self.extras_key}",
                f"{self.scheme_id} requires a parameter section",
            )
        return params

    def rate_param(self, params: Mapping[str, Any], key: str) -> Decimal:
        return _as_decimal(params.get(key), f"extras.{self.extras_key}.{key}")

    def rate_problems(self, params: Mapping[str, Any], key: str, required: bool = True) -> list[ExtrasProblem]:
        field = f"extras.{self.extras_key}.{key}"
        value = params.get(key)
        if value is None:
            return [(field, "rate is required")] if required else []
        try:
            rate = _as_decimal(value, field)
        except ConfigInvalidError as exc:
            return [(field, exc.reason)]
        if rate < ZERO or rate > Decimal("1"):
            return [(field, "rate must be between 0 and 1")]
        return []

    def upfront_only_lease(
        self,
        deal: TaxCalculationInput,
        bases: BaseBreakdown,
        taxes: TaxBreakdown,
        trail: AuditTrailBuilder,
    ) -> LeaseBreakdown | None:
        """Special schemes levy lease tax once, upfront."""
        if deal.deal_type is not DealType.LEASE or deal.lease is None:
            return None
        trail.note(f"{self.scheme_id} lease tax is due upfront; no per-payment tax")
        return LeaseBreakdown.build(
            method=self.scheme_id,
            payment_count=deal.lease.payment_count,
            upfront_base=bases.total,
            upfront_tax=taxes,
            per_period_base=ZERO,
            per_period_tax=TaxBreakdown.empty(),
        )


def _as_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ConfigInvalidError(field, "must be a number", value)
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ConfigInvalidError(field, "must be a number", value) from None


class SchemeRegistry:
    """Registry for special tax schemes."""

    # Class-level registry for all schemes
    _schemes: ClassVar[dict[str, SpecialScheme]] = {}

    @classmethod
    def register(cls, scheme: SpecialScheme) -> None:
        if scheme.scheme_id in cls._schemes:
            existing = cls._schemes[scheme.scheme_id]
            raise ValueError(
                f"Scheme already registered for {scheme.scheme_id}: "
                f"{existing.__class__.__name__}"
            )
        cls._schemes[scheme.scheme_id] = scheme

    @classmethod
    def get(cls, scheme_id: str, field: str = "vehicle_tax_scheme") -> SpecialScheme:
        scheme = cls._schemes.get(scheme_id)
        if scheme is None:
            raise UnsupportedSchemeError(scheme_id, field)
        return scheme

    @classmethod
    def has_scheme(cls, scheme_id: str) -> bool:
        return scheme_id in cls._schemes

    @classmethod
    def list_scheme_ids(cls) -> list[str]:
        return sorted(cls._schemes)

    @classmethod
    def unregister(cls, scheme_id: str) -> None:
        """Remove a scheme. FOR TESTING ONLY."""
        cls._schemes.pop(scheme_id, None)


def register_scheme(scheme_cls: type[SpecialScheme]) -> type[SpecialScheme]:
    """Class decorator: instantiate and register a scheme on import."""
    SchemeRegistry.register(scheme_cls())
    return scheme_cls
