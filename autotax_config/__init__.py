"""
autotax_config -- jurisdiction rules pipeline.

Responsibility:
    Loads bundled (or caller-supplied) jurisdiction rule files, validates
    them and returns immutable ``TaxRulesConfig`` objects.
    ``get_rules()`` is the runtime entry point; ``validate_rules()`` turns an
    already-loaded payload (YAML/JSON dict) into a validated config.

Architecture position:
    Configuration -- sits above ``autotax_kernel`` and ``autotax_engines``
    and below ``autotax_services``.  The kernel and engines MUST NEVER
    import from ``autotax_config``.

Invariants enforced:
    - Every config returned here has passed ``validate_config``.
    - Deterministic checksums: the same payload always produces the same
      ``TaxRulesConfig.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- no rule file for the requested jurisdiction.
    - ``ConfigInvalidError`` -- structural or consistency failure, naming
      the offending field.

Audit relevance:
    Every successful ``get_rules()`` call emits an ``AUTOTAX_RULES_TRACE``
    log entry with jurisdiction, version and checksum, tying each
    calculation back to the exact rule data that governed it.
"""

from __future__ import annotations

from pathlib import Path

from autotax_kernel.domain.rules import TaxRulesConfig
from autotax_kernel.exceptions import ConfigInvalidError
from autotax_kernel.logging_config import get_logger

from autotax_config.loader import load_yaml_file, parse_rules
from autotax_config.validator import (
    ConfigIssue,
    ConfigValidationResult,
    validate_config,
    validate_rules,
)

_logger = get_logger("config")

# Bundled jurisdiction rule files
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "rules"


def get_rules(jurisdiction: str, config_dir: Path | None = None) -> TaxRulesConfig:
    """Load and validate the rules for one jurisdiction.

    Contract:
        Reads ``<config_dir>/<JURISDICTION>.yaml`` and returns the validated
        config.  The file's ``jurisdiction`` field must match the request.

    Non-goals:
        - This function does NOT cache; ``TaxCalculationService`` holds
          validated configs for the process lifetime.
        - It never picks a version: each file holds exactly one version and
          the caller decides which file set to point at.

    Args:
        jurisdiction: Jurisdiction code, e.g. ``"US_IN"``.
        config_dir: Directory of rule files.  Defaults to the bundled
            ``autotax_config/rules/``.

    Raises:
        FileNotFoundError: If no rule file exists for ``jurisdiction``.
        ConfigInvalidError: If the file fails parsing or validation.
    """
    rules_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = rules_dir / f"{jurisdiction.upper()}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"No rules file for jurisdiction {jurisdiction}: {path}")

    config = validate_rules(load_yaml_file(path))
    if config.jurisdiction != jurisdiction.upper():
        raise ConfigInvalidError(
            "jurisdiction",
            f"file {path.name} declares a different jurisdiction",
            config.jurisdiction,
        )

    _logger.info(
        "AUTOTAX_RULES_TRACE",
        extra={
            "trace_type": "AUTOTAX_RULES_TRACE",
            "jurisdiction": config.jurisdiction,
            "rules_version": config.version,
            "checksum": config.checksum,
            "vehicle_tax_scheme": config.vehicle_tax_scheme,
            "lease_method": config.lease_rules.method.value,
            "source": str(path),
        },
    )
    return config


def available_jurisdictions(config_dir: Path | None = None) -> list[str]:
    """Jurisdiction codes that have a rule file in ``config_dir``."""
    rules_dir = config_dir or _DEFAULT_CONFIG_DIR
    if not rules_dir.is_dir():
        return []
    return sorted(p.stem for p in rules_dir.glob("*.yaml"))


__all__ = [
    "ConfigIssue",
    "ConfigValidationResult",
    "available_jurisdictions",
    "get_rules",
    "load_yaml_file",
    "parse_rules",
    "validate_config",
    "validate_rules",
]
