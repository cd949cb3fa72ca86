#!/usr/bin/env python3
"""
Calculate the tax on one deal (or several lease/finance scenarios) from
the command line.

Usage:
  python3 scripts/calculate_deal.py --jurisdiction US_IN --deal deal.json
  python3 scripts/calculate_deal.py --rules my_rules.yaml --deal deal.json [--json]
  python3 scripts/calculate_deal.py --jurisdiction US_OH --deal a.json --deal b.json
  python3 scripts/calculate_deal.py --rules my_rules.yaml --validate-only

--jurisdiction loads the bundled rules for that code; --rules validates an
arbitrary YAML rules file instead.  Each --deal file holds one canonical
deal payload (JSON).  With more than one --deal the scenarios are printed
side by side.

Exit status: 0 on success, 1 on a rules/input error, 2 on usage errors.
"""

from __future__ import annotations

import argparse
import json
import sys
from decimal import Decimal
from pathlib import Path

from autotax_config import get_rules, load_yaml_file, validate_config, validate_rules
from autotax_config.loader import parse_rules
from autotax_kernel.domain.results import TaxCalculationResult
from autotax_kernel.domain.rules import TaxRulesConfig
from autotax_kernel.exceptions import TaxEngineError
from autotax_kernel.logging_config import configure_logging
from autotax_services import TaxCalculationService, parse_deal


def load_rules(args: argparse.Namespace) -> TaxRulesConfig:
    if args.rules:
        return validate_rules(load_yaml_file(Path(args.rules)))
    return get_rules(args.jurisdiction)


def load_deal_payload(path: Path) -> dict:
    with open(path, encoding="utf-8") as f:
        return json.load(f, parse_float=Decimal)


def print_validation(path: Path) -> int:
    config = parse_rules(load_yaml_file(path))
    result = validate_config(config)
    print(f"Rules: {config.jurisdiction} v{config.version}  checksum {config.checksum[:16]}...")
    for issue in result.errors:
        print(f"  ERROR:   {issue}")
    for issue in result.warnings:
        print(f"  WARNING: {issue}")
    print("VALID" if result.is_valid else "INVALID")
    return 0 if result.is_valid else 1


def print_result(result: TaxCalculationResult) -> None:
    print(f"{result.jurisdiction} v{result.rules_version}  {result.deal_type.value}  mode={result.mode}")
    bases = result.bases
    print(f"  Base: vehicle {bases.vehicle}  fees {bases.fees}  products {bases.products}  total {bases.total}")
    for line in result.taxes.lines:
        print(f"  {line.label:<16} {line.rate:>10}  {line.amount:>12}")
    print(f"  {'TOTAL TAX':<16} {'':>10}  {result.total_tax:>12}")
    if result.lease is not None:
        lease = result.lease
        print(
            f"  Lease: upfront {lease.upfront_tax.total} + "
            f"{lease.per_period_tax.total} x {lease.payment_count} = {lease.total_tax_over_term}"
        )
    if result.tax_already_collected:
        print(f"  Already collected {result.tax_already_collected}  balance due {result.balance_due}")
    if result.debug.reciprocity_credit:
        print(f"  Reciprocity credit {result.debug.reciprocity_credit}")
    for note in result.debug.notes:
        print(f"    - {note}")


def print_comparison(results: list[TaxCalculationResult], names: list[str]) -> None:
    width = max(len(n) for n in names)
    print(f"{'scenario':<{width}}  {'base':>12}  {'tax':>12}  {'balance due':>12}")
    for name, result in zip(names, results):
        print(
            f"{name:<{width}}  {result.bases.total:>12}  {result.total_tax:>12}  "
            f"{result.balance_due:>12}"
        )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Vehicle sales/use tax calculator")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--jurisdiction", help="Bundled rules code, e.g. US_IN")
    source.add_argument("--rules", help="Path to a rules YAML file")
    parser.add_argument("--deal", action="append", default=[], help="Deal JSON file (repeatable)")
    parser.add_argument("--json", action="store_true", help="Print canonical JSON results")
    parser.add_argument("--validate-only", action="store_true", help="Validate --rules and exit")
    parser.add_argument(
        "--log-level", default="WARNING", type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Structured log level (stderr)",
    )
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level)

    try:
        if args.validate_only:
            if not args.rules:
                parser.error("--validate-only requires --rules")
            return print_validation(Path(args.rules))

        if not args.deal:
            parser.error("at least one --deal is required")

        rules = load_rules(args)
        service = TaxCalculationService(rules_loader=lambda _: rules)
        deals = [parse_deal(load_deal_payload(Path(p))) for p in args.deal]
        results = service.compare(rules.jurisdiction, deals)
    except TaxEngineError as exc:
        print(f"ERROR [{exc.code}] {exc}", file=sys.stderr)
        return 1
    except FileNotFoundError as exc:
        print(f"ERROR {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
    elif len(results) == 1:
        print_result(results[0])
    else:
        print_comparison(results, [Path(p).stem for p in args.deal])
    return 0


if __name__ == "__main__":
    sys.exit(main())
