"""
Layer boundaries and engine purity.

1. autotax_kernel/** may NOT import autotax_engines, autotax_config or
   autotax_services. The kernel never depends upward.

2. autotax_engines/** may NOT import autotax_config or autotax_services.
   Engines see rules only as an already-validated TaxRulesConfig.

3. Engine and kernel code never reads the clock or does file I/O, so a
   result depends on (rules, deal) alone.

4. The engine invariants declaration is complete.

These tests read source code via AST; they import nothing they check.
"""

import ast
from pathlib import Path

from autotax_kernel.invariants import (
    ALL_ENGINE_INVARIANTS,
    FORBIDDEN_ENGINE_IMPORTS,
    FORBIDDEN_KERNEL_IMPORTS,
    EngineInvariant,
)

REPO_ROOT = Path(__file__).resolve().parents[2]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _python_files(package: str) -> list[Path]:
    """Return all .py files under a top-level package."""
    return sorted((REPO_ROOT / package).rglob("*.py"))


def _parse(filepath: Path) -> ast.Module:
    return ast.parse(filepath.read_text(), filename=str(filepath))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    results: list[tuple[int, str]] = []
    for node in ast.walk(_parse(filepath)):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    violations: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    rel = filepath.relative_to(REPO_ROOT)
                    violations.append(f"  {rel}:{lineno} imports '{module}'")
    return violations


# ---------------------------------------------------------------------------
# Import direction
# ---------------------------------------------------------------------------


class TestImportDirection:

    def test_packages_found(self):
        assert _python_files("autotax_kernel")
        assert _python_files("autotax_engines")

    def test_kernel_has_no_upward_imports(self):
        violations = _violations("autotax_kernel", FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, (
            "Kernel boundary violation: autotax_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )

    def test_engines_do_not_import_config_or_services(self):
        violations = _violations("autotax_engines", FORBIDDEN_ENGINE_IMPORTS)
        assert not violations, (
            "Engine boundary violation: autotax_engines/** must not import "
            "config or services:\n" + "\n".join(violations)
        )

    def test_config_does_not_import_services(self):
        violations = _violations("autotax_config", ("autotax_services",))
        assert not violations, "\n".join(violations)


# ---------------------------------------------------------------------------
# Purity
# ---------------------------------------------------------------------------


CLOCK_CALLS = {
    ("date", "today"),
    ("datetime", "now"),
    ("datetime", "utcnow"),
    ("datetime", "today"),
    ("time", "time"),
}
IO_CALLS = {"open", "print", "input"}


def _impure_calls(filepath: Path) -> list[str]:
    found: list[str] = []
    for node in ast.walk(_parse(filepath)):
        if not isinstance(node, ast.Call):
            continue
        func = node.func
        if isinstance(func, ast.Attribute) and isinstance(func.value, ast.Name):
            if (func.value.id, func.attr) in CLOCK_CALLS:
                found.append(f"{func.value.id}.{func.attr}() at line {node.lineno}")
        elif isinstance(func, ast.Name) and func.id in IO_CALLS:
            found.append(f"{func.id}() at line {node.lineno}")
    return found


class TestEnginePurity:
    """Engines and the kernel domain never read the clock or do I/O."""

    def test_no_clock_or_io_in_engines(self):
        violations = [
            f"  {path.relative_to(REPO_ROOT)}: {call}"
            for package in ("autotax_engines", "autotax_kernel/domain")
            for path in _python_files(package)
            for call in _impure_calls(path)
        ]
        assert not violations, "Impure calls in pure code:\n" + "\n".join(violations)


# ---------------------------------------------------------------------------
# Invariants declaration
# ---------------------------------------------------------------------------


class TestInvariantsDeclaration:

    def test_all_invariants_listed(self):
        assert ALL_ENGINE_INVARIANTS == frozenset(EngineInvariant)
        assert len(ALL_ENGINE_INVARIANTS) == 7

    def test_every_invariant_documented(self):
        source = _parse(REPO_ROOT / "autotax_kernel" / "invariants.py")
        enum_class = next(
            node for node in source.body
            if isinstance(node, ast.ClassDef) and node.name == "EngineInvariant"
        )
        documented = set()
        body = enum_class.body
        for current, following in zip(body, body[1:]):
            if (
                isinstance(current, ast.Assign)
                and isinstance(following, ast.Expr)
                and isinstance(following.value, ast.Constant)
                and isinstance(following.value.value, str)
            ):
                documented.add(current.targets[0].id)
        assert documented == {member.name for member in EngineInvariant}
