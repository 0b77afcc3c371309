#!/usr/bin/env python3
"""Provider isolation validation script.

Enforces the architectural rule that core/, types/, and utils/ directories
must not depend on concrete provider plugins. The plugin identifiers are the
subpackages of src/mail_dispatcher/plugins/, so new plugins are covered
without editing this script.

This script scans for:
- Imports of mail_dispatcher.plugins.<provider> modules
- Plugin identifiers used as string literals (e.g. plugin="webhook")
- Provider-specific configuration field names (e.g. webhook_config)

Generic words such as "webhook" in prose are allowed; only code that would
bind the core to one plugin is reported.

Exit codes:
    0: No violations found (clean)
    1: Violations detected (architectural rule broken)
"""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Final

# ANSI color codes for terminal output
RED: Final[str] = "\033[91m"
GREEN: Final[str] = "\033[92m"
YELLOW: Final[str] = "\033[93m"
RESET: Final[str] = "\033[0m"

# Directories that must remain provider-agnostic
PROTECTED_DIRS: Final[tuple[str, ...]] = ("core", "types", "utils")


def discover_plugin_identifiers(package_path: Path) -> tuple[str, ...]:
    """Return the identifiers of the provider plugin packages."""
    plugins_dir = package_path / "plugins"
    return tuple(
        sorted(
            entry.name
            for entry in plugins_dir.iterdir()
            if entry.is_dir() and not entry.name.startswith("_") and (entry / "__init__.py").exists()
        )
    )


def build_patterns(identifiers: tuple[str, ...]) -> list[tuple[re.Pattern[str], str]]:
    """Compile the violation patterns for the given plugin identifiers."""
    names = "|".join(re.escape(identifier) for identifier in identifiers)
    return [
        (
            re.compile(rf"(?:from|import)\s+mail_dispatcher\.plugins\.(?:{names})\b"),
            "Direct import from provider plugin",
        ),
        (
            re.compile(rf"""["'](?:{names})["']""", re.IGNORECASE),
            "Hardcoded plugin identifier",
        ),
        (
            re.compile(rf"\b(?:{names})_(?:enabled|config|settings|options)\b", re.IGNORECASE),
            "Provider-specific config field",
        ),
    ]


def check_file(file_path: Path, patterns: list[tuple[re.Pattern[str], str]]) -> list[tuple[int, str]]:
    """Check a single Python file for provider isolation violations.

    Args:
        file_path: Path to the Python file to check.
        patterns: Compiled patterns with their violation descriptions.

    Returns:
        List of (line_number, violation_description) tuples.
    """
    violations: list[tuple[int, str]] = []

    try:
        lines = file_path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        print(f"{YELLOW}Warning: Could not read {file_path}: {e}{RESET}", file=sys.stderr)
        return violations

    for line_num, line in enumerate(lines, start=1):
        if line.strip().startswith("#"):
            continue
        for pattern, description in patterns:
            if pattern.search(line):
                violations.append((line_num, f"{description}: {line.strip()}"))

    return violations


def scan_directory(
    base_path: Path,
    protected_dir: str,
    patterns: list[tuple[re.Pattern[str], str]],
) -> dict[Path, list[tuple[int, str]]]:
    """Scan a protected directory for violations."""
    dir_path = base_path / protected_dir
    if not dir_path.exists():
        print(
            f"{YELLOW}Warning: Protected directory {dir_path} does not exist{RESET}",
            file=sys.stderr,
        )
        return {}

    violations_by_file: dict[Path, list[tuple[int, str]]] = {}
    for py_file in dir_path.rglob("*.py"):
        if "__pycache__" in py_file.parts:
            continue
        file_violations = check_file(py_file, patterns)
        if file_violations:
            violations_by_file[py_file] = file_violations

    return violations_by_file


def main() -> int:
    """Main entry point for provider isolation check.

    Returns:
        Exit code: 0 if no violations, 1 if violations found.
    """
    project_root = Path(__file__).parent.parent
    src_path = project_root / "src" / "mail_dispatcher"

    if not src_path.exists():
        print(f"{RED}Error: Could not find src/mail_dispatcher directory{RESET}", file=sys.stderr)
        return 1

    identifiers = discover_plugin_identifiers(src_path)
    if not identifiers:
        print(f"{YELLOW}No provider plugins found; nothing to check{RESET}")
        return 0

    patterns = build_patterns(identifiers)
    print(f"Checking provider isolation against plugins: {', '.join(identifiers)}")
    print(f"Scanning: {src_path}\n")

    all_violations: dict[Path, list[tuple[int, str]]] = {}
    for protected_dir in PROTECTED_DIRS:
        all_violations.update(scan_directory(src_path, protected_dir, patterns))

    if not all_violations:
        print(f"{GREEN}✓ No provider isolation violations found!{RESET}")
        return 0

    total_violations = sum(len(v) for v in all_violations.values())
    print(f"{RED}✗ Found {total_violations} provider isolation violations:{RESET}\n")

    for file_path, violations in sorted(all_violations.items()):
        try:
            rel_path = file_path.relative_to(project_root)
        except ValueError:
            rel_path = file_path

        print(f"{RED}{rel_path}{RESET}")
        for line_num, description in violations:
            print(f"  {line_num}: {description}")
        print()

    print(f"{RED}Provider isolation check failed!{RESET}")
    print("\nMove provider-specific code to plugins/<provider>/ directory.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
