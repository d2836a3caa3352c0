#!/usr/bin/env python3
"""
Check that docs/test_scenarios_business_summary.md covers tests/test_integration_scenarios.py.

Every scenario class and test method must be named in the summary, and the
summary must not name scenarios that were removed.

Run: python scripts/validate_test_docs_sync.py
"""

import ast
import re
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
TEST_FILE = PROJECT_ROOT / 'tests' / 'test_integration_scenarios.py'
DOC_FILE = PROJECT_ROOT / 'docs' / 'test_scenarios_business_summary.md'

CLASS_PATTERN = re.compile(r'\*\*Test Class\*\*:\s*`(Test\w+)`')
METHOD_PATTERN = re.compile(r'\*\*Test Method\*\*:\s*`(test_\w+)`')


def collect_scenarios(test_file: Path) -> dict[str, list[str]]:
    """Map each top-level Test* class to its test_* methods."""
    tree = ast.parse(test_file.read_text())
    scenarios = {}
    for node in tree.body:
        if isinstance(node, ast.ClassDef) and node.name.startswith('Test'):
            scenarios[node.name] = [
                item.name for item in node.body
                if isinstance(item, ast.FunctionDef) and item.name.startswith('test_')
            ]
    return scenarios


def documented_scenarios(doc_file: Path) -> tuple[set[str], set[str]]:
    """Class and method names the summary refers to."""
    content = doc_file.read_text()
    return set(CLASS_PATTERN.findall(content)), set(METHOD_PATTERN.findall(content))


def compare(scenarios: dict[str, list[str]], doc_classes: set[str], doc_methods: set[str]):
    """Return (missing, stale): names absent from the summary, names only in the summary."""
    methods = {m for names in scenarios.values() for m in names}
    missing = sorted(set(scenarios) - doc_classes) + sorted(methods - doc_methods)
    stale = sorted(doc_classes - set(scenarios)) + sorted(doc_methods - methods)
    return missing, stale


def main() -> int:
    for path in (TEST_FILE, DOC_FILE):
        if not path.exists():
            print(f"File not found: {path}")
            return 1

    scenarios = collect_scenarios(TEST_FILE)
    missing, stale = compare(scenarios, *documented_scenarios(DOC_FILE))

    print(f"{TEST_FILE.name}: {len(scenarios)} classes, "
          f"{sum(len(m) for m in scenarios.values())} tests")
    for name in missing:
        print(f"  missing from summary: {name}")
    for name in stale:
        print(f"  documented but not tested: {name}")

    if missing or stale:
        print(f"Update {DOC_FILE.relative_to(PROJECT_ROOT)}")
        return 1
    print("Summary is in sync.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
