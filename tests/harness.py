"""
Shared helpers for the test modules.

Every tests/test_*.py module is both a pytest module and a script:

    python -m tests.test_engine            # run all checks
    python -m tests.test_pipeline --quick  # skip live API checks
"""

import sys


def section(title: str):
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}\n")


def run(tests: list, live: list | None = None):
    """Run (name, fn) pairs, print a summary, exit 1 on any failure."""
    if live and "--quick" not in sys.argv[1:]:
        tests = tests + live

    passed = failed = 0
    for name, fn in tests:
        try:
            fn()
            passed += 1
        except Exception as e:
            print(f"  FAIL [{name}]: {e!r}")
            failed += 1

    section("SUMMARY")
    print(f"  Passed: {passed}")
    print(f"  Failed: {failed}")
    if failed:
        sys.exit(1)
