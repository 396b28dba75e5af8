#!/usr/bin/env python3
"""
Test runner for the Admissions Portal server.
Run specific tests or the whole suite.

Usage:
    python run_tests.py                           # Run all tests
    python run_tests.py -k burst                  # Run specific test pattern
    python run_tests.py --api                     # Run HTTP route tests only
    python run_tests.py --cov                     # Run with coverage
"""

import sys
import subprocess
from pathlib import Path


def run_tests(targets=None, args=None):
    """Run tests with pytest."""
    # Base pytest command
    cmd = [sys.executable, "-m", "pytest", *(targets or ["tests"]), "-v", "--tb=short"]

    # Add additional arguments
    cmd.extend(args or [])

    print(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, cwd=Path(__file__).parent)
    return result.returncode


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Run the admissions portal test suite")
    parser.add_argument("-k", "--keyword", help="Run tests matching keyword")
    parser.add_argument("--cov", action="store_true", help="Run with coverage")
    parser.add_argument("--api", action="store_true", help="Run HTTP route tests only")
    parser.add_argument("--services", action="store_true", help="Run service tests only")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--pdb", action="store_true", help="Drop into debugger on failure")

    args = parser.parse_args()

    targets = []
    if args.api:
        targets.append("tests/test_api.py")
    if args.services:
        targets.extend(
            str(path)
            for path in sorted(Path(__file__).parent.glob("tests/test_*_service.py"))
        )

    pytest_args = []

    if args.keyword:
        pytest_args.extend(["-k", args.keyword])

    if args.cov:
        pytest_args.extend(["--cov=app", "--cov-report=html", "--cov-report=term-missing"])

    if args.verbose:
        pytest_args.append("-vv")

    if args.pdb:
        pytest_args.append("--pdb")

    return run_tests(targets, pytest_args)


if __name__ == "__main__":
    sys.exit(main())
