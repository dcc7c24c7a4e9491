#!/usr/bin/env python3
"""
Test runner for the tracker unit tests.
Run this script to execute every test module in this directory, or one module.
"""

import sys
import os
import unittest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

def run_tests(pattern='test_*.py'):
    """Run all tests in the tests directory."""
    loader = unittest.TestLoader()
    start_dir = os.path.dirname(os.path.abspath(__file__))
    suite = loader.discover(start_dir, pattern=pattern)

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    # Return exit code based on test results
    return 0 if result.wasSuccessful() else 1

if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Run the tracker unit tests')
    parser.add_argument('--module', help='Run a single test module, e.g. test_filter_engine')

    args = parser.parse_args()

    if args.module:
        exit_code = run_tests(pattern=f"{args.module}.py")
    else:
        exit_code = run_tests()

    sys.exit(exit_code)
