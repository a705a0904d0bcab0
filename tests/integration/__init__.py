"""
Integration Tests Package for the Parking Spot Allocation Engine

Integration tests drive the service and the lot together:
1. Concurrent parking and exit against one lot
2. Event publication and revenue tracking across park/exit
3. The demo entry point end to end
"""

import sys
from pathlib import Path

# Add the src directory to Python path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

TEST_CATEGORIES = {
    "concurrency": "Races for scarce spots and park/exit churn",
    "demo": "Demo entry point end to end",
}


def run_integration_tests(verbosity=2):
    """
    Run every integration test module in this package

    Returns:
        bool: True if all tests passed, False otherwise
    """
    import unittest

    suite = unittest.TestLoader().discover(str(Path(__file__).parent), pattern="test_*.py")
    result = unittest.TextTestRunner(verbosity=verbosity).run(suite)
    return result.wasSuccessful()
