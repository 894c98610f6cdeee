"""
cointrestrict Test Suite

Tests for the restricted cointegration estimator: restriction translation,
identification, the profile likelihood and its maximization, post-estimation
quantities and the configuration layer.
"""

import os

# Version information for the test package
__version__ = "1.0.0"

# Helpers shared by the test modules
from tests.conftest import (
    unrestricted_llf,
    closed_form_loglik,
    simulate_cointegrated,
    restriction_blocks,
    square_blocks,
)


# Environment detection for test configuration
def is_ci_environment() -> bool:
    """Check if tests are running in a CI environment."""
    return os.environ.get("CI", "false").lower() == "true"


# Test configuration based on environment
SKIP_SLOW_TESTS = os.environ.get("SKIP_SLOW_TESTS", "false").lower() == "true"
