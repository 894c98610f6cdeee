"""
cointrestrict models module

Model families supported by the package. The vecm subpackage holds the
restricted cointegration estimator for Johansen vector error correction
models.
"""

import logging

# Set up module-level logger
logger = logging.getLogger("cointrestrict.models")

from . import vecm

__all__ = ["vecm"]
