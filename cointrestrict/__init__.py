# cointrestrict/__init__.py
"""
cointrestrict - Restricted cointegration for vector error correction models

Maximum-likelihood estimation of the cointegrating vectors of a Johansen VECM
under general linear restrictions R vec(beta) = q, which may differ from one
cointegrating vector to the next and may be non-homogeneous. The package
provides:
- Translation of implicit restrictions into the explicit form beta_i = H_i phi_i + s_i
- Identification checks by Johansen's rank conditions, with a numerical
  Jacobian fallback
- Maximization of the profile likelihood by simulated annealing followed by L-BFGS
- Loadings, residual covariance, delta-method standard errors of beta and
  the likelihood-ratio test of the restrictions

This module serves as the main entry point for the package.
"""

import os
import logging
from typing import Union

# Set up package-wide logger
logger = logging.getLogger("cointrestrict")

from .version import __version__, __title__, __description__, __license__

from . import core
from . import utils
from . import models

from .core.config import initialize_config
from .core.exceptions import (
    CointRestrictError,
    DimensionError,
    RestrictionError,
    IdentificationError,
    NumericError,
    EstimationError,
    ConvergenceWarning,
    NumericWarning,
    ModelWarning,
)
from .models.vecm import (
    JohansenMoments,
    RestrictionSet,
    RestrictionOptions,
    RestrictedVECMResult,
    estimate_restricted_cointegration,
)


def _initialize_config() -> None:
    """
    Initialize package configuration on first import.

    Loads the layered configuration, which also configures the package
    logger, then applies the COINTRESTRICT_LOG_LEVEL shortcut if it is set.
    """
    initialize_config()

    log_level = os.environ.get("COINTRESTRICT_LOG_LEVEL")
    if log_level:
        level = getattr(logging, log_level.upper(), None)
        if isinstance(level, int):
            logger.setLevel(level)
        else:
            logger.warning(f"Ignoring invalid COINTRESTRICT_LOG_LEVEL: {log_level}")


def get_version() -> str:
    """
    Return the version of the package.

    Returns:
        str: Version string in format MAJOR.MINOR.PATCH
    """
    return __version__


def set_log_level(level: Union[str, int]) -> None:
    """
    Set the logging level for the package.

    Args:
        level: Logging level, either as string ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
              or as an integer constant from the logging module
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    logger.setLevel(level)
    logger.info(f"Log level set to {logging.getLevelName(level)}")


# Initialize the package
_initialize_config()

# Define what's available when using "from cointrestrict import *"
__all__ = [
    # Subpackages
    'core',
    'models',
    'utils',

    # Entry point and its inputs and outputs
    'estimate_restricted_cointegration',
    'JohansenMoments',
    'RestrictionSet',
    'RestrictionOptions',
    'RestrictedVECMResult',

    # Errors and warnings
    'CointRestrictError',
    'DimensionError',
    'RestrictionError',
    'IdentificationError',
    'NumericError',
    'EstimationError',
    'ConvergenceWarning',
    'NumericWarning',
    'ModelWarning',

    # Public functions
    'get_version',
    'set_log_level',

    # Version info
    '__version__',
]

logger.debug(f"cointrestrict v{__version__} initialized successfully")
