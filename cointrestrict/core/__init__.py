"""
cointrestrict core module

Exception hierarchy, configuration management, type aliases and the result
container base class shared by the rest of the package.
"""

import logging

# Set up module-level logger
logger = logging.getLogger("cointrestrict.core")

from .exceptions import (
    CointRestrictError,
    ParameterError,
    DimensionError,
    RestrictionError,
    IdentificationError,
    NumericError,
    EstimationError,
    ConfigurationError,
    CointRestrictWarning,
    ConvergenceWarning,
    NumericWarning,
    ModelWarning,
)

from .config import (
    get_config,
    set_config,
    reset_config,
    save_config,
    get_config_manager,
)

from .results import ModelResult

__all__ = [
    "CointRestrictError",
    "ParameterError",
    "DimensionError",
    "RestrictionError",
    "IdentificationError",
    "NumericError",
    "EstimationError",
    "ConfigurationError",
    "CointRestrictWarning",
    "ConvergenceWarning",
    "NumericWarning",
    "ModelWarning",
    "get_config",
    "set_config",
    "reset_config",
    "save_config",
    "get_config_manager",
    "ModelResult",
]
