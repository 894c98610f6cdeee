# cointrestrict/core/types.py

"""
Core type annotations for cointrestrict.

Type aliases used across the package to document the role of each array
argument. They are plain aliases of numpy.ndarray and carry no runtime checks.
"""

from typing import Any, Callable, Dict, Literal, Union

import numpy as np
import pandas as pd

# NumPy array type aliases
Vector = np.ndarray  # 1D array
Matrix = np.ndarray  # 2D array

# Specialized array types
ParameterVector = np.ndarray  # Free parameters phi
CovarianceMatrix = np.ndarray  # Symmetric, positive definite
PositiveDefiniteMatrix = np.ndarray
MomentMatrix = np.ndarray  # S00, S01 or S11
RestrictionMatrix = np.ndarray  # R, or one block R_i
BasisMatrix = np.ndarray  # Columns spanning a nullspace (H_i, alpha basis)

# Level data accepted by the moment builder
LevelData = Union[np.ndarray, pd.DataFrame]

# Deterministic terms restricted to the cointegrating space
DeterministicTerm = Literal["none", "restricted_const", "restricted_trend"]

# Callable types used by the optimizer
ObjectiveFunction = Callable[[np.ndarray], float]

# Configuration types
ConfigDict = Dict[str, Dict[str, Any]]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Serialized results
ResultDict = Dict[str, Any]
