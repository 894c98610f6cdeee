"""
cointrestrict utilities module

Dense linear-algebra helpers and numerical differentiation used by the
restricted cointegration estimator.
"""

import logging

# Set up module-level logger
logger = logging.getLogger("cointrestrict.utils")

from .matrix_ops import (
    vec,
    unvec,
    matrix_rank,
    right_nullspace,
    left_nullspace,
    solve_linear,
    sym_inverse,
    log_determinant,
    gensym_eigen,
    least_squares,
    ensure_symmetric,
    is_positive_definite,
    block_diagonal,
)

from .differentiation import gradient_2sided

__all__ = [
    "vec",
    "unvec",
    "matrix_rank",
    "right_nullspace",
    "left_nullspace",
    "solve_linear",
    "sym_inverse",
    "log_determinant",
    "gensym_eigen",
    "least_squares",
    "ensure_symmetric",
    "is_positive_definite",
    "block_diagonal",
    "gradient_2sided",
]
