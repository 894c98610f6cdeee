'''
Starting values for the restricted estimator

The unrestricted Johansen beta is rotated, where the restrictions allow it,
so that it satisfies R vec(beta) = q as closely as possible, and then
projected onto the restricted affine subspace vec(beta) = H phi + s.
'''

import logging
from typing import Optional

import numpy as np

from cointrestrict.core.exceptions import NumericError
from cointrestrict.core.types import Matrix, ParameterVector
from cointrestrict.models.vecm.likelihood import ConcentratedMoments
from cointrestrict.models.vecm.restrictions import ExplicitRestrictions
from cointrestrict.utils.matrix_ops import (
    gensym_eigen, least_squares, solve_linear, unvec, vec
)

# Set up module-level logger
logger = logging.getLogger("cointrestrict.models.vecm.initial")


def johansen_beta(concentrated: ConcentratedMoments) -> Matrix:
    """Leading r eigenvectors of S10 S00^-1 S01 relative to S11."""
    left, right = concentrated.eigen_problem()
    _, evecs = gensym_eigen(left, right, concentrated.rank)
    return evecs


def normalize_beta(beta: Matrix, explicit: ExplicitRestrictions) -> Matrix:
    """
    Rotate beta by the r x r matrix A that best fits R vec(beta A) = q.

    Since vec(beta A) = (I_r kron beta) vec(A), vec(A) is the OLS coefficient
    vector of q on R (I_r kron beta). The rotation is skipped, and beta
    returned unchanged, when R has fewer than r*r rows or the regression is
    singular.
    """
    restrictions = explicit.restrictions
    r = explicit.rank
    if restrictions is None or restrictions.n_restrictions < r * r:
        logger.debug("Normalization of the starting beta skipped: too few restrictions")
        return beta

    X = restrictions.R @ np.kron(np.eye(r), beta)
    try:
        coef = least_squares(restrictions.q, X)
    except NumericError as e:
        logger.debug(f"Normalization of the starting beta skipped: {e.message}")
        return beta

    return beta @ unvec(coef, r, r)


def initial_phi(beta: Matrix, explicit: ExplicitRestrictions) -> ParameterVector:
    """
    Project beta onto the restricted subspace: phi = (H'H)^-1 H' (vec(beta) - s).

    Raises:
        NumericError: If H'H is singular
    """
    H = explicit.H
    return solve_linear(H.T @ H, H.T @ (vec(beta) - explicit.s))


def starting_values(concentrated: ConcentratedMoments,
                    explicit: ExplicitRestrictions,
                    beta0: Optional[Matrix] = None) -> ParameterVector:
    """
    Starting free-parameter vector for the optimizer.

    Args:
        concentrated: Concentrated moments of the model
        explicit: Explicit restrictions on beta
        beta0: Baseline beta; the unrestricted Johansen estimate if None

    Returns:
        Starting phi of length cols(H)

    Raises:
        NumericError: If the eigenproblem fails or H'H is singular
    """
    if beta0 is None:
        beta0 = johansen_beta(concentrated)
    beta0 = normalize_beta(np.asarray(beta0, dtype=float), explicit)
    phi0 = initial_phi(beta0, explicit)
    logger.debug(f"Starting values: phi0 = {phi0}")
    return phi0
