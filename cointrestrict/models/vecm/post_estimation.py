'''
Post-estimation quantities for the restricted cointegrating vectors

Given the restricted beta, compute the loadings, the residual covariance,
the covariance and standard errors of beta, and the likelihood-ratio test of
the restrictions against the unrestricted model.
'''

import logging
from typing import Optional, Tuple

import numpy as np
from scipy import stats

from cointrestrict.core.exceptions import NumericError, warn_model, warn_numeric
from cointrestrict.core.types import CovarianceMatrix, Matrix
from cointrestrict.models.vecm.likelihood import ConcentratedMoments
from cointrestrict.models.vecm.moments import JohansenMoments
from cointrestrict.models.vecm.restrictions import AlphaRestrictions, ExplicitRestrictions
from cointrestrict.utils.matrix_ops import ensure_symmetric, sym_inverse, unvec

# Set up module-level logger
logger = logging.getLogger("cointrestrict.models.vecm.post_estimation")

LR_TOLERANCE = 1e-6


def compute_alpha(concentrated: ConcentratedMoments, beta: Matrix) -> Matrix:
    """Loadings alpha = S01 beta (beta' S11 beta)^-1 at the restricted beta."""
    return concentrated.alpha(beta)


def compute_omega(moments: JohansenMoments, alpha: Matrix, beta: Matrix) -> CovarianceMatrix:
    """
    Residual covariance of the restricted model.

    Omega = (S00 - S01 beta alpha' - alpha beta' S10 + alpha beta' S11 beta alpha') / T

    When alpha is the profile estimate S01 beta (beta' S11 beta)^-1 this
    reduces to (S00 - alpha beta' S11 beta alpha') / T.
    """
    S01b = moments.S01 @ beta
    qf = beta.T @ moments.S11 @ beta
    omega = moments.S00 - S01b @ alpha.T - alpha @ S01b.T + alpha @ qf @ alpha.T
    return ensure_symmetric(omega, tol=0.0) / moments.nobs


def zero_variance(p: int, r: int) -> Tuple[CovarianceMatrix, Matrix]:
    """Covariance and standard errors of a fully pinned beta: identically zero."""
    return np.zeros((p * r, p * r)), np.zeros((p, r))


def beta_variance(explicit: ExplicitRestrictions,
                  moments: JohansenMoments,
                  alpha: Matrix,
                  omega: CovarianceMatrix) -> Tuple[CovarianceMatrix, Matrix]:
    """
    Asymptotic covariance of vec(beta) and the standard errors of beta.

    The precision of the stacked free parameters has (i, j) block
    (alpha' Omega^-1 alpha)_ij H_i' S11 H_j over the blocks with free
    parameters; its inverse is mapped back through H.

    Args:
        explicit: Explicit restrictions on beta
        moments: Johansen moments (S11 is taken from here)
        alpha: Restricted loadings (n x r)
        omega: Residual covariance (n x n)

    Returns:
        Covariance of vec(beta) (p*r x p*r) and standard errors (p x r)

    Raises:
        NumericError: If Omega or the precision matrix is not positive definite
    """
    p, r = explicit.p, explicit.rank
    if explicit.noest:
        return zero_variance(p, r)

    aiom = alpha.T @ sym_inverse(omega, "Omega") @ alpha
    S11 = moments.S11

    free = explicit.free_blocks
    sizes = [blk.n_free for blk in free]
    offsets = np.concatenate([[0], np.cumsum(sizes)]).astype(int)
    precision = np.zeros((offsets[-1], offsets[-1]))

    for a, blk_i in enumerate(free):
        HiS = blk_i.H.T @ S11
        for b in range(a, len(free)):
            blk_j = free[b]
            block = aiom[blk_i.index, blk_j.index] * (HiS @ blk_j.H)
            precision[offsets[a]:offsets[a + 1], offsets[b]:offsets[b + 1]] = block
            if b != a:
                precision[offsets[b]:offsets[b + 1], offsets[a]:offsets[a + 1]] = block.T

    V_phi = sym_inverse(precision, "beta precision matrix")
    H = explicit.H
    V = ensure_symmetric(H @ V_phi @ H.T, tol=0.0)

    diag = np.diag(V).copy()
    # rounding noise on rows of beta that H leaves fixed
    noise = 1e-12 * max(1.0, float(np.max(np.abs(diag))))
    diag[(diag < 0) & (diag > -noise)] = 0.0
    if np.any(diag < 0):
        raise NumericError(
            "Negative variance for a restricted beta coefficient",
            operation="beta_variance",
            values=diag,
            error_type="negative_variance"
        )
    se = unvec(np.sqrt(diag), p, r)
    return V, se


def lr_degrees_of_freedom(explicit: ExplicitRestrictions,
                          bdf: int = 0,
                          alpha_restrictions: Optional[AlphaRestrictions] = None) -> int:
    """
    Degrees of freedom of the LR test of the restrictions.

    Each of the restriction blocks contributes p - r - k_i, where k_i is the
    number of free parameters of block i; a fully pinned system counts r
    blocks with k_i = 0. Homogeneous loading restrictions add r times the
    number of restricted directions. Degrees of freedom already consumed by a
    prior restriction (bdf) are subtracted.
    """
    p, r = explicit.p, explicit.rank
    if explicit.blocks:
        df = sum(p - r - blk.n_free for blk in explicit.blocks if blk.n_rows > 0)
    else:
        df = explicit.n_blocks * (p - r)
    if alpha_restrictions is not None:
        df += r * alpha_restrictions.n_restricted
    df -= bdf

    if df < 0:
        logger.warning(f"LR degrees of freedom are negative: {df}")
        warn_model(
            f"LR test degrees of freedom are negative ({df})",
            issue="negative degrees of freedom",
            parameter="df",
            value=df
        )
    return int(df)


def lr_test(llf_unrestricted: float, llf_restricted: float, df: int) -> Tuple[float, Optional[float]]:
    """
    Likelihood-ratio statistic 2 (lu - lr) and its chi-square p-value.

    Returns:
        The statistic and the p-value; the p-value is None when df <= 0
    """
    stat = 2.0 * (llf_unrestricted - llf_restricted)
    scale = max(1.0, abs(llf_unrestricted))
    if stat < -LR_TOLERANCE * scale:
        warn_numeric(
            "Restricted log-likelihood exceeds the unrestricted one",
            operation="lr_test",
            issue="negative LR statistic",
            value=stat
        )
    if df <= 0:
        return stat, None
    return stat, float(stats.chi2.sf(stat, df))
