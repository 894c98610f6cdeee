"""
Numba-accelerated core functions for the restricted likelihood.

The profile log-likelihood is evaluated thousands of times during simulated
annealing and again for every finite-difference gradient of the quasi-Newton
phase. The kernel below forms the two r x r quadratic forms beta' S11m beta
and beta' S11 beta directly from vec(beta), writing into caller-owned work
matrices so that repeated evaluations do not allocate.
"""

import logging

import numpy as np
from numba import jit

# Set up module-level logger
logger = logging.getLogger("cointrestrict.models.vecm._numba_core")

LN_2_PI = np.log(2.0 * np.pi)


@jit(nopython=True, cache=True)
def quadratic_forms(vec_beta: np.ndarray,
                    p: int,
                    r: int,
                    S11: np.ndarray,
                    S11m: np.ndarray,
                    qf: np.ndarray,
                    qfm: np.ndarray) -> bool:
    """
    Fill qf = beta' S11 beta and qfm = beta' S11m beta.

    beta is read column-major from vec_beta, so beta[k, i] = vec_beta[i*p + k].

    Args:
        vec_beta: Stacked columns of beta (p*r,)
        p: Rows of beta
        r: Columns of beta
        S11: Lagged-level moment matrix (p x p)
        S11m: S11 net of the cross moments with the differences (p x p)
        qf: Output buffer (r x r)
        qfm: Output buffer (r x r)

    Returns:
        bool: False if any entry of either form is not finite
    """
    for i in range(r):
        for j in range(i, r):
            acc = 0.0
            accm = 0.0
            for k in range(p):
                bki = vec_beta[i * p + k]
                for l in range(p):
                    blj = vec_beta[j * p + l]
                    acc += bki * S11[k, l] * blj
                    accm += bki * S11m[k, l] * blj
            if not (np.isfinite(acc) and np.isfinite(accm)):
                return False
            qf[i, j] = acc
            qf[j, i] = acc
            qfm[i, j] = accm
            qfm[j, i] = accm
    return True


@jit(nopython=True, cache=True)
def restricted_loglik(vec_beta: np.ndarray,
                      p: int,
                      r: int,
                      S11: np.ndarray,
                      S11m: np.ndarray,
                      ldS00: float,
                      nobs: float,
                      neqns: int,
                      qf: np.ndarray,
                      qfm: np.ndarray) -> float:
    """
    Concentrated log-likelihood at a given vec(beta).

    ll = -T/2 * [n (1 + ln 2pi) + ldS00 + ln|beta' S11m beta| - ln|beta' S11 beta|]

    Returns:
        float: The log-likelihood, or NaN if either quadratic form is not
        positive definite
    """
    if not quadratic_forms(vec_beta, p, r, S11, S11m, qf, qfm):
        return np.nan

    sign_m, logdet_m = np.linalg.slogdet(qfm)
    sign, logdet = np.linalg.slogdet(qf)
    if sign_m <= 0.0 or sign <= 0.0:
        return np.nan
    if not (np.isfinite(logdet_m) and np.isfinite(logdet)):
        return np.nan

    return -0.5 * nobs * (neqns * (1.0 + LN_2_PI) + ldS00 + logdet_m - logdet)
