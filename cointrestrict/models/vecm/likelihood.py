'''
Likelihood engine for the restricted cointegrating vectors

The Gaussian VECM likelihood is concentrated with respect to alpha and the
residual covariance, leaving a profile likelihood in beta alone:

    ll(beta) = -T/2 [n (1 + ln 2pi) + ldS00 + ln|beta' S11m beta| - ln|beta' S11 beta|]

with S11m = S11 - S10 S00^-1 S01. Under homogeneous restrictions
alpha = A psi on the loadings the same expression holds after conditioning
on B' R0, the part of the differences the loadings cannot reach (Johansen
1995, Theorem 8.2). ConcentratedMoments precomputes the matrices the
expression needs once per estimation; LikelihoodEngine evaluates it at a free
parameter vector phi through vec(beta) = H phi + s.
'''

import logging
from typing import Optional, Tuple

import numpy as np

from cointrestrict.core.types import Matrix, ParameterVector
from cointrestrict.models.vecm._numba_core import restricted_loglik
from cointrestrict.models.vecm.moments import JohansenMoments
from cointrestrict.models.vecm.restrictions import AlphaRestrictions, ExplicitRestrictions
from cointrestrict.utils.matrix_ops import ensure_symmetric, log_determinant, sym_inverse

# Set up module-level logger
logger = logging.getLogger("cointrestrict.models.vecm.likelihood")


class ConcentratedMoments:
    """
    Moment matrices with alpha and Omega concentrated out.

    Attributes:
        moments: The unrestricted Johansen moments
        alpha_restrictions: Explicit loading restrictions, or None
        ldS00: Log-determinant term of the likelihood
        S11: Lagged-level moments used in the denominator form
        S11m: S11 net of the reachable differences, used in the numerator form
        S01: Cross moments of the reachable differences and the levels
            (S01 itself, or S_a1.b under loading restrictions)
        S00i: Inverse of the moment matrix of the reachable differences
    """

    def __init__(self, moments: JohansenMoments,
                 alpha_restrictions: Optional[AlphaRestrictions] = None) -> None:
        self.moments = moments
        self.alpha_restrictions = alpha_restrictions

        S00, S01, S11 = moments.S00, moments.S01, moments.S11

        if alpha_restrictions is None:
            self.ldS00 = log_determinant(S00, "S00")
            self.S00i = sym_inverse(S00, "S00")
            self.S01 = S01
            self.S11 = S11
        else:
            A, B = alpha_restrictions.A, alpha_restrictions.B
            if B.shape[1] > 0:
                S0b = S00 @ B
                Sbb = B.T @ S0b
                Sbbi = sym_inverse(Sbb, "B'S00B")
                Sab = A.T @ S0b
                Sb1 = B.T @ S01
                Saa_b = A.T @ S00 @ A - Sab @ Sbbi @ Sab.T
                Sa1_b = A.T @ S01 - Sab @ Sbbi @ Sb1
                S11_b = S11 - Sb1.T @ Sbbi @ Sb1
                ld_bb = log_determinant(Sbb, "B'S00B")
            else:
                Saa_b = A.T @ S00 @ A
                Sa1_b = A.T @ S01
                S11_b = S11
                ld_bb = 0.0
            Saa_b = ensure_symmetric(Saa_b, tol=0.0)
            self.ldS00 = ld_bb + log_determinant(Saa_b, "S_aa.b")
            self.S00i = sym_inverse(Saa_b, "S_aa.b")
            self.S01 = Sa1_b
            self.S11 = ensure_symmetric(S11_b, tol=0.0)

        self.S11m = ensure_symmetric(self.S11 - self.S01.T @ self.S00i @ self.S01, tol=0.0)

    @property
    def nobs(self) -> int:
        return self.moments.nobs

    @property
    def neqns(self) -> int:
        return self.moments.neqns

    @property
    def rank(self) -> int:
        return self.moments.rank

    def eigen_problem(self) -> Tuple[Matrix, Matrix]:
        """Left and right matrices of the reduced-rank eigenproblem S10 S00^-1 S01 v = lambda S11 v."""
        return self.S01.T @ self.S00i @ self.S01, self.S11

    def alpha(self, beta: Matrix) -> Matrix:
        """
        Profile estimate of the loadings at beta.

        alpha = S01 beta (beta' S11 beta)^-1, premultiplied by A under loading
        restrictions.

        Raises:
            NumericError: If beta' S11 beta is not positive definite
        """
        beta = np.asarray(beta, dtype=float)
        qf = ensure_symmetric(beta.T @ self.S11 @ beta, tol=0.0)
        alpha = self.S01 @ beta @ sym_inverse(qf, "beta'S11beta")
        if self.alpha_restrictions is not None:
            alpha = self.alpha_restrictions.A @ alpha
        return alpha

    def loglik_beta(self, beta: Matrix) -> float:
        """Log-likelihood at a full beta matrix, NaN where it is undefined."""
        beta = np.asarray(beta, dtype=float)
        p, r = beta.shape
        qf = np.empty((r, r))
        qfm = np.empty((r, r))
        return float(restricted_loglik(beta.reshape(-1, order="F").copy(), p, r,
                                       self.S11, self.S11m, self.ldS00,
                                       float(self.nobs), self.neqns, qf, qfm))


class LikelihoodEngine:
    """
    Profile log-likelihood as a function of the free parameters phi.

    The r x r quadratic-form buffers and the vec(beta) buffer are allocated
    once and reused by every call to loglik.

    Args:
        concentrated: Concentrated moments of the model
        explicit: Explicit restrictions vec(beta) = H phi + s

    Attributes:
        n_evaluations: Number of calls to loglik so far
    """

    def __init__(self, concentrated: ConcentratedMoments,
                 explicit: ExplicitRestrictions) -> None:
        self.concentrated = concentrated
        self.explicit = explicit

        self._H = np.ascontiguousarray(explicit.H)
        self._s = np.ascontiguousarray(explicit.s)
        self._p = explicit.p
        self._r = explicit.rank
        self._S11 = np.ascontiguousarray(concentrated.S11)
        self._S11m = np.ascontiguousarray(concentrated.S11m)
        self._ldS00 = float(concentrated.ldS00)
        self._nobs = float(concentrated.nobs)
        self._neqns = int(concentrated.neqns)

        self._vec_beta = np.empty(self._p * self._r)
        self._qf = np.empty((self._r, self._r))
        self._qfm = np.empty((self._r, self._r))

        self.n_evaluations = 0

    @property
    def n_params(self) -> int:
        return self._H.shape[1]

    def _fill_beta(self, phi: ParameterVector) -> None:
        if self._H.shape[1] > 0:
            np.dot(self._H, phi, out=self._vec_beta)
            self._vec_beta += self._s
        else:
            self._vec_beta[:] = self._s

    def loglik(self, phi: ParameterVector) -> float:
        """
        Evaluate the restricted log-likelihood at phi.

        Returns:
            float: ll(phi), or NaN when a quadratic form is not positive
            definite or phi is not finite
        """
        self.n_evaluations += 1
        phi = np.asarray(phi, dtype=float)
        if not np.all(np.isfinite(phi)):
            return np.nan
        self._fill_beta(phi)
        return float(restricted_loglik(self._vec_beta, self._p, self._r,
                                       self._S11, self._S11m, self._ldS00,
                                       self._nobs, self._neqns, self._qf, self._qfm))

    def negative_loglik(self, phi: ParameterVector) -> float:
        """-ll(phi), with np.inf where the likelihood is undefined."""
        value = self.loglik(phi)
        if np.isnan(value):
            return np.inf
        return -value

    def beta(self, phi: Optional[ParameterVector]) -> Matrix:
        return self.explicit.beta(phi)

    def alpha(self, beta: Matrix) -> Matrix:
        return self.concentrated.alpha(beta)
