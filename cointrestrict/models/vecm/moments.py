'''
Johansen moment matrices

JohansenMoments carries what the restricted estimator reads from a fitted
unrestricted VECM: the product-moment matrices of the concentrated
differences (S00), the cross moments with the lagged levels (S01) and the
lagged-level moments (S11), together with the sample size, the cointegrating
rank, the unrestricted log-likelihood and any degrees of freedom already used
by a prior restriction. When the estimator is asked to fold its result into
the model, the restricted beta, alpha, residual covariance and log-likelihood
are written back into the same object.

The moments are normally produced by the caller's Johansen procedure.
JohansenMoments.from_data builds them from a panel of levels, running the two
auxiliary regressions of the reduced-rank procedure.
'''

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd
from statsmodels.tsa.tsatools import lagmat

from cointrestrict.core.exceptions import (
    DimensionError, ParameterError, raise_dimension_error
)
from cointrestrict.core.types import DeterministicTerm, LevelData, Matrix, MomentMatrix
from cointrestrict.utils.matrix_ops import (
    ensure_symmetric, gensym_eigen, is_positive_definite, log_determinant, sym_inverse
)

# Set up module-level logger
logger = logging.getLogger("cointrestrict.models.vecm.moments")

_VALID_DETERMINISTIC = ("none", "restricted_const", "restricted_trend")


@dataclass
class JohansenMoments:
    """
    Sufficient statistics of an unrestricted Johansen VECM.

    Attributes:
        S00: Moment matrix of the concentrated differences (n x n)
        S01: Cross moments of differences and lagged levels (n x p)
        S11: Moment matrix of the concentrated lagged levels (p x p)
        nobs: Effective sample size T
        rank: Cointegrating rank r
        llf: Unrestricted log-likelihood
        bdf: Degrees of freedom consumed by a prior restriction on the system
        names: Names of the n level variables
        deterministic: Deterministic term restricted to the cointegrating space
        beta: Restricted cointegrating vectors, set by fold-into-model
        alpha: Restricted loadings, set by fold-into-model
        sigma: Residual covariance, set by fold-into-model
        llf0: Log-likelihood before the last fold
        beta_variance: Covariance of vec(beta), set by fold-into-model
        beta_se: Standard errors of beta, set by fold-into-model
    """

    S00: MomentMatrix
    S01: MomentMatrix
    S11: MomentMatrix
    nobs: int
    rank: int
    llf: float
    bdf: int = 0
    names: Optional[List[str]] = None
    deterministic: DeterministicTerm = "none"
    beta: Optional[Matrix] = None
    alpha: Optional[Matrix] = None
    sigma: Optional[Matrix] = None
    llf0: Optional[float] = None
    beta_variance: Optional[Matrix] = None
    beta_se: Optional[Matrix] = None

    def __post_init__(self) -> None:
        """Validate moments after initialization."""
        self.S00 = np.asarray(self.S00, dtype=float)
        self.S01 = np.asarray(self.S01, dtype=float)
        self.S11 = np.asarray(self.S11, dtype=float)
        self.nobs = int(self.nobs)
        self.rank = int(self.rank)
        self.llf = float(self.llf)
        self.bdf = int(self.bdf)

        if self.names is None:
            self.names = [f"y{i + 1}" for i in range(self.S00.shape[0] if self.S00.ndim == 2 else 0)]
        else:
            self.names = [str(name) for name in self.names]

        self.validate()

    @property
    def neqns(self) -> int:
        """Number of equations n."""
        return self.S00.shape[0]

    @property
    def n_beta(self) -> int:
        """Number of rows p of beta (n plus one for a restricted deterministic term)."""
        return self.S11.shape[0]

    def validate(self) -> None:
        """
        Check shapes, symmetry and positive definiteness of the moments.

        Raises:
            DimensionError: If the moment matrices have inconsistent shapes
            ParameterError: If rank, sample size or the deterministic term are invalid
        """
        if self.S00.ndim != 2 or self.S00.shape[0] != self.S00.shape[1]:
            raise_dimension_error(
                "S00 must be a square matrix",
                array_name="S00",
                expected_shape="(n, n)",
                actual_shape=self.S00.shape
            )
        n = self.S00.shape[0]

        if self.S11.ndim != 2 or self.S11.shape[0] != self.S11.shape[1]:
            raise_dimension_error(
                "S11 must be a square matrix",
                array_name="S11",
                expected_shape="(p, p)",
                actual_shape=self.S11.shape
            )
        p = self.S11.shape[0]

        if self.S01.shape != (n, p):
            raise_dimension_error(
                "S01 must have as many rows as S00 and as many columns as S11",
                array_name="S01",
                expected_shape=(n, p),
                actual_shape=self.S01.shape
            )

        if self.deterministic not in _VALID_DETERMINISTIC:
            raise ParameterError(
                f"Invalid deterministic term: {self.deterministic}",
                param_name="deterministic",
                param_value=self.deterministic,
                constraint=f"Must be one of {list(_VALID_DETERMINISTIC)}"
            )

        expected_p = n if self.deterministic == "none" else n + 1
        if p != expected_p:
            raise DimensionError(
                "S11 size does not match the number of equations and the deterministic term",
                array_name="S11",
                expected_shape=(expected_p, expected_p),
                actual_shape=self.S11.shape
            )

        if len(self.names) != n:
            raise ParameterError(
                "Number of variable names must equal the number of equations",
                param_name="names",
                param_value=len(self.names),
                constraint=f"Length {n}"
            )

        if not 1 <= self.rank <= n:
            raise ParameterError(
                f"Cointegrating rank must be between 1 and {n}",
                param_name="rank",
                param_value=self.rank,
                constraint=f"1 <= rank <= {n}"
            )

        if self.nobs <= 0:
            raise ParameterError(
                "Sample size must be positive",
                param_name="nobs",
                param_value=self.nobs,
                constraint="nobs > 0"
            )

        for name in ("S00", "S11"):
            matrix = getattr(self, name)
            if not np.allclose(matrix, matrix.T, rtol=1e-8, atol=1e-10):
                raise ParameterError(
                    f"{name} must be symmetric",
                    param_name=name,
                    constraint="Symmetric matrix"
                )
            if not is_positive_definite(matrix):
                raise ParameterError(
                    f"{name} must be positive definite",
                    param_name=name,
                    constraint="Positive definite matrix"
                )

    def variable_labels(self) -> List[str]:
        """Row labels of beta: 'name(-1)' for each level, then the deterministic term."""
        labels = [f"{name}(-1)" for name in self.names]
        if self.deterministic == "restricted_const":
            labels.append("const")
        elif self.deterministic == "restricted_trend":
            labels.append("trend")
        return labels

    def johansen_eigenvalues(self) -> np.ndarray:
        """Eigenvalues of the unrestricted reduced-rank problem, in descending order."""
        S00i = sym_inverse(self.S00, "S00")
        evals, _ = gensym_eigen(self.S01.T @ S00i @ self.S01, self.S11, self.n_beta)
        return evals

    @classmethod
    def from_data(cls,
                  levels: LevelData,
                  rank: int,
                  k_ar_diff: int = 1,
                  deterministic: DeterministicTerm = "restricted_const",
                  bdf: int = 0) -> 'JohansenMoments':
        """
        Build Johansen moments from a panel of levels.

        Regresses the differences and the lagged levels on the lagged
        differences (and, for a restricted trend, an unrestricted constant),
        forms the moment matrices of the two residual sets and evaluates the
        unrestricted log-likelihood at the given rank.

        Args:
            levels: (N, n) array or DataFrame of level observations
            rank: Cointegrating rank
            k_ar_diff: Number of lagged differences in the VECM
            deterministic: Deterministic term restricted to the cointegrating space
            bdf: Degrees of freedom consumed by a prior restriction

        Returns:
            JohansenMoments for the data

        Raises:
            DimensionError: If levels is not 2D
            ParameterError: If k_ar_diff is negative or the sample is too short
        """
        names = None
        if isinstance(levels, pd.DataFrame):
            names = [str(c) for c in levels.columns]
            y = levels.to_numpy(dtype=float)
        else:
            y = np.asarray(levels, dtype=float)

        if y.ndim != 2:
            raise_dimension_error(
                "Levels must be a 2D array",
                array_name="levels",
                expected_shape="(nobs, n)",
                actual_shape=y.shape
            )
        if k_ar_diff < 0:
            raise ParameterError(
                "Number of lagged differences must be non-negative",
                param_name="k_ar_diff",
                param_value=k_ar_diff,
                constraint="k_ar_diff >= 0"
            )
        if deterministic not in _VALID_DETERMINISTIC:
            raise ParameterError(
                f"Invalid deterministic term: {deterministic}",
                param_name="deterministic",
                param_value=deterministic,
                constraint=f"Must be one of {list(_VALID_DETERMINISTIC)}"
            )

        n_total, n = y.shape
        dy = np.diff(y, axis=0)

        if k_ar_diff > 0:
            z2, z0 = lagmat(dy, maxlag=k_ar_diff, trim="both", original="sep")
        else:
            z2, z0 = np.empty((dy.shape[0], 0)), dy
        T = z0.shape[0]

        if T <= n * (k_ar_diff + 1) + 1:
            raise ParameterError(
                "Sample is too short for the requested lag order",
                param_name="levels",
                param_value=n_total,
                constraint=f"More than {n * (k_ar_diff + 1) + 2} observations"
            )

        z1 = y[k_ar_diff:n_total - 1]
        if deterministic == "restricted_const":
            z1 = np.column_stack([z1, np.ones(T)])
        elif deterministic == "restricted_trend":
            z1 = np.column_stack([z1, np.arange(k_ar_diff + 1, k_ar_diff + 1 + T, dtype=float)])
            z2 = np.column_stack([z2, np.ones(T)])

        if z2.shape[1] > 0:
            coef0 = np.linalg.lstsq(z2, z0, rcond=None)[0]
            coef1 = np.linalg.lstsq(z2, z1, rcond=None)[0]
            r0 = z0 - z2 @ coef0
            r1 = z1 - z2 @ coef1
        else:
            r0, r1 = z0, z1

        S00 = ensure_symmetric(r0.T @ r0 / T, tol=0.0)
        S01 = r0.T @ r1 / T
        S11 = ensure_symmetric(r1.T @ r1 / T, tol=0.0)

        S00i = sym_inverse(S00, "S00")
        evals, _ = gensym_eigen(S01.T @ S00i @ S01, S11, rank)
        llf = -0.5 * T * (n * (1.0 + np.log(2.0 * np.pi))
                          + log_determinant(S00, "S00")
                          + np.sum(np.log1p(-evals)))

        logger.debug(f"Johansen moments built from {n_total} observations, T = {T}, rank = {rank}")

        return cls(S00=S00, S01=S01, S11=S11, nobs=T, rank=rank, llf=float(llf),
                   bdf=bdf, names=names, deterministic=deterministic)
