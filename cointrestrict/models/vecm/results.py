'''
Result container for the restricted cointegration estimator

RestrictedVECMResult holds the restricted beta and alpha, the residual
covariance, the covariance and standard errors of beta, the likelihood-ratio
test of the restrictions and the optimizer diagnostics. Its summary() is the
text report of the estimator; fold_into() writes the restricted estimates
back into the Johansen moments object of the caller.
'''

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd

from cointrestrict.core.config import get_config
from cointrestrict.core.results import ModelResult
from cointrestrict.core.types import CovarianceMatrix, Matrix, ParameterVector, ResultDict
from cointrestrict.models.vecm.moments import JohansenMoments

# Set up module-level logger
logger = logging.getLogger("cointrestrict.models.vecm.results")


@dataclass
class RestrictedVECMResult(ModelResult):
    """
    Estimates of a VECM under linear restrictions on the cointegrating vectors.

    Attributes:
        beta: Restricted cointegrating vectors (p x r)
        alpha: Loadings (n x r)
        omega: Residual covariance (n x n)
        beta_variance: Covariance of vec(beta) (p*r x p*r)
        beta_se: Standard errors of beta (p x r)
        llf: Restricted log-likelihood
        llf_unrestricted: Unrestricted log-likelihood
        df: Degrees of freedom of the LR test
        lr_stat: 2 (llf_unrestricted - llf)
        lr_pvalue: Chi-square p-value of lr_stat, None when df <= 0
        noest: True when the restrictions pin beta completely
        phi: Free parameters at the optimum
        initial_loglik: Log-likelihood at the starting values
        fncount: Likelihood evaluations of the L-BFGS phase
        grcount: Gradient evaluations of the L-BFGS phase
        annealing_best: Best log-likelihood of the annealing phase
        annealing_flat: Whether annealing found the likelihood flat
        converged: Whether L-BFGS reported convergence
        identification_method: "skipped", "rank" or "jacobian"
        jacobian_rank: Rank found by the Jacobian identification probe
        labels: Row labels of beta
    """

    beta: Optional[Matrix] = None
    alpha: Optional[Matrix] = None
    omega: Optional[CovarianceMatrix] = None
    beta_variance: Optional[CovarianceMatrix] = None
    beta_se: Optional[Matrix] = None
    llf: Optional[float] = None
    llf_unrestricted: Optional[float] = None
    df: int = 0
    lr_stat: Optional[float] = None
    lr_pvalue: Optional[float] = None
    noest: bool = False
    phi: Optional[ParameterVector] = None
    initial_loglik: Optional[float] = None
    fncount: int = 0
    grcount: int = 0
    annealing_best: Optional[float] = None
    annealing_flat: bool = False
    converged: bool = False
    identification_method: str = "skipped"
    jacobian_rank: Optional[int] = None
    labels: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.beta is not None and not self.labels:
            self.labels = [f"x{i + 1}" for i in range(self.beta.shape[0])]

    @property
    def rank(self) -> int:
        return 0 if self.beta is None else self.beta.shape[1]

    def report(self) -> str:
        """
        Text report of the restricted estimates.

        Log-likelihoods and, when df > 0, the LR test, followed by the
        restricted cointegrating vectors with standard errors in parentheses
        beneath each coefficient.
        """
        width = get_config("output", "coefficient_width", 12)
        digits = get_config("output", "significant_digits", 5)
        label_width = get_config("output", "label_width", 12)

        lines = [
            f"Unrestricted loglikelihood (lu) = {self.llf_unrestricted:g}",
            f"Restricted loglikelihood (lr) = {self.llf:g}",
        ]
        if self.df > 0 and self.lr_stat is not None:
            lines.append(f"2 * (lu - lr) = {self.lr_stat:g}")
            lines.append(f"P(Chi-Square({self.df}) > {self.lr_stat:g}) = {self.lr_pvalue:g}")

        lines.append("")
        lines.append("Restricted cointegrating vectors (standard errors in parentheses)")
        lines.append("")

        se = self.beta_se if self.beta_se is not None else np.zeros_like(self.beta)
        for i, label in enumerate(self.labels):
            coefs = "".join(f"{self.beta[i, j]:#{width}.{digits}g} " for j in range(self.rank))
            lines.append(f"{label:<{label_width}}{coefs}")
            errors = ""
            for j in range(self.rank):
                text = f"({se[i, j]:#.{digits}g})"
                errors += f"{text:>{width}} "
            lines.append(" " * label_width + errors)

        return "\n".join(line.rstrip() for line in lines) + "\n"

    def summary(self) -> str:
        """Generate a text summary of the restricted estimates."""
        base_summary = super().summary()

        info = f"Cointegrating rank: {self.rank}\n"
        info += f"Free parameters: {0 if self.phi is None else len(self.phi)}\n"
        info += f"Identification: {self.identification_method}"
        if self.jacobian_rank is not None:
            info += f" (Jacobian rank {self.jacobian_rank})"
        info += "\n"
        if not self.noest:
            info += f"Function evaluations: {self.fncount}\n"
            info += f"Evaluations of gradient: {self.grcount}\n"
        info += "\n"

        return base_summary + info + self.report()

    def to_dataframe(self) -> pd.DataFrame:
        """
        Restricted beta and its standard errors as a DataFrame.

        Rows are the beta labels; columns are beta_1..beta_r followed by
        se_1..se_r.
        """
        cols = [f"beta_{j + 1}" for j in range(self.rank)]
        frame = pd.DataFrame(self.beta, index=self.labels, columns=cols)
        se = self.beta_se if self.beta_se is not None else np.zeros_like(self.beta)
        for j in range(self.rank):
            frame[f"se_{j + 1}"] = se[:, j]
        return frame

    def alpha_frame(self, names: Optional[List[str]] = None) -> pd.DataFrame:
        """Loadings as a DataFrame indexed by equation."""
        index = names if names is not None else [f"eq{i + 1}" for i in range(self.alpha.shape[0])]
        return pd.DataFrame(self.alpha, index=index,
                            columns=[f"alpha_{j + 1}" for j in range(self.rank)])

    def fold_into(self, moments: JohansenMoments) -> None:
        """
        Replace the estimates of an unrestricted model with the restricted ones.

        The residual covariance becomes Omega, the previous log-likelihood is
        kept in llf0, llf becomes the restricted log-likelihood and the LR
        degrees of freedom are added to bdf.
        """
        moments.sigma = self.omega.copy()
        moments.llf0 = moments.llf
        moments.llf = float(self.llf)
        moments.bdf += int(self.df)
        moments.beta = self.beta.copy()
        moments.alpha = self.alpha.copy()
        moments.beta_variance = self.beta_variance.copy()
        moments.beta_se = self.beta_se.copy()
        logger.debug(f"Restricted estimates folded into the model, bdf = {moments.bdf}")

    def to_dict(self) -> ResultDict:
        result = super().to_dict()
        result["rank"] = self.rank
        return result
