'''
Estimation of a VECM under general restrictions on beta

estimate_restricted_cointegration is the entry point of the package. It
translates the restrictions R vec(beta) = q (and optionally alpha_R alpha = 0)
into explicit form, checks identification, finds starting values, maximizes
the profile likelihood and computes the post-estimation quantities. Any
failure raises before a result is produced; the caller's model object is
only modified when fold=True and the estimation has succeeded.
'''

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from cointrestrict.core.config import AnnealingConfig, LBFGSConfig, get_config
from cointrestrict.core.exceptions import ParameterError
from cointrestrict.models.vecm.identification import check_identification
from cointrestrict.models.vecm.initial import starting_values
from cointrestrict.models.vecm.likelihood import ConcentratedMoments, LikelihoodEngine
from cointrestrict.models.vecm.moments import JohansenMoments
from cointrestrict.models.vecm.optimizer import maximize_likelihood
from cointrestrict.models.vecm.post_estimation import (
    beta_variance, compute_alpha, compute_omega, lr_degrees_of_freedom, lr_test
)
from cointrestrict.models.vecm.restrictions import (
    RestrictionSet, translate_alpha_restrictions, translate_restrictions
)
from cointrestrict.models.vecm.results import RestrictedVECMResult

# Set up module-level logger
logger = logging.getLogger("cointrestrict.models.vecm.estimate")


def _config_default(section: str, option: str):
    return field(default_factory=lambda: get_config(section, option))


@dataclass
class RestrictionOptions:
    """
    Options of the restricted estimator.

    Attributes not given explicitly are read from the configuration layer.

    Attributes:
        verbose: Log annealing and L-BFGS progress at INFO level
        fold: Write the restricted estimates back into the model object
        seed: Seed of the random generator used by annealing and the
            Jacobian identification probe
        annealing_iterations: Number of simulated annealing steps
        max_iterations: L-BFGS iteration cap
        reltol: L-BFGS relative tolerance
        rank_tolerance: Relative tolerance of rank and nullspace computations
    """

    verbose: bool = False
    fold: bool = False
    seed: Optional[int] = _config_default("core", "random_seed")
    annealing_iterations: int = _config_default("annealing", "iterations")
    max_iterations: int = _config_default("lbfgs", "max_iterations")
    reltol: float = _config_default("lbfgs", "reltol")
    rank_tolerance: float = _config_default("numerical", "rank_tolerance")

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Validate the options.

        Raises:
            ParameterError: If a numeric option is out of range
        """
        if self.annealing_iterations < 0:
            raise ParameterError(
                "Number of annealing iterations must be non-negative",
                param_name="annealing_iterations",
                param_value=self.annealing_iterations,
                constraint="annealing_iterations >= 0"
            )
        if self.max_iterations <= 0:
            raise ParameterError(
                "L-BFGS iteration cap must be positive",
                param_name="max_iterations",
                param_value=self.max_iterations,
                constraint="max_iterations > 0"
            )
        if self.reltol <= 0:
            raise ParameterError(
                "L-BFGS relative tolerance must be positive",
                param_name="reltol",
                param_value=self.reltol,
                constraint="reltol > 0"
            )
        if self.rank_tolerance <= 0:
            raise ParameterError(
                "Rank tolerance must be positive",
                param_name="rank_tolerance",
                param_value=self.rank_tolerance,
                constraint="rank_tolerance > 0"
            )

    def annealing_schedule(self) -> AnnealingConfig:
        return AnnealingConfig(
            iterations=self.annealing_iterations,
            initial_temperature=get_config("annealing", "initial_temperature"),
            initial_radius=get_config("annealing", "initial_radius"),
            cooling=get_config("annealing", "cooling"),
            shrink=get_config("annealing", "shrink"),
            flat_tolerance=get_config("annealing", "flat_tolerance")
        )

    def lbfgs_settings(self) -> LBFGSConfig:
        return LBFGSConfig(
            max_iterations=self.max_iterations,
            reltol=self.reltol,
            memory=get_config("lbfgs", "memory")
        )


def estimate_restricted_cointegration(vecm: JohansenMoments,
                                      restrictions: RestrictionSet,
                                      options: Optional[RestrictionOptions] = None
                                      ) -> RestrictedVECMResult:
    """
    Maximum-likelihood estimation of beta under R vec(beta) = q.

    Args:
        vecm: Moments of the unrestricted Johansen VECM
        restrictions: Restrictions on beta and, optionally, on alpha
        options: Estimation options (defaults to RestrictionOptions())

    Returns:
        RestrictedVECMResult. With options.fold the restricted estimates are
        also written into vecm; otherwise the text report is logged.

    Raises:
        DimensionError: If the restrictions do not match the model dimensions
        RestrictionError: If the restrictions are malformed or inconsistent
        IdentificationError: If the restricted model is not identified
        NumericError: If a required matrix is singular
        EstimationError: If the optimizer fails

    Examples:
        >>> import numpy as np
        >>> from cointrestrict import JohansenMoments, RestrictionSet
        >>> from cointrestrict import estimate_restricted_cointegration
        >>> vecm = JohansenMoments(S00=[[1, .2], [.2, 1]], S01=[[.5, .1], [.1, .4]],
        ...                        S11=[[1, .3], [.3, 1]], nobs=100, rank=1, llf=-250.0)
        >>> res = estimate_restricted_cointegration(vecm, RestrictionSet([[1, 0]], [1]))
        >>> float(res.beta[0, 0])
        1.0
    """
    options = options or RestrictionOptions()
    rtol = options.rank_tolerance
    zero_tol = get_config("numerical", "zero_tolerance")
    rng = np.random.default_rng(options.seed)

    n, p, r = vecm.neqns, vecm.n_beta, vecm.rank
    logger.debug(f"Restricted estimation: n = {n}, p = {p}, r = {r}, T = {vecm.nobs}")

    explicit = translate_restrictions(restrictions, p, r, rtol=rtol, zero_tol=zero_tol)

    alpha_restrictions = None
    if restrictions.alpha_R is not None:
        alpha_restrictions = translate_alpha_restrictions(restrictions.alpha_R, n, r, rtol)

    concentrated = ConcentratedMoments(vecm, alpha_restrictions)

    ident = check_identification(explicit, concentrated, rng, rtol)

    engine = LikelihoodEngine(concentrated, explicit)

    if explicit.noest:
        phi = np.zeros(0)
        llf = engine.loglik(phi)
        initial_llf = llf
        fncount = grcount = 0
        annealing_best = None
        annealing_flat = False
        converged = True
    else:
        phi0 = starting_values(concentrated, explicit)
        opt = maximize_likelihood(
            engine, phi0, rng,
            schedule=options.annealing_schedule(),
            settings=options.lbfgs_settings(),
            gradient_step=get_config("numerical", "gradient_step"),
            verbose=options.verbose
        )
        phi = opt.phi
        llf = opt.loglik
        initial_llf = opt.initial_loglik
        fncount, grcount = opt.fncount, opt.grcount
        annealing_best = opt.annealing.fbest
        annealing_flat = opt.annealing.flat
        converged = opt.converged

    beta = explicit.beta(phi)
    alpha = compute_alpha(concentrated, beta)
    omega = compute_omega(vecm, alpha, beta)
    V, se = beta_variance(explicit, vecm, alpha, omega)

    df = lr_degrees_of_freedom(explicit, vecm.bdf, alpha_restrictions)
    lr_stat, lr_pvalue = lr_test(vecm.llf, llf, df)

    result = RestrictedVECMResult(
        model_name="Restricted VECM",
        beta=beta,
        alpha=alpha,
        omega=omega,
        beta_variance=V,
        beta_se=se,
        llf=float(llf),
        llf_unrestricted=vecm.llf,
        df=df,
        lr_stat=lr_stat,
        lr_pvalue=lr_pvalue,
        noest=explicit.noest,
        phi=phi,
        initial_loglik=float(initial_llf),
        fncount=fncount,
        grcount=grcount,
        annealing_best=annealing_best,
        annealing_flat=annealing_flat,
        converged=converged,
        identification_method=ident.method,
        jacobian_rank=ident.jacobian_rank,
        labels=vecm.variable_labels(),
        metadata={"n_restrictions": restrictions.n_restrictions,
                  "alpha_restricted": alpha_restrictions is not None}
    )

    if options.fold:
        result.fold_into(vecm)
    else:
        logger.info("\n" + result.report())

    return result
