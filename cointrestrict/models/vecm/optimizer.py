'''
Maximization of the restricted profile likelihood

Two phases are run on the free parameters phi. Simulated annealing explores
the restricted parameter space first, since the profile likelihood can have
several local maxima there; L-BFGS then refines the best point found, with a
two-sided numerical gradient. An undefined (NaN) likelihood is ranked below
every finite value in both phases and is never fatal.
'''

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import optimize

from cointrestrict.core.config import AnnealingConfig, LBFGSConfig
from cointrestrict.core.exceptions import EstimationError, warn_convergence, warn_numeric
from cointrestrict.core.types import ParameterVector
from cointrestrict.models.vecm.likelihood import LikelihoodEngine
from cointrestrict.utils.differentiation import gradient_2sided

# Set up module-level logger
logger = logging.getLogger("cointrestrict.models.vecm.optimizer")


@dataclass
class AnnealingResult:
    """
    Outcome of the simulated annealing phase.

    Attributes:
        phi: Best point found
        fbest: Log-likelihood at phi
        fworst: Lowest log-likelihood among accepted points
        initial: Log-likelihood at the starting point
        iterations: Number of annealing steps taken
        accepted: Number of accepted moves
        improvements: Number of times the best point improved
        flat: True when fbest - fworst fell below the flatness tolerance
    """

    phi: ParameterVector
    fbest: float
    fworst: float
    initial: float
    iterations: int
    accepted: int = 0
    improvements: int = 0
    flat: bool = False


@dataclass
class OptimizationResult:
    """
    Outcome of the two-phase maximization.

    Attributes:
        phi: Final free parameters
        loglik: Log-likelihood at phi
        initial_loglik: Log-likelihood at the starting phi
        annealing: Result of the annealing phase
        fncount: Likelihood evaluations used by L-BFGS
        grcount: Gradient evaluations used by L-BFGS
        lbfgs_iterations: L-BFGS iterations
        converged: Whether L-BFGS reported convergence
        message: L-BFGS termination message
        refined: Whether the L-BFGS point was kept over the annealing point
    """

    phi: ParameterVector
    loglik: float
    initial_loglik: float
    annealing: Optional[AnnealingResult] = None
    fncount: int = 0
    grcount: int = 0
    lbfgs_iterations: int = 0
    converged: bool = False
    message: str = ""
    refined: bool = False


def _trace(verbose: bool, message: str) -> None:
    logger.log(logging.INFO if verbose else logging.DEBUG, message)


def simulated_annealing(engine: LikelihoodEngine,
                        phi0: ParameterVector,
                        rng: np.random.Generator,
                        schedule: Optional[AnnealingConfig] = None,
                        verbose: bool = False) -> AnnealingResult:
    """
    Random search over phi with a cooling acceptance rule.

    At each step the trial point is moved by a standard-normal vector scaled
    by the current radius. An uphill trial is always accepted; a downhill one
    is accepted when a uniform draw falls below the current temperature. A
    rejected trial is reset to the current point. Temperature and radius
    decay geometrically.

    Args:
        engine: Likelihood engine to maximize
        phi0: Starting point
        rng: Random generator for the steps and acceptance draws
        schedule: Annealing schedule (defaults to AnnealingConfig())
        verbose: Log the progress table at INFO rather than DEBUG

    Returns:
        AnnealingResult
    """
    schedule = schedule or AnnealingConfig()
    k = phi0.shape[0]

    b0 = np.array(phi0, dtype=float)
    b1 = b0.copy()
    best = b0.copy()

    f0 = engine.loglik(b0)
    initial = f0
    fbest = fworst = f0
    temp = schedule.initial_temperature
    radius = schedule.initial_radius
    accepted = 0
    improvements = 0

    _trace(verbose, "\nSimulated annealing:")
    _trace(verbose, f"{'iter':>6} {'temp':>12} {'radius':>12} {'fbest':>12}")
    _trace(verbose, f"{0:6d} {temp:#12.6g} {radius:#12.6g} {fbest:#12.6g}")

    for i in range(schedule.iterations):
        b1 += rng.standard_normal(k) * radius
        f1 = engine.loglik(b1)

        if np.isnan(f1):
            jump = False
        elif np.isnan(f0) or f1 > f0:
            jump = True
        else:
            jump = rng.uniform() < temp

        if jump:
            accepted += 1
            b0[:] = b1
            f0 = f1
            if np.isnan(fbest) or f0 > fbest:
                fbest = f0
                best[:] = b0
                improvements += 1
                _trace(verbose, f"{i + 1:6d} {temp:#12.6g} {radius:#12.6g} {fbest:#12.6g}")
            elif np.isnan(fworst) or f0 < fworst:
                fworst = f0
        else:
            b1[:] = b0

        temp *= schedule.cooling
        radius *= schedule.shrink

    _trace(verbose, f"{schedule.iterations:6d} {temp:#12.6g} {radius:#12.6g} {fbest:#12.6g}")

    flat = bool(accepted > 0 and np.isfinite(fbest) and np.isfinite(fworst)
                and fbest - fworst < schedule.flat_tolerance)
    if flat:
        logger.warning("Simulated annealing: likelihood seems to be flat")
        warn_numeric(
            "Likelihood seems to be flat",
            operation="simulated_annealing",
            issue="best and worst accepted values coincide",
            value=float(fbest - fworst)
        )

    return AnnealingResult(phi=best, fbest=float(fbest), fworst=float(fworst),
                           initial=float(initial), iterations=schedule.iterations,
                           accepted=accepted, improvements=improvements, flat=flat)


def lbfgs_refine(engine: LikelihoodEngine,
                 phi0: ParameterVector,
                 settings: Optional[LBFGSConfig] = None,
                 gradient_step: Optional[float] = None,
                 verbose: bool = False) -> optimize.OptimizeResult:
    """
    Local maximization of the likelihood with L-BFGS.

    Args:
        engine: Likelihood engine to maximize
        phi0: Starting point
        settings: Iteration cap, relative tolerance and memory (defaults to LBFGSConfig())
        gradient_step: Step of the two-sided numerical gradient
        verbose: Log each iteration at INFO rather than DEBUG

    Returns:
        scipy OptimizeResult of the minimization of -ll
    """
    settings = settings or LBFGSConfig()

    def objective(phi: np.ndarray) -> float:
        return engine.negative_loglik(phi)

    def gradient(phi: np.ndarray) -> np.ndarray:
        grad = gradient_2sided(objective, phi, epsilon=gradient_step)
        bad = ~np.isfinite(grad)
        if np.any(bad):
            logger.debug(f"Non-finite gradient components at {np.flatnonzero(bad)}; set to zero")
            grad[bad] = 0.0
        return grad

    iteration = [0]

    def callback(phi: np.ndarray) -> None:
        iteration[0] += 1
        _trace(verbose, f"L-BFGS iteration {iteration[0]:4d}: loglik = {-objective(phi):#.10g}")

    _trace(verbose, "\nL-BFGS refinement:")

    return optimize.minimize(
        objective,
        np.asarray(phi0, dtype=float),
        method="L-BFGS-B",
        jac=gradient,
        callback=callback,
        options={
            "maxiter": settings.max_iterations,
            "ftol": settings.reltol,
            "gtol": 1e-8,
            "maxcor": settings.memory,
        }
    )


def maximize_likelihood(engine: LikelihoodEngine,
                        phi0: ParameterVector,
                        rng: np.random.Generator,
                        schedule: Optional[AnnealingConfig] = None,
                        settings: Optional[LBFGSConfig] = None,
                        gradient_step: Optional[float] = None,
                        verbose: bool = False) -> OptimizationResult:
    """
    Simulated annealing followed by L-BFGS refinement.

    The returned point never has a lower log-likelihood than phi0: annealing
    keeps the best point seen, and the L-BFGS point is used only if it does
    not lower the likelihood.

    Raises:
        EstimationError: If no finite likelihood value was found
    """
    settings = settings or LBFGSConfig()
    phi0 = np.asarray(phi0, dtype=float)

    sa = simulated_annealing(engine, phi0, rng, schedule, verbose)
    if not np.isfinite(sa.fbest):
        raise EstimationError(
            "Likelihood is undefined at the starting values and at every annealing trial point",
            estimation_method="simulated_annealing",
            issue="no finite likelihood value"
        )

    try:
        res = lbfgs_refine(engine, sa.phi, settings, gradient_step, verbose)
    except (ValueError, np.linalg.LinAlgError) as e:
        raise EstimationError(
            "L-BFGS refinement failed",
            estimation_method="L-BFGS-B",
            issue=str(e)
        ) from e

    f_lbfgs = -float(res.fun)
    refined = bool(np.isfinite(f_lbfgs) and f_lbfgs >= sa.fbest)
    if refined:
        phi, loglik = np.asarray(res.x, dtype=float), f_lbfgs
    else:
        logger.debug("L-BFGS did not improve on the annealing point; keeping the annealing point")
        phi, loglik = sa.phi, sa.fbest

    message = res.message.decode() if isinstance(res.message, bytes) else str(res.message)
    nit = int(getattr(res, "nit", 0))
    if nit >= settings.max_iterations:
        warn_convergence(
            "L-BFGS reached its iteration limit",
            iterations=nit,
            tolerance=settings.reltol,
            gradient_norm=float(np.linalg.norm(res.jac)) if getattr(res, "jac", None) is not None else None,
            details=message
        )

    _trace(verbose, f"Function evaluations: {res.nfev}")
    _trace(verbose, f"Evaluations of gradient: {res.njev}")

    return OptimizationResult(
        phi=phi,
        loglik=float(loglik),
        initial_loglik=sa.initial,
        annealing=sa,
        fncount=int(res.nfev),
        grcount=int(res.njev),
        lbfgs_iterations=nit,
        converged=bool(res.success),
        message=message,
        refined=refined
    )
