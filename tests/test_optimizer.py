# tests/test_optimizer.py
"""
Tests for the two-phase maximization of the restricted likelihood.
"""

import logging

import numpy as np
import pytest
from numpy.testing import assert_allclose

from cointrestrict.core.config import AnnealingConfig, LBFGSConfig
from cointrestrict.core.exceptions import ConvergenceWarning, EstimationError, NumericWarning
from cointrestrict.models.vecm.initial import starting_values
from cointrestrict.models.vecm.likelihood import ConcentratedMoments, LikelihoodEngine
from cointrestrict.models.vecm.optimizer import (
    AnnealingResult, OptimizationResult, lbfgs_refine, maximize_likelihood,
    simulated_annealing
)
from cointrestrict.models.vecm.restrictions import (
    ExplicitRestrictions, RestrictionSet, translate_restrictions
)


@pytest.fixture

def trivariate_engine(trivariate_moments, trivariate_restrictions) -> LikelihoodEngine:
    explicit = translate_restrictions(trivariate_restrictions, 3, 2)
    return LikelihoodEngine(ConcentratedMoments(trivariate_moments), explicit)


@pytest.fixture

def flat_engine(bivariate_moments) -> LikelihoodEngine:
    """beta = c (1, 1)': every nonzero c gives the same likelihood."""
    explicit = translate_restrictions(RestrictionSet(R=[[1.0, -1.0]], q=[0.0]), 2, 1)
    return LikelihoodEngine(ConcentratedMoments(bivariate_moments), explicit)


class TestSimulatedAnnealing:
    """Tests for the annealing phase."""

    def test_best_point_never_worse_than_start(self, trivariate_engine, rng):
        """The best point found is at least as good as the starting point."""
        phi0 = np.array([0.3, 2.0])
        sa = simulated_annealing(trivariate_engine, phi0, rng, AnnealingConfig(iterations=300))
        assert isinstance(sa, AnnealingResult)
        assert sa.fbest >= sa.initial
        assert_allclose(trivariate_engine.loglik(sa.phi), sa.fbest)
        assert sa.iterations == 300
        assert sa.accepted > 0

    def test_start_is_not_modified(self, trivariate_engine, rng):
        """The caller's starting vector is left untouched."""
        phi0 = np.array([0.3, 2.0])
        simulated_annealing(trivariate_engine, phi0, rng, AnnealingConfig(iterations=50))
        assert_allclose(phi0, [0.3, 2.0])

    def test_flat_likelihood_warns(self, flat_engine, rng):
        """A likelihood that does not change is reported as flat."""
        with pytest.warns(NumericWarning, match="flat"):
            sa = simulated_annealing(flat_engine, np.array([1.0]), rng,
                                     AnnealingConfig(iterations=100))
        assert sa.flat

    def test_undefined_trials_are_rejected(self, bivariate_moments, rng):
        """NaN trial points are never accepted."""
        explicit = ExplicitRestrictions(p=2, rank=1, H=np.zeros((2, 1)), s=np.zeros(2))
        engine = LikelihoodEngine(ConcentratedMoments(bivariate_moments), explicit)
        sa = simulated_annealing(engine, np.array([0.5]), rng, AnnealingConfig(iterations=20))
        assert sa.accepted == 0
        assert np.isnan(sa.fbest)
        assert not sa.flat

    def test_no_iterations(self, trivariate_engine, rng):
        """With zero steps the start point is returned and nothing is flagged."""
        phi0 = np.array([0.3, 2.0])
        sa = simulated_annealing(trivariate_engine, phi0, rng, AnnealingConfig(iterations=0))
        assert_allclose(sa.phi, phi0)
        assert sa.fbest == sa.initial
        assert not sa.flat

    def test_reproducible_with_seed(self, trivariate_engine):
        """The same seed gives the same search path."""
        phi0 = np.array([0.3, 2.0])
        schedule = AnnealingConfig(iterations=100)
        a = simulated_annealing(trivariate_engine, phi0, np.random.default_rng(7), schedule)
        b = simulated_annealing(trivariate_engine, phi0, np.random.default_rng(7), schedule)
        assert_allclose(a.phi, b.phi)
        assert a.accepted == b.accepted

    def test_verbose_table(self, trivariate_engine, rng, caplog):
        """verbose=True logs the progress table at INFO."""
        with caplog.at_level(logging.INFO, logger="cointrestrict.models.vecm.optimizer"):
            simulated_annealing(trivariate_engine, np.array([0.3, 2.0]), rng,
                                AnnealingConfig(iterations=10), verbose=True)
        assert "Simulated annealing:" in caplog.text
        assert "fbest" in caplog.text


class TestLBFGS:
    """Tests for the quasi-Newton refinement."""

    def test_refinement_improves(self, trivariate_engine):
        """L-BFGS lowers -ll from an arbitrary start."""
        phi0 = np.array([0.3, 2.0])
        start = trivariate_engine.negative_loglik(phi0)
        res = lbfgs_refine(trivariate_engine, phi0)
        assert res.fun <= start
        assert res.nfev > 0


class TestMaximizeLikelihood:
    """Tests for the combined maximization."""

    def test_exactly_identified_reaches_unrestricted(self, trivariate_moments,
                                                     trivariate_restrictions, rng):
        """Exactly identifying restrictions do not lower the maximum."""
        explicit = translate_restrictions(trivariate_restrictions, 3, 2)
        cm = ConcentratedMoments(trivariate_moments)
        engine = LikelihoodEngine(cm, explicit)
        phi0 = starting_values(cm, explicit)
        opt = maximize_likelihood(engine, phi0, rng, AnnealingConfig(iterations=200))
        assert isinstance(opt, OptimizationResult)
        assert opt.loglik >= opt.initial_loglik
        assert opt.loglik >= opt.annealing.fbest
        assert_allclose(opt.loglik, trivariate_moments.llf, rtol=1e-7)
        assert opt.fncount > 0
        assert opt.grcount > 0

    def test_never_below_start(self, trivariate_engine, rng):
        """The returned point is never worse than the start."""
        phi0 = np.array([0.3, 2.0])
        start = trivariate_engine.loglik(phi0)
        opt = maximize_likelihood(trivariate_engine, phi0, rng, AnnealingConfig(iterations=50))
        assert opt.loglik >= start
        assert_allclose(trivariate_engine.loglik(opt.phi), opt.loglik)

    def test_iteration_limit_warns(self, trivariate_engine, rng):
        """Hitting the L-BFGS iteration cap raises a convergence warning."""
        with pytest.warns(ConvergenceWarning):
            opt = maximize_likelihood(trivariate_engine, np.array([0.3, 2.0]), rng,
                                      AnnealingConfig(iterations=0),
                                      LBFGSConfig(max_iterations=1))
        assert opt.lbfgs_iterations == 1

    def test_undefined_everywhere(self, bivariate_moments, rng):
        """No finite likelihood anywhere is an estimation error."""
        explicit = ExplicitRestrictions(p=2, rank=1, H=np.zeros((2, 1)), s=np.zeros(2))
        engine = LikelihoodEngine(ConcentratedMoments(bivariate_moments), explicit)
        with pytest.raises(EstimationError, match="undefined"):
            maximize_likelihood(engine, np.array([0.5]), rng, AnnealingConfig(iterations=20))
