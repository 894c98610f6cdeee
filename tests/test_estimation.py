# tests/test_estimation.py
"""
End-to-end tests for estimate_restricted_cointegration.

Covers the normalization-only bivariate model, exactly and over-identified
trivariate models, fully pinned beta, restricted loadings, folding the
result into the model and the text report.
"""

import logging

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from cointrestrict import estimate_restricted_cointegration
from cointrestrict.core.config import set_config
from cointrestrict.core.exceptions import (
    DimensionError, IdentificationError, ModelWarning, ParameterError
)
from cointrestrict.models.vecm.estimate import RestrictionOptions
from cointrestrict.models.vecm.moments import JohansenMoments
from cointrestrict.models.vecm.restrictions import RestrictionSet
from cointrestrict.models.vecm.results import RestrictedVECMResult
from cointrestrict.utils.matrix_ops import vec
from tests import SKIP_SLOW_TESTS
from tests.conftest import closed_form_loglik


def _options(**kwargs) -> RestrictionOptions:
    kwargs.setdefault("seed", 1234)
    kwargs.setdefault("annealing_iterations", 300)
    return RestrictionOptions(**kwargs)


def _copy_moments(m: JohansenMoments, **changes) -> JohansenMoments:
    values = dict(S00=m.S00.copy(), S01=m.S01.copy(), S11=m.S11.copy(), nobs=m.nobs,
                  rank=m.rank, llf=m.llf, bdf=m.bdf, names=list(m.names),
                  deterministic=m.deterministic)
    values.update(changes)
    return JohansenMoments(**values)


class TestNormalizationOnly:
    """n = p = 2, r = 1 with beta = [1, b]."""

    def test_first_coefficient_is_one(self, bivariate_moments, normalization_restriction):
        res = estimate_restricted_cointegration(bivariate_moments, normalization_restriction,
                                                _options())
        assert isinstance(res, RestrictedVECMResult)
        assert res.beta.shape == (2, 1)
        assert_allclose(res.beta[0, 0], 1.0, atol=1e-12)

    def test_loglik_and_lr(self, bivariate_moments, normalization_restriction):
        """Normalization alone does not restrict the likelihood."""
        m = bivariate_moments
        res = estimate_restricted_cointegration(m, normalization_restriction, _options())
        assert_allclose(res.llf, closed_form_loglik(res.beta, m.S00, m.S01, m.S11, m.nobs),
                        rtol=1e-10)
        assert_allclose(res.llf, m.llf, rtol=1e-8)
        assert res.df == 0
        assert res.lr_pvalue is None
        assert res.lr_stat >= -1e-6 * abs(m.llf)
        assert res.identification_method == "skipped"

    def test_post_estimation(self, bivariate_moments, normalization_restriction):
        """alpha, Omega and the standard errors at the restricted beta."""
        m = bivariate_moments
        res = estimate_restricted_cointegration(m, normalization_restriction, _options())
        beta = res.beta
        qf = beta.T @ m.S11 @ beta
        assert_allclose(res.alpha, m.S01 @ beta @ np.linalg.inv(qf), rtol=1e-10)
        expected_omega = (m.S00 - res.alpha @ qf @ res.alpha.T) / m.nobs
        assert_allclose(res.omega, expected_omega, rtol=1e-10, atol=1e-14)
        assert res.beta_se[0, 0] < 1e-10
        assert res.beta_se[1, 0] > 0.0
        assert res.beta_variance.shape == (2, 2)

    def test_report(self, bivariate_moments, normalization_restriction):
        """The report lists both log-likelihoods and each coefficient with its error."""
        res = estimate_restricted_cointegration(bivariate_moments, normalization_restriction,
                                                _options())
        lines = res.report().splitlines()
        assert lines[0] == f"Unrestricted loglikelihood (lu) = {bivariate_moments.llf:g}"
        assert lines[1] == f"Restricted loglikelihood (lr) = {res.llf:g}"
        assert "2 * (lu - lr)" not in res.report()
        assert "Restricted cointegrating vectors (standard errors in parentheses)" in lines
        assert lines[5].startswith("y1(-1)")
        assert "1.0000" in lines[5]
        assert lines[6].strip().startswith("(")
        assert lines[7].startswith("y2(-1)")
        assert lines[8].strip().startswith("(")

    def test_report_is_logged(self, bivariate_moments, normalization_restriction, caplog):
        """Without fold the report goes to the log and the model is unchanged."""
        with caplog.at_level(logging.INFO, logger="cointrestrict.models.vecm.estimate"):
            estimate_restricted_cointegration(bivariate_moments, normalization_restriction,
                                              _options())
        assert "Restricted loglikelihood (lr)" in caplog.text
        assert bivariate_moments.beta is None
        assert bivariate_moments.llf0 is None

    def test_fold_into_model(self, bivariate_moments, normalization_restriction):
        """fold=True replaces the estimates of the unrestricted model."""
        llf_before = bivariate_moments.llf
        res = estimate_restricted_cointegration(bivariate_moments, normalization_restriction,
                                                _options(fold=True))
        assert bivariate_moments.llf0 == llf_before
        assert bivariate_moments.llf == res.llf
        assert bivariate_moments.bdf == res.df
        assert_array_equal(bivariate_moments.beta, res.beta)
        assert_array_equal(bivariate_moments.alpha, res.alpha)
        assert_array_equal(bivariate_moments.sigma, res.omega)
        assert_array_equal(bivariate_moments.beta_se, res.beta_se)

    def test_seed_reproducibility(self, bivariate_moments, normalization_restriction):
        """The same seed gives the same estimates."""
        a = estimate_restricted_cointegration(bivariate_moments, normalization_restriction,
                                              _options(seed=99))
        b = estimate_restricted_cointegration(bivariate_moments, normalization_restriction,
                                              _options(seed=99))
        assert_array_equal(a.beta, b.beta)
        assert a.llf == b.llf

    def test_frames(self, bivariate_moments, normalization_restriction):
        res = estimate_restricted_cointegration(bivariate_moments, normalization_restriction,
                                                _options())
        frame = res.to_dataframe()
        assert list(frame.columns) == ["beta_1", "se_1"]
        assert list(frame.index) == ["y1(-1)", "y2(-1)"]
        alpha = res.alpha_frame(["dy1", "dy2"])
        assert list(alpha.index) == ["dy1", "dy2"]
        assert list(alpha.columns) == ["alpha_1"]

    def test_serialization(self, bivariate_moments, normalization_restriction, tmp_path):
        res = estimate_restricted_cointegration(bivariate_moments, normalization_restriction,
                                                _options())
        assert '"rank": 1' in res.to_json()
        path = tmp_path / "result.pkl"
        res.to_pickle(path)
        loaded = RestrictedVECMResult.from_pickle(path)
        assert_array_equal(loaded.beta, res.beta)
        assert "Identification: skipped" in res.summary()


class TestFullyPinned:
    """R = I pins every coefficient of beta."""

    def test_no_estimation(self, bivariate_moments):
        restrictions = RestrictionSet(R=np.eye(2), q=[1.0, -0.5])
        res = estimate_restricted_cointegration(bivariate_moments, restrictions, _options())
        m = bivariate_moments
        assert res.noest
        assert res.fncount == 0
        assert res.grcount == 0
        assert_array_equal(res.beta, [[1.0], [-0.5]])
        assert_array_equal(res.beta_se, np.zeros((2, 1)))
        assert_array_equal(res.beta_variance, np.zeros((2, 2)))
        assert_allclose(res.llf, closed_form_loglik(res.beta, m.S00, m.S01, m.S11, m.nobs),
                        rtol=1e-12)

    def test_lr_test(self, bivariate_moments):
        """A pinned vector counts p - r degrees of freedom."""
        restrictions = RestrictionSet(R=np.eye(2), q=[1.0, -0.5])
        res = estimate_restricted_cointegration(bivariate_moments, restrictions, _options())
        assert res.df == 1
        assert res.lr_stat >= 0.0
        assert 0.0 <= res.lr_pvalue <= 1.0
        assert "P(Chi-Square(1) >" in res.report()


class TestTrivariate:
    """Simulated system with two cointegrating relations."""

    def test_exactly_identified(self, trivariate_moments, trivariate_restrictions):
        res = estimate_restricted_cointegration(trivariate_moments, trivariate_restrictions,
                                                _options())
        assert_allclose(trivariate_restrictions.R @ vec(res.beta), trivariate_restrictions.q,
                        atol=1e-10)
        assert res.identification_method == "rank"
        assert res.df == 0
        assert_allclose(res.llf, trivariate_moments.llf, rtol=1e-7)
        # true relations are y1 - y3 and y2 - 0.5 y3
        assert_allclose(res.beta[2], [-1.0, -0.5], atol=0.15)

    def test_overidentified(self, trivariate_moments, overidentified_restrictions):
        res = estimate_restricted_cointegration(trivariate_moments, overidentified_restrictions,
                                                _options())
        assert_allclose(res.beta[:, 0], [1.0, 0.0, -1.0], atol=1e-12)
        assert res.df == 1
        assert res.llf <= trivariate_moments.llf + 1e-6
        assert 0.0 <= res.lr_pvalue <= 1.0
        assert_array_equal(res.beta_se[:, 0], 0.0)
        assert res.beta_se[2, 1] > 0.0
        assert res.beta_se[0, 1] < 1e-10

    def test_prior_degrees_of_freedom(self, trivariate_moments, overidentified_restrictions):
        """Degrees of freedom already used by the model are subtracted."""
        m = _copy_moments(trivariate_moments, bdf=1)
        res = estimate_restricted_cointegration(m, overidentified_restrictions, _options())
        assert res.df == 0
        assert res.lr_pvalue is None

    def test_negative_degrees_of_freedom_warn(self, trivariate_moments,
                                              overidentified_restrictions):
        m = _copy_moments(trivariate_moments, bdf=3)
        with pytest.warns(ModelWarning, match="negative"):
            res = estimate_restricted_cointegration(m, overidentified_restrictions, _options())
        assert res.df == -2

    def test_restricted_loadings(self, trivariate_moments, trivariate_restrictions):
        """alpha_R alpha = 0 adds r degrees of freedom per restricted direction."""
        alpha_R = np.array([[0.0, 0.0, 1.0]])
        restrictions = RestrictionSet(R=trivariate_restrictions.R, q=trivariate_restrictions.q,
                                      alpha_R=alpha_R)
        res = estimate_restricted_cointegration(trivariate_moments, restrictions, _options())
        assert res.df == 2
        assert_allclose(alpha_R @ res.alpha, 0.0, atol=1e-10)
        assert res.llf <= trivariate_moments.llf + 1e-6
        assert res.metadata["alpha_restricted"]

    def test_identification_failure(self, trivariate_moments):
        """An unidentified model raises and leaves the caller's model alone."""
        R = np.zeros((4, 6))
        R[0, 0] = R[1, 1] = R[2, 3] = R[3, 4] = 1.0
        restrictions = RestrictionSet(R=R, q=[1.0, 0.0, 1.0, 0.0])
        with pytest.raises(IdentificationError):
            estimate_restricted_cointegration(trivariate_moments, restrictions,
                                              _options(fold=True))
        assert trivariate_moments.beta is None
        assert trivariate_moments.bdf == 0

    def test_wrong_dimensions(self, trivariate_moments):
        with pytest.raises(DimensionError):
            estimate_restricted_cointegration(trivariate_moments,
                                              RestrictionSet(R=np.eye(4), q=np.ones(4)),
                                              _options())

    def test_data_frame_labels(self, trivariate_levels, trivariate_restrictions):
        """Column names of a DataFrame flow into the beta labels."""
        frame = pd.DataFrame(trivariate_levels, columns=["m1", "gdp", "rate"])
        m = JohansenMoments.from_data(frame, rank=2, deterministic="none")
        res = estimate_restricted_cointegration(m, trivariate_restrictions, _options())
        assert res.labels == ["m1(-1)", "gdp(-1)", "rate(-1)"]
        assert list(res.to_dataframe().index) == res.labels


class TestOptions:
    """Tests for RestrictionOptions."""

    def test_defaults_from_config(self):
        set_config("annealing", "iterations", 50)
        set_config("core", "random_seed", 5)
        options = RestrictionOptions()
        assert options.annealing_iterations == 50
        assert options.seed == 5
        assert options.annealing_schedule().iterations == 50

    def test_explicit_values_win(self):
        set_config("annealing", "iterations", 50)
        assert RestrictionOptions(annealing_iterations=10).annealing_iterations == 10

    @pytest.mark.parametrize("name,value", [
        ("annealing_iterations", -1),
        ("max_iterations", 0),
        ("reltol", 0.0),
        ("rank_tolerance", -1e-3),
    ])
    def test_invalid(self, name, value):
        with pytest.raises(ParameterError):
            RestrictionOptions(**{name: value})

    def test_lbfgs_settings(self):
        settings = RestrictionOptions(max_iterations=25, reltol=1e-6).lbfgs_settings()
        assert settings.max_iterations == 25
        assert settings.reltol == 1e-6


@pytest.mark.slow
@pytest.mark.skipif(SKIP_SLOW_TESTS, reason="slow tests disabled")
def test_default_schedule(trivariate_moments, overidentified_restrictions):
    """The full default annealing schedule reaches the L-BFGS optimum."""
    res = estimate_restricted_cointegration(trivariate_moments, overidentified_restrictions,
                                            RestrictionOptions(seed=0))
    quick = estimate_restricted_cointegration(trivariate_moments, overidentified_restrictions,
                                              _options())
    assert_allclose(res.llf, quick.llf, rtol=1e-7)
    assert res.llf >= res.initial_loglik
