# tests/test_identification.py
"""
Tests for the identification check on restricted cointegrating vectors.
"""

import numpy as np
import pytest

from cointrestrict.core.exceptions import IdentificationError, RestrictionError
from cointrestrict.models.vecm.identification import (
    IdentificationReport, check_identification, identification_matrices,
    jacobian_probe, rank_conditions
)
from cointrestrict.models.vecm.likelihood import ConcentratedMoments
from cointrestrict.models.vecm.restrictions import (
    RestrictionSet, translate_alpha_restrictions, translate_block, translate_restrictions
)


def _restrictions(entries, q, shape=(4, 6)):
    R = np.zeros(shape)
    for row, col in entries:
        R[row, col] = 1.0
    return RestrictionSet(R=R, q=np.asarray(q, dtype=float))


class TestIdentificationMatrices:
    """Tests for the per-block test matrices."""

    def test_homogeneous_block(self):
        """A homogeneous block is tested with R_i and H_i themselves."""
        blk = translate_block(np.array([[0., 1., -1.]]), np.array([0.]), 0)
        R_plus, H_plus = identification_matrices(blk)
        assert R_plus is blk.R
        assert H_plus is blk.H

    def test_inhomogeneous_block(self):
        """The augmented basis includes s_i and R+ annihilates it."""
        blk = translate_block(np.array([[1., 0., 0.], [0., 1., 0.]]), np.array([1., 0.]), 0)
        R_plus, H_plus = identification_matrices(blk)
        assert H_plus.shape == (3, 2)
        assert R_plus.shape == (1, 3)
        np.testing.assert_allclose(R_plus @ H_plus, 0.0, atol=1e-12)

    def test_full_rank_augmented_basis(self):
        """A single normalization leaves no rows to test with."""
        blk = translate_block(np.array([[1., 0., 0.]]), np.array([1.]), 0)
        R_plus, H_plus = identification_matrices(blk)
        assert R_plus is None
        assert H_plus.shape == (3, 3)

    def test_vector_pinned_to_zero(self):
        """Homogeneous restrictions of full rank are rejected."""
        blk = translate_block(np.eye(3), np.zeros(3), 1)
        with pytest.raises(RestrictionError, match="pin cointegrating vector 2 to zero"):
            identification_matrices(blk)


class TestRankConditions:
    """Tests for the algebraic rank conditions."""

    def test_pairwise_failure_message(self):
        """A pairwise failure names both blocks."""
        e = np.eye(3)
        R_tests = [e[[1]], e[[1]]]
        H_tests = [e[:, [2, 0]], e[:, [2, 0]]]
        with pytest.raises(IdentificationError, match=r"Rank of R1 \* H2 = 0, should be >= 1") as info:
            rank_conditions(R_tests, H_tests)
        assert info.value.rank == 0
        assert info.value.required == 1

    def test_higher_order_failure_message(self):
        """A failure against a set of blocks lists the stacked bases."""
        e = np.eye(3)
        R_tests = [e[[0]], np.eye(3), np.eye(3)]
        H_tests = [e[:, [1, 2]], e[:, [0, 1]], e[:, [0, 2]]]
        with pytest.raises(IdentificationError,
                           match=r"Rank of R1 \* \(H2:H3\) = 1, should be >= 2") as info:
            rank_conditions(R_tests, H_tests)
        assert info.value.against == (1, 2)

    def test_conditions_hold(self):
        """Exclusion restrictions on distinct coordinates pass."""
        e = np.eye(3)
        R_tests = [e[[1]], e[[0]]]
        H_tests = [e[:, [2, 0]], e[:, [2, 1]]]
        rank_conditions(R_tests, H_tests)


class TestCheckIdentification:
    """Tests for the full identification check."""

    def test_exactly_identified_by_rank(self, trivariate_moments, trivariate_restrictions, rng):
        """Exclusion and normalization restrictions pass the rank conditions."""
        explicit = translate_restrictions(trivariate_restrictions, 3, 2)
        report = check_identification(explicit, ConcentratedMoments(trivariate_moments), rng)
        assert isinstance(report, IdentificationReport)
        assert report.method == "rank"
        assert report.jacobian_rank is None

    def test_overidentified_by_rank(self, trivariate_moments, overidentified_restrictions, rng):
        """A pinned vector still takes part in the rank conditions."""
        explicit = translate_restrictions(overidentified_restrictions, 3, 2)
        report = check_identification(explicit, ConcentratedMoments(trivariate_moments), rng)
        assert report.method == "rank"

    def test_same_restrictions_on_both_vectors(self, trivariate_moments, rng):
        """Identical restrictions on two vectors cannot tell them apart."""
        restrictions = _restrictions([(0, 0), (1, 1), (2, 3), (3, 4)], [1., 0., 1., 0.])
        explicit = translate_restrictions(restrictions, 3, 2)
        with pytest.raises(IdentificationError, match=r"Rank of R1 \* H2 = 0, should be >= 1"):
            check_identification(explicit, ConcentratedMoments(trivariate_moments), rng)

    def test_single_vector_is_skipped(self, bivariate_moments, normalization_restriction, rng):
        """With one restriction block there is nothing to check."""
        explicit = translate_restrictions(normalization_restriction, 2, 1)
        report = check_identification(explicit, ConcentratedMoments(bivariate_moments), rng)
        assert report.method == "skipped"

    def test_fully_pinned_is_skipped(self, bivariate_moments, rng):
        """No free parameters means nothing to identify."""
        restrictions = RestrictionSet(R=np.eye(2), q=[1.0, -1.0])
        explicit = translate_restrictions(restrictions, 2, 1)
        report = check_identification(explicit, ConcentratedMoments(bivariate_moments), rng)
        assert report.method == "skipped"

    def test_jacobian_fallback_failure(self, trivariate_moments, rng):
        """A lone normalization on one vector falls back to the Jacobian, which is deficient."""
        restrictions = _restrictions([(0, 0), (1, 3), (2, 4), (3, 5)], [1., 1., 1., -0.5])
        explicit = translate_restrictions(restrictions, 3, 2)
        with pytest.raises(IdentificationError, match="Rank of Jacobian = 7, should be 8") as info:
            check_identification(explicit, ConcentratedMoments(trivariate_moments), rng)
        assert info.value.rank == 7
        assert info.value.required == 8

    def test_vector_pinned_to_zero(self, trivariate_moments, rng):
        """A zero cointegrating vector is reported before any rank test."""
        restrictions = _restrictions([(0, 0), (1, 1), (2, 2), (3, 3)], [0., 0., 0., 1.])
        explicit = translate_restrictions(restrictions, 3, 2)
        with pytest.raises(RestrictionError, match="to zero"):
            check_identification(explicit, ConcentratedMoments(trivariate_moments), rng)


class TestJacobianProbe:
    """Tests for the numerical identification probe."""

    def test_identified_model_has_full_rank(self, trivariate_moments, trivariate_restrictions, rng):
        """An identified model has a Jacobian of full column rank."""
        explicit = translate_restrictions(trivariate_restrictions, 3, 2)
        rank, required = jacobian_probe(explicit, ConcentratedMoments(trivariate_moments), rng)
        assert required == 3 * 2 + 2
        assert rank == required

    def test_restricted_loadings_reduce_columns(self, trivariate_moments,
                                                trivariate_restrictions, rng):
        """Under alpha = A psi only the free loading parameters are columns."""
        explicit = translate_restrictions(trivariate_restrictions, 3, 2)
        alpha_r = translate_alpha_restrictions(np.array([[0., 0., 1.]]), 3, 2)
        concentrated = ConcentratedMoments(trivariate_moments, alpha_r)
        rank, required = jacobian_probe(explicit, concentrated, rng)
        assert required == 2 * 2 + 2
        assert rank == required
