'''
Pytest configuration and fixtures for the cointrestrict test suite.

This module provides the moment matrices, restriction sets and simulated
cointegrated series shared across the test modules.
'''

import numpy as np
import pytest
from scipy import linalg
from hypothesis import strategies as st

from cointrestrict.core.config import get_config_manager
from cointrestrict.models.vecm.moments import JohansenMoments
from cointrestrict.models.vecm.restrictions import RestrictionSet


def unrestricted_llf(S00: np.ndarray, S01: np.ndarray, S11: np.ndarray,
                     nobs: int, rank: int) -> float:
    """Johansen log-likelihood at the given rank, from the eigenvalues."""
    n = S00.shape[0]
    A = S01.T @ linalg.solve(S00, S01)
    evals = np.sort(linalg.eigh(A, S11, eigvals_only=True))[::-1][:rank]
    _, ld = np.linalg.slogdet(S00)
    return -0.5 * nobs * (n * (1.0 + np.log(2.0 * np.pi)) + ld + np.sum(np.log(1.0 - evals)))


def closed_form_loglik(beta: np.ndarray, S00: np.ndarray, S01: np.ndarray,
                       S11: np.ndarray, nobs: int) -> float:
    """Profile log-likelihood at beta, computed without the package."""
    n = S00.shape[0]
    S11m = S11 - S01.T @ np.linalg.inv(S00) @ S01
    _, ld00 = np.linalg.slogdet(S00)
    _, ld1 = np.linalg.slogdet(beta.T @ S11m @ beta)
    _, ld2 = np.linalg.slogdet(beta.T @ S11 @ beta)
    return -0.5 * nobs * (n * (1.0 + np.log(2.0 * np.pi)) + ld00 + ld1 - ld2)


def simulate_cointegrated(rng: np.random.Generator, nobs: int,
                          beta: np.ndarray, alpha: np.ndarray,
                          mu: float = 0.0) -> np.ndarray:
    """
    Simulate levels from dy_t = alpha (beta' y_{t-1} + mu) + e_t.

    beta holds the level coefficients only (n x r).
    """
    n = beta.shape[0]
    y = np.zeros((nobs, n))
    for t in range(1, nobs):
        ect = beta.T @ y[t - 1] + mu
        y[t] = y[t - 1] + alpha @ ect + 0.5 * rng.standard_normal(n)
    return y


# ---- Basic Fixtures ----

@pytest.fixture

def rng() -> np.random.Generator:
    """Provide a seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture(autouse=True)

def clean_config():
    """Reset runtime configuration changes after each test."""
    yield
    get_config_manager().reset()


# ---- Two-variable, rank-one model ----

@pytest.fixture

def bivariate_moments() -> JohansenMoments:
    """n = p = 2, r = 1, T = 100 moments with the unrestricted llf from the eigenvalues."""
    S00 = np.array([[1.0, 0.2], [0.2, 1.0]])
    S01 = np.array([[0.5, 0.1], [0.1, 0.4]])
    S11 = np.array([[1.0, 0.3], [0.3, 1.0]])
    llf = unrestricted_llf(S00, S01, S11, 100, 1)
    return JohansenMoments(S00=S00, S01=S01, S11=S11, nobs=100, rank=1, llf=llf)


@pytest.fixture

def normalization_restriction() -> RestrictionSet:
    """beta = [1, b]: the first coefficient normalized to one."""
    return RestrictionSet(R=np.array([[1.0, 0.0]]), q=np.array([1.0]))


# ---- Simulated three-variable system ----

@pytest.fixture

def trivariate_levels(rng: np.random.Generator) -> np.ndarray:
    """
    Three I(1) series with two cointegrating relations.

    y1 - y3 and y2 - 0.5 y3 are stationary.
    """
    beta = np.array([[1.0, 0.0], [0.0, 1.0], [-1.0, -0.5]])
    alpha = np.array([[-0.3, 0.0], [0.0, -0.4], [0.1, 0.1]])
    return simulate_cointegrated(rng, 400, beta, alpha)


@pytest.fixture

def trivariate_moments(trivariate_levels: np.ndarray) -> JohansenMoments:
    """Johansen moments of the simulated system, rank 2, no deterministic term."""
    return JohansenMoments.from_data(trivariate_levels, rank=2, k_ar_diff=1,
                                     deterministic="none")


@pytest.fixture

def trivariate_restrictions() -> RestrictionSet:
    """
    beta_1 = [1, 0, b13] and beta_2 = [0, 1, b23].

    Two restrictions per vector: exactly identified, one free parameter each.
    """
    R = np.zeros((4, 6))
    R[0, 0] = 1.0
    R[1, 1] = 1.0
    R[2, 3] = 1.0
    R[3, 4] = 1.0
    q = np.array([1.0, 0.0, 0.0, 1.0])
    return RestrictionSet(R=R, q=q)


@pytest.fixture

def overidentified_restrictions() -> RestrictionSet:
    """
    beta_1 = [1, 0, -1] and beta_2 = [0, 1, b23].

    Pins beta_1 completely, leaving a single free parameter.
    """
    R = np.zeros((5, 6))
    R[0, 0] = 1.0
    R[1, 1] = 1.0
    R[2, 2] = 1.0
    R[3, 3] = 1.0
    R[4, 4] = 1.0
    q = np.array([1.0, 0.0, -1.0, 0.0, 1.0])
    return RestrictionSet(R=R, q=q)


# ---- Hypothesis strategies ----

def restriction_blocks(p_max: int = 5):
    """Strategy for (R_i, q_i) with full row rank and fewer rows than columns."""
    @st.composite
    def _blocks(draw):
        p = draw(st.integers(min_value=2, max_value=p_max))
        m = draw(st.integers(min_value=1, max_value=p - 1))
        seed = draw(st.integers(min_value=0, max_value=2 ** 32 - 1))
        local = np.random.default_rng(seed)
        R = local.standard_normal((m, p))
        q = local.standard_normal(m)
        return R, q
    return _blocks()


def square_blocks(p_max: int = 5):
    """Strategy for nonsingular square (R_i, q_i)."""
    @st.composite
    def _blocks(draw):
        p = draw(st.integers(min_value=1, max_value=p_max))
        seed = draw(st.integers(min_value=0, max_value=2 ** 32 - 1))
        local = np.random.default_rng(seed)
        R = local.standard_normal((p, p)) + p * np.eye(p)
        q = local.standard_normal(p)
        return R, q
    return _blocks()
