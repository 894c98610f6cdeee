'''
Identification of restricted cointegrating vectors

Johansen's rank condition for linear restrictions beta_i = H_i phi_i + s_i:
for every vector i and every set S of k other vectors, the restrictions on
vector i must cut through the span of the vectors in S,

    rank(R_i [H_j : j in S]) >= k,    k = 1, ..., (number of blocks - 1)

For a homogeneous block the pair tested is (R_i, H_i). For an inhomogeneous
block, H_i is augmented with s_i and R_i is replaced by the orthogonal
complement of the augmented basis. When some augmented basis spans the whole
of R^p that complement is empty and the rank tests say nothing; the model is
then probed numerically through the rank of the Jacobian of vec(alpha beta')
at a random point.
'''

import itertools
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from cointrestrict.core.exceptions import IdentificationError, RestrictionError, warn_model
from cointrestrict.core.types import Matrix
from cointrestrict.models.vecm.likelihood import ConcentratedMoments
from cointrestrict.models.vecm.restrictions import ExplicitRestrictions, RestrictionBlock
from cointrestrict.utils.matrix_ops import left_nullspace, matrix_rank, unvec

# Set up module-level logger
logger = logging.getLogger("cointrestrict.models.vecm.identification")


@dataclass
class IdentificationReport:
    """
    Outcome of the identification check.

    Attributes:
        method: "skipped", "rank" or "jacobian"
        jacobian_rank: Rank found by the Jacobian probe
        required_rank: Rank the probe required
    """

    method: str
    jacobian_rank: Optional[int] = None
    required_rank: Optional[int] = None


def identification_matrices(block: RestrictionBlock,
                            rtol: Optional[float] = None) -> Tuple[Optional[Matrix], Matrix]:
    """
    Pair (R_i+, H_i+) used in the rank tests for one block.

    Returns:
        The restriction matrix to test with and the basis to test against. The
        restriction matrix is None when the augmented basis has full row rank.

    Raises:
        RestrictionError: If a homogeneous block pins its vector to zero
    """
    if block.is_homogeneous():
        if block.H is None:
            raise RestrictionError(
                f"Restrictions pin cointegrating vector {block.index + 1} to zero",
                block=block.index,
                rows=block.n_rows
            )
        return block.R, block.H

    s_col = block.s.reshape(-1, 1)
    H_aug = s_col if block.H is None else np.column_stack([block.H, s_col])
    R_aug = left_nullspace(H_aug, rtol)
    if R_aug.shape[0] == 0:
        return None, H_aug
    return R_aug, H_aug


def rank_conditions(R_tests: List[Matrix], H_tests: List[Matrix],
                    rtol: Optional[float] = None) -> None:
    """
    Check rank(R_i [H_j : j in S]) >= |S| for every i and every S of other blocks.

    Raises:
        IdentificationError: On the first failing combination
    """
    n_blocks = len(R_tests)
    for size in range(1, n_blocks):
        for i in range(n_blocks):
            others = [j for j in range(n_blocks) if j != i]
            for combo in itertools.combinations(others, size):
                stacked = np.column_stack([H_tests[j] for j in combo])
                rank = matrix_rank(R_tests[i] @ stacked, rtol)
                if rank >= size:
                    continue
                if size == 1:
                    message = f"Rank of R{i + 1} * H{combo[0] + 1} = {rank}, should be >= 1"
                else:
                    label = ":".join(f"H{j + 1}" for j in combo)
                    message = f"Rank of R{i + 1} * ({label}) = {rank}, should be >= {size}"
                raise IdentificationError(
                    message,
                    block=i,
                    against=combo,
                    rank=rank,
                    required=size
                )


def jacobian_probe(explicit: ExplicitRestrictions,
                   concentrated: ConcentratedMoments,
                   rng: np.random.Generator,
                   rtol: Optional[float] = None) -> Tuple[int, int]:
    """
    Rank of the Jacobian of vec(Pi') = vec(beta alpha') at a random admissible point.

    The Jacobian with respect to (vec(alpha'), phi) is

        [(I_n kron beta) G | (alpha kron I_p) H]

    where G maps the free loading parameters into vec(alpha'): the identity
    when alpha is unrestricted, A kron I_r under alpha = A psi.

    Returns:
        The rank found and the number of free parameters
    """
    n = concentrated.neqns
    p, r = explicit.p, explicit.rank
    H = explicit.H

    phi = rng.standard_normal(H.shape[1])
    beta = unvec(H @ phi + explicit.s, p, r)
    alpha = concentrated.alpha(beta)

    d_alpha = np.kron(np.eye(n), beta)
    if concentrated.alpha_restrictions is not None:
        d_alpha = d_alpha @ np.kron(concentrated.alpha_restrictions.A, np.eye(r))
    d_beta = np.kron(alpha, np.eye(p)) @ H

    jac = np.column_stack([d_alpha, d_beta])
    return matrix_rank(jac, rtol), jac.shape[1]


def check_identification(explicit: ExplicitRestrictions,
                         concentrated: ConcentratedMoments,
                         rng: np.random.Generator,
                         rtol: Optional[float] = None) -> IdentificationReport:
    """
    Verify that the restricted model is identified.

    Args:
        explicit: Explicit restrictions on beta
        concentrated: Concentrated moments, used by the Jacobian probe
        rng: Random generator for the Jacobian probe
        rtol: Relative tolerance for the rank computations

    Returns:
        IdentificationReport describing which test certified the model

    Raises:
        IdentificationError: If a rank condition or the Jacobian probe fails
        RestrictionError: If a homogeneous block pins its vector to zero
    """
    if explicit.noest or explicit.n_blocks < 2 or not explicit.blocks:
        logger.debug("Identification check skipped")
        return IdentificationReport(method="skipped")

    R_tests = []
    H_tests = []
    full_rank_block = None
    for block in explicit.blocks:
        R_plus, H_plus = identification_matrices(block, rtol)
        if R_plus is None:
            full_rank_block = block.index
            break
        R_tests.append(R_plus)
        H_tests.append(H_plus)

    if full_rank_block is None:
        rank_conditions(R_tests, H_tests, rtol)
        logger.debug("Rank conditions for identification are satisfied")
        return IdentificationReport(method="rank")

    logger.info(
        f"Augmented basis of cointegrating vector {full_rank_block + 1} has full rank; "
        "checking identification through the Jacobian rank"
    )
    rank, required = jacobian_probe(explicit, concentrated, rng, rtol)
    if rank < required:
        raise IdentificationError(
            f"Rank of Jacobian = {rank}, should be {required}",
            rank=rank,
            required=required,
            details="The Jacobian of vec(alpha beta') with respect to the free "
                    "parameters is rank deficient at a random admissible point"
        )

    warn_model(
        "Identification was established numerically from the Jacobian rank at a "
        "single random point, not by the algebraic rank conditions",
        issue="probabilistic identification certificate",
        parameter="jacobian_rank",
        value=rank
    )
    return IdentificationReport(method="jacobian", jacobian_rank=rank, required_rank=required)
