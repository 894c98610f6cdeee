'''
Restriction translation for cointegrating vectors

Linear restrictions on the cointegrating matrix beta (p x r) are given in
implicit form R vec(beta) = q. The rows of R are grouped into one block per
cointegrating vector, and each block (R_i, q_i) is rewritten in explicit form

    beta_i = H_i phi_i + s_i

where the columns of H_i span the nullspace of R_i and s_i is the
minimum-norm particular solution. A block of full column rank pins beta_i
completely and has no free parameters. Stacking the blocks gives the
aggregate map vec(beta) = H phi + s used by the estimator.

Restrictions on the loadings are limited to the homogeneous form
alpha_R alpha = 0 applied to every column of alpha.
'''

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from cointrestrict.core.exceptions import (
    DimensionError, IdentificationError, NumericError, RestrictionError,
    raise_dimension_error
)
from cointrestrict.core.types import BasisMatrix, Matrix, RestrictionMatrix, Vector
from cointrestrict.utils.matrix_ops import (
    block_diagonal, least_squares, matrix_rank, right_nullspace, solve_linear, unvec
)

# Set up module-level logger
logger = logging.getLogger("cointrestrict.models.vecm.restrictions")


@dataclass
class RestrictionSet:
    """
    Implicit restrictions R vec(beta) = q, plus optional alpha_R alpha = 0.

    Rows of R must be ordered by cointegrating vector: all rows restricting
    the first column of beta, then those restricting the second, and so on.

    Attributes:
        R: Restriction matrix (m x p*r)
        q: Right-hand side (m,)
        alpha_R: Homogeneous restrictions on each column of alpha (m_a x n)
    """

    R: RestrictionMatrix
    q: Vector
    alpha_R: Optional[Matrix] = None

    def __post_init__(self) -> None:
        self.R = np.atleast_2d(np.asarray(self.R, dtype=float))
        self.q = np.asarray(self.q, dtype=float).ravel()

        if self.R.ndim != 2:
            raise_dimension_error(
                "R must be a 2D matrix",
                array_name="R",
                expected_shape="(m, p*r)",
                actual_shape=self.R.shape
            )
        if self.q.shape[0] != self.R.shape[0]:
            raise DimensionError(
                "q must have one entry per row of R",
                array_name="q",
                expected_shape=(self.R.shape[0],),
                actual_shape=self.q.shape
            )
        if self.alpha_R is not None:
            self.alpha_R = np.atleast_2d(np.asarray(self.alpha_R, dtype=float))

    @property
    def n_restrictions(self) -> int:
        return self.R.shape[0]


@dataclass
class RestrictionBlock:
    """
    Explicit form of the restrictions on one cointegrating vector.

    Attributes:
        index: Zero-based index of the cointegrating vector
        R: Rows of R that apply to this vector, restricted to its p columns
        q: Matching entries of q
        H: Basis of the free directions (p x k), None when the vector is pinned
        s: Particular solution (p,)
        rank: Rank of R
    """

    index: int
    R: RestrictionMatrix
    q: Vector
    H: Optional[BasisMatrix]
    s: Vector
    rank: int

    @property
    def n_rows(self) -> int:
        return self.R.shape[0]

    @property
    def n_free(self) -> int:
        return 0 if self.H is None else self.H.shape[1]

    @property
    def is_pinned(self) -> bool:
        return self.H is None

    def is_homogeneous(self, tol: float = 1e-12) -> bool:
        """True when q is zero, so that the particular solution is zero."""
        return not np.any(np.abs(self.s) > tol)

    def beta(self, phi: Optional[Vector] = None) -> Vector:
        """Cointegrating vector H phi + s for this block's free parameters."""
        if self.H is None or phi is None:
            return self.s.copy()
        return self.H @ np.asarray(phi, dtype=float) + self.s


@dataclass
class ExplicitRestrictions:
    """
    Aggregate explicit restrictions vec(beta) = H phi + s.

    Attributes:
        p: Number of rows of beta
        rank: Cointegrating rank r
        H: Block-diagonal basis (p*r x sum k_i)
        s: Stacked particular solution (p*r,)
        blocks: Per-vector translation; empty when R pins vec(beta) as a whole
        n_blocks: Number of restriction blocks counted for the LR degrees of freedom
        noest: True when there are no free parameters
        restrictions: The implicit restrictions this was translated from
    """

    p: int
    rank: int
    H: Matrix
    s: Vector
    blocks: List[RestrictionBlock] = field(default_factory=list)
    n_blocks: int = 0
    noest: bool = False
    restrictions: Optional[RestrictionSet] = None

    @property
    def n_free(self) -> int:
        return self.H.shape[1]

    @property
    def free_blocks(self) -> List[RestrictionBlock]:
        return [blk for blk in self.blocks if not blk.is_pinned]

    def beta(self, phi: Optional[Vector] = None) -> Matrix:
        """Reconstruct beta (p x r) from the free parameter vector."""
        if phi is None or self.n_free == 0:
            return unvec(self.s, self.p, self.rank)
        return unvec(self.H @ np.asarray(phi, dtype=float) + self.s, self.p, self.rank)


def block_row_count(R: RestrictionMatrix, start: int, block: int, p: int, tol: float = 0.0) -> int:
    """
    Count the rows of R, from row `start`, that belong to cointegrating vector `block`.

    A row belongs to the block while it has a nonzero entry among the first
    p*(block+1) columns; the scan stops at the first row that does not.
    """
    width = p * (block + 1)
    count = 0
    for row in range(start, R.shape[0]):
        if np.any(np.abs(R[row, :width]) > tol):
            count += 1
        else:
            break
    return count


def split_blocks(R: RestrictionMatrix, q: Vector, p: int, r: int,
                 tol: float = 0.0) -> List[Tuple[RestrictionMatrix, Vector]]:
    """
    Partition (R, q) into one (R_i, q_i) pair per cointegrating vector.

    Blocks with no restrictions are returned with zero rows.

    Raises:
        RestrictionError: If a row restricts more than one vector, or rows are
            left over after the last block
    """
    blocks = []
    start = 0
    for i in range(r):
        m_i = block_row_count(R, start, i, p, tol)
        rows = slice(start, start + m_i)
        outside = np.delete(R[rows], np.s_[p * i:p * (i + 1)], axis=1)
        if np.any(np.abs(outside) > tol):
            bad = start + int(np.argmax(np.any(np.abs(outside) > tol, axis=1)))
            raise RestrictionError(
                f"Restriction row {bad + 1} involves more than one cointegrating vector",
                block=i,
                details="Rows of R must be ordered by vector and each row may only "
                        "restrict the columns of a single vector"
            )
        blocks.append((R[rows, p * i:p * (i + 1)], q[rows]))
        start += m_i

    if start != R.shape[0]:
        raise RestrictionError(
            f"Restriction rows {start + 1} to {R.shape[0]} could not be assigned to a cointegrating vector",
            rows=R.shape[0] - start,
            details="A row of R with no nonzero entries, or rows out of vector order"
        )
    return blocks


def translate_block(R_i: RestrictionMatrix, q_i: Vector, index: int,
                    rtol: Optional[float] = None) -> RestrictionBlock:
    """
    Rewrite R_i beta_i = q_i as beta_i = H_i phi_i + s_i.

    Args:
        R_i: Block restriction matrix (m_i x p)
        q_i: Block right-hand side (m_i,)
        index: Zero-based index of the cointegrating vector
        rtol: Relative tolerance for rank and nullspace computations

    Returns:
        The explicit block. When rank(R_i) = p, H is None and s solves R_i s = q_i.

    Raises:
        RestrictionError: If R_i R_i' is singular or a fully pinned block is inconsistent
    """
    R_i = np.asarray(R_i, dtype=float)
    q_i = np.asarray(q_i, dtype=float).ravel()
    p = R_i.shape[1]
    rank = matrix_rank(R_i, rtol)

    if rank == p:
        try:
            if R_i.shape[0] == p:
                s_i = solve_linear(R_i, q_i)
            else:
                s_i = least_squares(q_i, R_i)
        except NumericError as e:
            raise RestrictionError(
                f"Cannot solve the restrictions on cointegrating vector {index + 1}",
                block=index,
                rows=R_i.shape[0],
                details=e.message
            ) from e
        if not np.allclose(R_i @ s_i, q_i, atol=1e-8):
            raise RestrictionError(
                f"Restrictions on cointegrating vector {index + 1} are inconsistent",
                block=index,
                rows=R_i.shape[0]
            )
        logger.debug(f"Cointegrating vector {index + 1} is fully determined by its restrictions")
        return RestrictionBlock(index=index, R=R_i, q=q_i, H=None, s=s_i, rank=rank)

    if rank < R_i.shape[0]:
        raise RestrictionError(
            f"R{index + 1} * R{index + 1}' is singular",
            block=index,
            rows=R_i.shape[0],
            required=rank,
            details="The restriction rows for this vector are linearly dependent"
        )

    H_i = right_nullspace(R_i, rtol)
    s_i = R_i.T @ solve_linear(R_i @ R_i.T, q_i)

    return RestrictionBlock(index=index, R=R_i, q=q_i, H=H_i, s=s_i, rank=rank)


def translate_restrictions(restrictions: RestrictionSet, p: int, r: int,
                           rtol: Optional[float] = None,
                           zero_tol: float = 0.0) -> ExplicitRestrictions:
    """
    Translate implicit restrictions on beta into the aggregate explicit form.

    Args:
        restrictions: The implicit restrictions
        p: Number of rows of beta
        r: Cointegrating rank
        rtol: Relative tolerance for rank and nullspace computations
        zero_tol: Entries of R at or below this magnitude are treated as zero
            when grouping rows into blocks

    Returns:
        ExplicitRestrictions

    Raises:
        DimensionError: If R does not have p*r columns
        IdentificationError: If there are fewer than r*r restrictions or fewer
            than r restricted vectors
        RestrictionError: If a block cannot be translated
    """
    R, q = restrictions.R, restrictions.q
    m = R.shape[0]
    npr = p * r

    if R.shape[1] != npr:
        raise DimensionError(
            "R must have one column per element of beta",
            array_name="R",
            expected_shape=(m, npr),
            actual_shape=R.shape
        )

    if m == npr:
        if np.array_equal(R, np.eye(npr)):
            vec_beta = q.copy()
        else:
            try:
                vec_beta = solve_linear(R, q)
            except NumericError as e:
                raise RestrictionError(
                    "R has p*r rows but is singular",
                    rows=m,
                    required=npr,
                    details=e.message
                ) from e
        logger.info("All cointegrating vectors are fully determined by the restrictions")
        return ExplicitRestrictions(p=p, rank=r, H=np.zeros((npr, 0)), s=vec_beta,
                                    blocks=[], n_blocks=r, noest=True,
                                    restrictions=restrictions)

    if m < r * r:
        raise IdentificationError(
            f"R has {m} rows, should be >= {r * r}",
            required=r * r,
            details="At least r - 1 normalizing restrictions plus one normalization "
                    "are needed on each of the r cointegrating vectors"
        )

    pairs = split_blocks(R, q, p, r, zero_tol)
    n_blocks = sum(1 for R_i, _ in pairs if R_i.shape[0] > 0)
    if n_blocks < r:
        raise IdentificationError(
            f"R blocks = {n_blocks}, should be {r}",
            required=r,
            details="Every cointegrating vector must be restricted"
        )

    blocks = [translate_block(R_i, q_i, i, rtol) for i, (R_i, q_i) in enumerate(pairs)]

    H = block_diagonal([blk.H if blk.H is not None else np.zeros((p, 0)) for blk in blocks])
    s = np.concatenate([blk.s for blk in blocks])

    explicit = ExplicitRestrictions(p=p, rank=r, H=H, s=s, blocks=blocks, n_blocks=n_blocks,
                                    noest=H.shape[1] == 0, restrictions=restrictions)

    logger.debug(
        "Restrictions translated: free parameters per vector = "
        f"{[blk.n_free for blk in blocks]}"
    )
    return explicit


@dataclass
class AlphaRestrictions:
    """
    Explicit form alpha = A psi of the homogeneous restrictions alpha_R alpha = 0.

    Attributes:
        A: Orthonormal basis of the admissible loading directions (n x m)
        B: Orthonormal basis of the complement of A (n x (n - m))
        alpha_R: The implicit restriction matrix
    """

    A: BasisMatrix
    B: BasisMatrix
    alpha_R: Matrix

    @property
    def n_free_rows(self) -> int:
        return self.A.shape[1]

    @property
    def n_restricted(self) -> int:
        return self.B.shape[1]


def translate_alpha_restrictions(alpha_R: Matrix, n: int, r: int,
                                 rtol: Optional[float] = None) -> AlphaRestrictions:
    """
    Rewrite alpha_R alpha = 0 as alpha = A psi.

    Args:
        alpha_R: Restriction matrix (m_a x n)
        n: Number of equations
        r: Cointegrating rank
        rtol: Relative tolerance for the nullspace computation

    Raises:
        DimensionError: If alpha_R does not have n columns
        RestrictionError: If fewer than r loading directions remain
    """
    alpha_R = np.atleast_2d(np.asarray(alpha_R, dtype=float))
    if alpha_R.shape[1] != n:
        raise DimensionError(
            "alpha_R must have one column per equation",
            array_name="alpha_R",
            expected_shape=(alpha_R.shape[0], n),
            actual_shape=alpha_R.shape
        )

    A = right_nullspace(alpha_R, rtol)
    if A.shape[1] < r:
        raise RestrictionError(
            f"Restrictions on alpha leave {A.shape[1]} free rows, should be >= {r}",
            rows=alpha_R.shape[0],
            required=r,
            details="The loadings must keep rank r"
        )
    B = right_nullspace(A.T, rtol)
    return AlphaRestrictions(A=A, B=B, alpha_R=alpha_R)
