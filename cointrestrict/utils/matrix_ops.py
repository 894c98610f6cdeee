# cointrestrict/utils/matrix_ops.py
"""
Matrix Operations Module

Dense linear-algebra helpers used by the restriction translator, the
identification checker and the estimator. They are thin wrappers over NumPy
and SciPy that fix the conventions used throughout the package: column-major
vectorization, relative singular-value tolerances for rank and nullspace
computations, and NumericError on singular systems.

Functions:
    vec: Stack the columns of a matrix into a vector
    unvec: Inverse of vec for a given shape
    matrix_rank: Numerical rank from the singular values
    right_nullspace: Orthonormal basis of {x : A x = 0}, as columns
    left_nullspace: Orthonormal basis of {y : y' A = 0}, as rows
    solve_linear: LU solve of a square system
    sym_inverse: Inverse of a symmetric positive definite matrix
    log_determinant: Log-determinant of a positive definite matrix
    gensym_eigen: Top-r generalized symmetric eigenvectors
    least_squares: OLS coefficients with a rank check
    ensure_symmetric: Symmetrize a square matrix
    is_positive_definite: Cholesky-based positive-definiteness test
    block_diagonal: Create a block diagonal matrix
"""

import logging
from typing import List, Optional, Tuple

import numpy as np
from scipy import linalg

from cointrestrict.core.types import Matrix, Vector, PositiveDefiniteMatrix
from cointrestrict.core.exceptions import (
    raise_dimension_error, raise_numeric_error
)

# Set up module-level logger
logger = logging.getLogger("cointrestrict.utils.matrix_ops")

DEFAULT_RANK_TOLERANCE = 1e-10


def _as_matrix(matrix: Matrix, name: str = "matrix") -> np.ndarray:
    matrix = np.asarray(matrix, dtype=float)
    if matrix.ndim == 1:
        matrix = matrix.reshape(-1, 1)
    if matrix.ndim != 2:
        raise_dimension_error(
            "Input must be a 2D matrix",
            array_name=name,
            expected_shape="(m, n)",
            actual_shape=matrix.shape
        )
    return matrix


def _require_square(matrix: np.ndarray, name: str) -> None:
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise_dimension_error(
            "Input must be a square matrix",
            array_name=name,
            expected_shape="(n, n)",
            actual_shape=matrix.shape
        )


def vec(matrix: Matrix) -> Vector:
    """
    Stack the columns of a matrix into a single vector.

    Args:
        matrix: Matrix of shape (m, n)

    Returns:
        Vector of length m*n, column 0 first

    Examples:
        >>> import numpy as np
        >>> from cointrestrict.utils.matrix_ops import vec
        >>> vec(np.array([[1, 2], [3, 4]]))
        array([1., 3., 2., 4.])
    """
    return _as_matrix(matrix).reshape(-1, order="F")


def unvec(vector: Vector, rows: int, cols: int) -> Matrix:
    """
    Reshape a vector produced by vec back into a (rows, cols) matrix.

    Raises:
        DimensionError: If the vector length is not rows*cols
    """
    vector = np.asarray(vector, dtype=float).ravel()
    if vector.shape[0] != rows * cols:
        raise_dimension_error(
            "Vector length does not match the requested shape",
            array_name="vector",
            expected_shape=(rows * cols,),
            actual_shape=vector.shape
        )
    return vector.reshape((rows, cols), order="F")


def matrix_rank(matrix: Matrix, rtol: Optional[float] = None) -> int:
    """
    Numerical rank of a matrix.

    Singular values below rtol times the largest singular value are treated
    as zero. A matrix with no entries, or with all entries zero, has rank 0.

    Args:
        matrix: Matrix of any shape
        rtol: Relative tolerance (defaults to 1e-10)

    Returns:
        The numerical rank
    """
    matrix = _as_matrix(matrix)
    if matrix.size == 0:
        return 0
    rtol = DEFAULT_RANK_TOLERANCE if rtol is None else rtol
    s = linalg.svd(matrix, compute_uv=False)
    if s.size == 0 or s[0] == 0.0:
        return 0
    return int(np.sum(s > rtol * s[0]))


def right_nullspace(matrix: Matrix, rtol: Optional[float] = None) -> Matrix:
    """
    Orthonormal basis of the right nullspace of a matrix.

    Args:
        matrix: Matrix A of shape (m, n)
        rtol: Relative singular-value tolerance

    Returns:
        Matrix N of shape (n, k) with A N = 0 and N'N = I; k may be 0
    """
    matrix = _as_matrix(matrix)
    rtol = DEFAULT_RANK_TOLERANCE if rtol is None else rtol
    return linalg.null_space(matrix, rcond=rtol)


def left_nullspace(matrix: Matrix, rtol: Optional[float] = None) -> Matrix:
    """
    Orthonormal basis of the left nullspace of a matrix, returned as rows.

    Args:
        matrix: Matrix A of shape (m, n)
        rtol: Relative singular-value tolerance

    Returns:
        Matrix L of shape (k, m) with L A = 0; k may be 0
    """
    return right_nullspace(_as_matrix(matrix).T, rtol).T


def solve_linear(a: Matrix, b: Matrix) -> Matrix:
    """
    Solve the square system a x = b by LU decomposition.

    Raises:
        DimensionError: If a is not square
        NumericError: If a is singular
    """
    a = _as_matrix(a, "a")
    _require_square(a, "a")
    try:
        return linalg.solve(a, np.asarray(b, dtype=float))
    except linalg.LinAlgError as e:
        raise_numeric_error(
            "Singular matrix in linear solve",
            operation="solve_linear",
            values=a,
            error_type="singular_matrix",
            details=str(e)
        )


def sym_inverse(matrix: PositiveDefiniteMatrix, name: str = "matrix") -> Matrix:
    """
    Inverse of a symmetric positive definite matrix via Cholesky.

    Args:
        matrix: Symmetric positive definite matrix
        name: Name used in error messages

    Returns:
        The symmetric inverse

    Raises:
        DimensionError: If the input is not square
        NumericError: If the matrix is not positive definite
    """
    matrix = _as_matrix(matrix, name)
    _require_square(matrix, name)
    try:
        factor = linalg.cho_factor(matrix, lower=True, check_finite=True)
        inverse = linalg.cho_solve(factor, np.eye(matrix.shape[0]))
    except (linalg.LinAlgError, ValueError) as e:
        raise_numeric_error(
            f"Failed to invert {name}: matrix is not positive definite",
            operation="sym_inverse",
            values=matrix,
            error_type="not_positive_definite",
            details=str(e)
        )
    return ensure_symmetric(inverse, tol=0.0)


def log_determinant(matrix: PositiveDefiniteMatrix, name: str = "matrix") -> float:
    """
    Log-determinant of a positive definite matrix.

    Raises:
        NumericError: If the determinant is not positive
    """
    matrix = _as_matrix(matrix, name)
    _require_square(matrix, name)
    sign, logdet = np.linalg.slogdet(matrix)
    if sign <= 0 or not np.isfinite(logdet):
        raise_numeric_error(
            f"Log-determinant of {name} is undefined",
            operation="log_determinant",
            values=matrix,
            error_type="non_positive_determinant"
        )
    return float(logdet)


def gensym_eigen(a: Matrix, b: PositiveDefiniteMatrix, r: int) -> Tuple[Vector, Matrix]:
    """
    Leading solutions of the generalized symmetric eigenproblem a v = lambda b v.

    Args:
        a: Symmetric matrix
        b: Symmetric positive definite matrix of the same size
        r: Number of eigenpairs to keep

    Returns:
        The r largest eigenvalues in descending order and the matching
        eigenvectors as columns, normalized so that V' b V = I

    Raises:
        NumericError: If b is not positive definite
    """
    a = ensure_symmetric(_as_matrix(a, "a"))
    b = ensure_symmetric(_as_matrix(b, "b"))
    _require_square(a, "a")
    _require_square(b, "b")
    try:
        evals, evecs = linalg.eigh(a, b)
    except linalg.LinAlgError as e:
        raise_numeric_error(
            "Generalized eigenproblem failed",
            operation="gensym_eigen",
            values=b,
            error_type="not_positive_definite",
            details=str(e)
        )
    order = np.argsort(evals)[::-1][:r]
    return evals[order], evecs[:, order]


def least_squares(y: Vector, x: Matrix) -> Vector:
    """
    OLS coefficients of y on the columns of x.

    Raises:
        NumericError: If x does not have full column rank
    """
    x = _as_matrix(x, "x")
    y = np.asarray(y, dtype=float).ravel()
    if y.shape[0] != x.shape[0]:
        raise_dimension_error(
            "Regressand and regressors have different numbers of rows",
            array_name="y",
            expected_shape=(x.shape[0],),
            actual_shape=y.shape
        )
    coef, _, rank, _ = np.linalg.lstsq(x, y, rcond=None)
    if rank < x.shape[1]:
        raise_numeric_error(
            "Regressor matrix is rank deficient",
            operation="least_squares",
            error_type="rank_deficient",
            context={"Rank": int(rank), "Columns": x.shape[1]}
        )
    return coef


def ensure_symmetric(matrix: Matrix, tol: float = 1e-8) -> Matrix:
    """
    Ensure a matrix is symmetric by averaging with its transpose.

    If the matrix is already symmetric within the specified tolerance, it is
    returned unchanged.

    Raises:
        DimensionError: If the input matrix is not square
    """
    matrix = np.asarray(matrix)
    _require_square(matrix, "matrix")

    if tol > 0 and np.allclose(matrix, matrix.T, rtol=tol, atol=tol):
        return matrix

    return (matrix + matrix.T) / 2


def is_positive_definite(matrix: Matrix, tol: float = 1e-8) -> bool:
    """
    Check if a matrix is positive definite by attempting a Cholesky factorization.

    Returns:
        True if the matrix is positive definite, False otherwise
    """
    matrix = np.asarray(matrix, dtype=float)

    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        return False

    matrix = ensure_symmetric(matrix, tol)

    try:
        linalg.cholesky(matrix, lower=True, check_finite=True)
        return True
    except (linalg.LinAlgError, ValueError):
        return False


def block_diagonal(matrices: List[Matrix]) -> Matrix:
    """
    Create a block diagonal matrix from a list of matrices.

    Blocks with zero columns contribute rows but no columns.

    Examples:
        >>> import numpy as np
        >>> from cointrestrict.utils.matrix_ops import block_diagonal
        >>> block_diagonal([np.ones((2, 1)), np.ones((1, 2))])
        array([[1., 0., 0.],
               [1., 0., 0.],
               [0., 1., 1.]])
    """
    if not matrices:
        return np.zeros((0, 0))

    matrices = [_as_matrix(mat, "matrices") for mat in matrices]
    return linalg.block_diag(*matrices)
