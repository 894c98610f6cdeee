"""
Numerical Differentiation Module

Two-sided finite-difference gradient used by the quasi-Newton refinement of
the restricted likelihood. Non-finite function values are passed through, so
a gradient component next to an undefined likelihood region is non-finite
and the caller decides how to treat it.

Functions:
    gradient_2sided: Compute two-sided numerical gradient of a function
"""

import logging
from typing import Optional, Tuple

import numpy as np

from cointrestrict.core.exceptions import raise_dimension_error
from cointrestrict.core.types import Vector, ObjectiveFunction

# Set up module-level logger
logger = logging.getLogger("cointrestrict.utils.differentiation")


def gradient_2sided(func: ObjectiveFunction,
                    x: Vector,
                    epsilon: Optional[float] = None,
                    args: Tuple = ()) -> Vector:
    """
    Compute two-sided numerical gradient of a function.

    For a function f(x), the gradient is computed as

    df/dx_i ~ [f(x + eps*e_i) - f(x - eps*e_i)] / (2*eps)

    where e_i is the i-th unit vector.

    Args:
        func: Function to differentiate, taking a vector and returning a scalar
        x: Point at which to compute the gradient
        epsilon: Step size. If None, a step is chosen from machine precision
                 and the scale of x
        args: Additional arguments to pass to the function

    Returns:
        Gradient vector of the same shape as x

    Raises:
        DimensionError: If x is not a 1D array

    Examples:
        >>> import numpy as np
        >>> from cointrestrict.utils.differentiation import gradient_2sided
        >>> def f(x): return x[0]**2 + x[1]**2
        >>> gradient_2sided(f, np.array([1.0, 2.0]))
        array([2., 4.])
    """
    x = np.asarray(x, dtype=float)

    if x.ndim != 1:
        raise_dimension_error(
            "Input must be a 1D vector",
            array_name="x",
            expected_shape="(n,)",
            actual_shape=x.shape
        )

    if epsilon is None:
        eps = np.finfo(float).eps
        # cube root of machine epsilon, scaled by |x| where |x| > 1
        epsilon_vec = np.maximum(np.abs(x), 1.0) * eps ** (1.0 / 3.0)
    else:
        epsilon_vec = np.full(x.shape, float(epsilon))

    n = x.shape[0]
    grad = np.zeros(n, dtype=float)

    x_plus = x.copy()
    x_minus = x.copy()

    for i in range(n):
        h = epsilon_vec[i]
        x_plus[i] = x[i] + h
        x_minus[i] = x[i] - h

        f_plus = func(x_plus, *args)
        f_minus = func(x_minus, *args)
        grad[i] = (f_plus - f_minus) / (2.0 * h)

        x_plus[i] = x[i]
        x_minus[i] = x[i]

    return grad
