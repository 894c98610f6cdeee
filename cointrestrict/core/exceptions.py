'''
Custom exception classes for cointrestrict.

This module defines the hierarchy of exceptions and warnings raised while
translating, checking and estimating restricted cointegrating relations.
Each exception carries a primary message, optional details and a context
dictionary that is rendered into the final message so that the caller can
see which restriction block, matrix or option caused the failure.

Errors abort an estimation run. Warnings flag conditions the run survives,
such as a likelihood that looks flat over the annealing path or a negative
number of degrees of freedom for the likelihood-ratio test.
'''

from typing import Any, Dict, Optional, Tuple, Union
import inspect
import warnings
from pathlib import Path

import numpy as np


class CointRestrictError(Exception):
    """Base exception class for all cointrestrict errors.

    Attributes:
        message: The error message
        details: Additional details about the error
        context: Dictionary containing contextual information about the error
    """

    def __init__(self,
                 message: str,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the CointRestrictError.

        Args:
            message: The primary error message
            details: Additional details about the error
            context: Dictionary containing contextual information about the error
        """
        self.message = message
        self.details = details
        self.context = context or {}

        full_message = message
        if details:
            full_message += f"\n\nDetails: {details}"

        if context:
            context_str = "\n".join(f"  {k}: {v}" for k, v in context.items())
            full_message += f"\n\nContext:\n{context_str}"

        # Add caller information for better debugging
        frame = inspect.currentframe()
        if frame:
            try:
                frame = frame.f_back
                if frame:
                    caller_info = inspect.getframeinfo(frame)
                    full_message += f"\n\nLocation: {Path(caller_info.filename).name}:{caller_info.lineno}"
            finally:
                del frame  # Avoid reference cycles

        super().__init__(full_message)


class ParameterError(CointRestrictError):
    """Exception raised for invalid option or configuration values.

    Attributes:
        param_name: The name of the parameter that caused the error
        param_value: The invalid parameter value
        constraint: Description of the constraint that was violated
    """

    def __init__(self,
                 message: str,
                 param_name: Optional[str] = None,
                 param_value: Optional[Any] = None,
                 constraint: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.param_name = param_name
        self.param_value = param_value
        self.constraint = constraint

        context_dict = context or {}
        if param_name:
            context_dict["Parameter"] = param_name
        if param_value is not None:
            context_dict["Value"] = param_value
        if constraint:
            context_dict["Constraint"] = constraint

        super().__init__(message, details, context_dict)


class DimensionError(CointRestrictError):
    """Exception raised when array dimensions are incompatible.

    Attributes:
        array_name: The name of the array that caused the error
        expected_shape: The expected shape of the array
        actual_shape: The actual shape of the array
    """

    def __init__(self,
                 message: str,
                 array_name: Optional[str] = None,
                 expected_shape: Optional[Union[Tuple[int, ...], str]] = None,
                 actual_shape: Optional[Tuple[int, ...]] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.array_name = array_name
        self.expected_shape = expected_shape
        self.actual_shape = actual_shape

        context_dict = context or {}
        if array_name:
            context_dict["Array"] = array_name
        if expected_shape is not None:
            context_dict["Expected Shape"] = expected_shape
        if actual_shape is not None:
            context_dict["Actual Shape"] = actual_shape

        super().__init__(message, details, context_dict)


class RestrictionError(CointRestrictError):
    """Exception raised for malformed restrictions on the cointegrating vectors.

    Used when the number of restriction rows is inconsistent with the rank and
    the number of level variables, when too few restriction blocks are present,
    or when a block cannot be translated into explicit form.

    Attributes:
        block: Zero-based index of the offending restriction block, if any
        rows: Number of restriction rows involved
        required: Minimum number required
    """

    def __init__(self,
                 message: str,
                 block: Optional[int] = None,
                 rows: Optional[int] = None,
                 required: Optional[int] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.block = block
        self.rows = rows
        self.required = required

        context_dict = context or {}
        if block is not None:
            context_dict["Block"] = block + 1
        if rows is not None:
            context_dict["Rows"] = rows
        if required is not None:
            context_dict["Required"] = required

        super().__init__(message, details, context_dict)


class IdentificationError(RestrictionError):
    """Exception raised when the restricted model is not identified.

    Attributes:
        against: Zero-based indices of the blocks whose free columns were tested
        rank: The rank that was found
    """

    def __init__(self,
                 message: str,
                 block: Optional[int] = None,
                 against: Optional[Tuple[int, ...]] = None,
                 rank: Optional[int] = None,
                 required: Optional[int] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.against = against
        self.rank = rank

        context_dict = context or {}
        if against is not None:
            context_dict["Against"] = tuple(j + 1 for j in against)
        if rank is not None:
            context_dict["Rank"] = rank

        super().__init__(message, block=block, required=required,
                         details=details, context=context_dict)


class NumericError(CointRestrictError):
    """Exception raised for fatal numerical failures.

    Attributes:
        operation: The operation that caused the error
        values: The values that caused the error
        error_type: The type of numerical error (e.g. "singular_matrix")
    """

    def __init__(self,
                 message: str,
                 operation: Optional[str] = None,
                 values: Optional[Any] = None,
                 error_type: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.operation = operation
        self.values = values
        self.error_type = error_type

        context_dict = context or {}
        if operation:
            context_dict["Operation"] = operation
        if values is not None:
            if isinstance(values, np.ndarray) and values.size > 10:
                # Truncate large arrays for readability
                context_dict["Values"] = f"Array with shape {values.shape}"
            else:
                context_dict["Values"] = values
        if error_type:
            context_dict["Error Type"] = error_type

        super().__init__(message, details, context_dict)


class EstimationError(CointRestrictError):
    """Exception raised when the optimizer phase fails for reasons other than NaN trial points.

    Attributes:
        estimation_method: The estimation phase being run
        issue: Description of the issue
    """

    def __init__(self,
                 message: str,
                 estimation_method: Optional[str] = None,
                 issue: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.estimation_method = estimation_method
        self.issue = issue

        context_dict = context or {}
        if estimation_method:
            context_dict["Estimation Method"] = estimation_method
        if issue:
            context_dict["Issue"] = issue

        super().__init__(message, details, context_dict)


class ConfigurationError(CointRestrictError):
    """Exception raised for errors in configuration.

    Attributes:
        setting: The setting that caused the error
        value: The invalid setting value
        issue: Description of the issue with the configuration
    """

    def __init__(self,
                 message: str,
                 setting: Optional[str] = None,
                 value: Optional[Any] = None,
                 issue: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.setting = setting
        self.value = value
        self.issue = issue

        context_dict = context or {}
        if setting:
            context_dict["Setting"] = setting
        if value is not None:
            context_dict["Value"] = value
        if issue:
            context_dict["Issue"] = issue

        super().__init__(message, details, context_dict)


class CointRestrictWarning(Warning):
    """Base warning class for all cointrestrict warnings.

    Attributes:
        message: The warning message
        details: Additional details about the warning
        context: Dictionary containing contextual information about the warning
    """

    def __init__(self,
                 message: str,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details
        self.context = context or {}

        full_message = message
        if details:
            full_message += f"\n\nDetails: {details}"

        if context:
            context_str = "\n".join(f"  {k}: {v}" for k, v in context.items())
            full_message += f"\n\nContext:\n{context_str}"

        super().__init__(full_message)


class ConvergenceWarning(CointRestrictWarning):
    """Warning issued when the quasi-Newton phase stops at its iteration cap.

    Attributes:
        iterations: The number of iterations performed
        tolerance: The convergence tolerance that was used
        gradient_norm: The norm of the final gradient
    """

    def __init__(self,
                 message: str,
                 iterations: Optional[int] = None,
                 tolerance: Optional[float] = None,
                 gradient_norm: Optional[float] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.iterations = iterations
        self.tolerance = tolerance
        self.gradient_norm = gradient_norm

        context_dict = context or {}
        if iterations is not None:
            context_dict["Iterations"] = iterations
        if tolerance is not None:
            context_dict["Tolerance"] = tolerance
        if gradient_norm is not None:
            context_dict["Gradient Norm"] = gradient_norm

        super().__init__(message, details, context_dict)


class NumericWarning(CointRestrictWarning):
    """Warning for numerical conditions that do not abort the run.

    Attributes:
        operation: The operation where the issue was detected
        issue: Description of the numerical issue
        value: The value involved
    """

    def __init__(self,
                 message: str,
                 operation: Optional[str] = None,
                 issue: Optional[str] = None,
                 value: Optional[Any] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.operation = operation
        self.issue = issue
        self.value = value

        context_dict = context or {}
        if operation:
            context_dict["Operation"] = operation
        if issue:
            context_dict["Issue"] = issue
        if value is not None:
            if isinstance(value, np.ndarray) and value.size > 10:
                context_dict["Value"] = f"Array with shape {value.shape}"
            else:
                context_dict["Value"] = value

        super().__init__(message, details, context_dict)


class ModelWarning(CointRestrictWarning):
    """Warning for model-level diagnostics, e.g. negative LR degrees of freedom.

    Attributes:
        issue: Description of the model issue
        parameter: The quantity that triggered the warning
        value: Its value
    """

    def __init__(self,
                 message: str,
                 issue: Optional[str] = None,
                 parameter: Optional[str] = None,
                 value: Optional[Any] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.issue = issue
        self.parameter = parameter
        self.value = value

        context_dict = context or {}
        if issue:
            context_dict["Issue"] = issue
        if parameter:
            context_dict["Parameter"] = parameter
        if value is not None:
            context_dict["Value"] = value

        super().__init__(message, details, context_dict)


def raise_dimension_error(message: str,
                          array_name: Optional[str] = None,
                          expected_shape: Optional[Union[Tuple[int, ...], str]] = None,
                          actual_shape: Optional[Tuple[int, ...]] = None,
                          details: Optional[str] = None,
                          context: Optional[Dict[str, Any]] = None) -> None:
    """Raise a DimensionError with consistent formatting.

    Raises:
        DimensionError: The formatted dimension error
    """
    raise DimensionError(message, array_name, expected_shape, actual_shape, details, context)


def raise_numeric_error(message: str,
                        operation: Optional[str] = None,
                        values: Optional[Any] = None,
                        error_type: Optional[str] = None,
                        details: Optional[str] = None,
                        context: Optional[Dict[str, Any]] = None) -> None:
    """Raise a NumericError with consistent formatting.

    Raises:
        NumericError: The formatted numeric error
    """
    raise NumericError(message, operation, values, error_type, details, context)


def warn_convergence(message: str,
                     iterations: Optional[int] = None,
                     tolerance: Optional[float] = None,
                     gradient_norm: Optional[float] = None,
                     details: Optional[str] = None,
                     context: Optional[Dict[str, Any]] = None) -> None:
    """Issue a ConvergenceWarning with consistent formatting."""
    warnings.warn(
        ConvergenceWarning(message, iterations, tolerance, gradient_norm, details, context),
        stacklevel=2
    )


def warn_numeric(message: str,
                 operation: Optional[str] = None,
                 issue: Optional[str] = None,
                 value: Optional[Any] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
    """Issue a NumericWarning with consistent formatting."""
    warnings.warn(
        NumericWarning(message, operation, issue, value, details, context),
        stacklevel=2
    )


def warn_model(message: str,
               issue: Optional[str] = None,
               parameter: Optional[str] = None,
               value: Optional[Any] = None,
               details: Optional[str] = None,
               context: Optional[Dict[str, Any]] = None) -> None:
    """Issue a ModelWarning with consistent formatting."""
    warnings.warn(
        ModelWarning(message, issue, parameter, value, details, context),
        stacklevel=2
    )
