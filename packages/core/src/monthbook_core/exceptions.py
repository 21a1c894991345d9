"""Custom exceptions for the Monthbook engine.

This module provides a hierarchy of exception classes for consistent error
handling around the engine. All exceptions inherit from MonthbookError,
making it easy to catch all application-specific errors.

The resolution functions never raise: a missing charge, budget or account is
resolved through a snapshot or dropped from the output. Exceptions only
appear at the edges: the mutation boundary (bad numbers, bad month ids),
the document store and configuration.

Example:
    try:
        state = reduce(state, AddCharge(charge=draft))
    except ValidationError as e:
        if e.recoverable:
            # Ask the user to correct the field
            prompt_again(e.field)
        else:
            raise
    except MonthbookError as e:
        logger.error("mutation_failed", error=str(e))
"""

from typing import Any, Optional


class MonthbookError(Exception):
    """Base exception for all Monthbook errors.

    This is the root of the exception hierarchy. Catching this exception
    will catch all Monthbook-specific errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
        recoverable: Whether the error is potentially recoverable.

    Example:
        >>> raise MonthbookError("Something went wrong", details={"ym": "2025-01"})
        MonthbookError: Something went wrong
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize MonthbookError.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context about the error.
            recoverable: Whether the error is potentially recoverable through
                retry or user correction. Defaults to False.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation of the error."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable!r})"
        )


class ValidationError(MonthbookError):
    """Error raised when input to a state transition is invalid.

    Raised at the mutation boundary for non-finite or negative amounts,
    out-of-range days of month, malformed year-month identifiers and
    similar input problems. Nothing invalid ever reaches the resolved model.

    Attributes:
        field: The field that failed validation.
        value: The invalid value.
        constraint: The validation constraint that was violated.

    Example:
        >>> raise ValidationError(
        ...     "Invalid day of month",
        ...     field="day_of_month",
        ...     value=42,
        ...     constraint="Must be between 1 and 31",
        ... )
        ValidationError: Invalid day of month
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        constraint: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        """Initialize ValidationError.

        Args:
            message: Human-readable error description.
            field: The name of the field that failed validation.
            value: The invalid value.
            constraint: Description of the validation rule violated.
            details: Optional dictionary with additional context.
            recoverable: Whether the error can be fixed by user correction.
                Defaults to True.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.field = field
        self.value = value
        self.constraint = constraint

        if field:
            self.details["field"] = field
        if value is not None:
            self.details["value"] = value
        if constraint:
            self.details["constraint"] = constraint


class StorageError(MonthbookError):
    """Error raised when the state document cannot be written.

    Reading never raises this: an unreadable or foreign document is reported
    as "no usable record" instead. Writing failures (permissions, full disk)
    are surfaced so the caller can retry.

    Attributes:
        path: The file path involved.
        operation: The operation being attempted ("save", "load").

    Example:
        >>> raise StorageError(
        ...     "Could not write state document",
        ...     path="/data/state.json",
        ...     operation="save",
        ... )
        StorageError: Could not write state document
    """

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        """Initialize StorageError.

        Args:
            message: Human-readable error description.
            path: The document path being accessed.
            operation: The operation being attempted.
            details: Optional dictionary with additional context.
            recoverable: Whether the operation can be retried. Defaults to True
                since most I/O failures are transient.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.path = path
        self.operation = operation

        if path:
            self.details["path"] = path
        if operation:
            self.details["operation"] = operation


class ConfigurationError(MonthbookError):
    """Error raised when configuration is invalid or missing.

    Attributes:
        config_key: The configuration key that is problematic.
        expected: Description of the expected value or format.
        actual: The actual value found (if any).

    Example:
        >>> raise ConfigurationError(
        ...     "State file directory is not writable",
        ...     config_key="MONTHBOOK_DATA_DIR",
        ...     expected="Writable directory",
        ... )
        ConfigurationError: State file directory is not writable
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            message: Human-readable error description.
            config_key: The name of the configuration key that is problematic.
            expected: Description of what value was expected.
            actual: The actual value found.
            details: Optional dictionary with additional context.
            recoverable: Whether the error can be fixed at runtime.
                Defaults to False.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.config_key = config_key
        self.expected = expected
        self.actual = actual

        if config_key:
            self.details["config_key"] = config_key
        if expected:
            self.details["expected"] = expected
        if actual is not None:
            self.details["actual"] = actual


__all__ = [
    "MonthbookError",
    "ValidationError",
    "StorageError",
    "ConfigurationError",
]
