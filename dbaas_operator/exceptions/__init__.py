"""
Custom exceptions for the dbaas operator.

This module defines all custom exceptions raised by the reconciliation
engine, the provisioning gateway and the desired-state store.
"""
from typing import Optional, Dict, Any, List, Sequence

from fastapi import status


class OperatorException(Exception):
    """
    Base exception for all operator errors.

    All custom exceptions should inherit from this base class.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class GatewayError(OperatorException):
    """
    Raised when a provisioning API call fails.

    Used for network failures, 5xx responses and rejected requests.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        error_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.error_id = error_id
        super().__init__(
            message=f"Provisioning API error: {message}",
            status_code=status_code,
            details=details,
        )


class ResourceNotFoundError(GatewayError):
    """
    Raised when the provisioning API reports that an object does not exist.

    Callers branch on this to tell absence apart from failure.
    """

    def __init__(self, resource: str, resource_id: str, details: Optional[Dict[str, Any]] = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            message=f"{resource} '{resource_id}' not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_id="not_found",
            details=details or {"resource": resource, "resource_id": resource_id},
        )


class RecordNotFoundError(OperatorException):
    """Raised when a record or artifact is absent from the desired-state store."""

    def __init__(self, kind: str, namespace: str, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(
            message=f"{kind} '{namespace}/{name}' not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"kind": kind, "namespace": namespace, "name": name},
        )


class StoreError(OperatorException):
    """
    Raised when a desired-state store operation fails.

    Used for API server errors, conflicting writes, connection issues, etc.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Store error: {message}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )


class DependencyError(OperatorException):
    """
    Raised when a record's referenced cluster cannot be loaded.

    A referenced cluster that exists but is still creating is not an error;
    callers requeue instead.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Dependency error: {message}",
            status_code=status.HTTP_424_FAILED_DEPENDENCY,
            details=details,
        )


class ConfigurationError(OperatorException):
    """
    Raised for configuration the engine cannot act on.

    Used for unexpected reference kinds and missing settings.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Configuration error: {message}",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class InvalidTransitionError(OperatorException):
    """Raised when a reconcile would move a record to a forbidden provisioning state."""

    def __init__(self, from_state: str, to_state: str, record: Optional[str] = None):
        message = f"Invalid provisioning transition from {from_state} to {to_state}"
        if record:
            message += f" for {record}"
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details={"from_state": from_state, "to_state": to_state, "record": record},
        )


class ReconcileAggregateError(OperatorException):
    """
    Raised when one reconcile hit more than one independent failure.

    The reconcile error, the finalizer patch error and the status patch error
    are attempted independently and reported together.
    """

    def __init__(self, errors: Sequence[Exception]):
        self.errors: List[Exception] = list(errors)
        super().__init__(
            message="[" + ", ".join(str(e) for e in self.errors) + "]",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"errors": [str(e) for e in self.errors]},
        )

    @classmethod
    def raise_if_any(cls, errors: Sequence[Exception]) -> None:
        """Raise the single error as-is, several errors aggregated, or nothing."""
        if not errors:
            return
        if len(errors) == 1:
            raise errors[0]
        raise cls(errors)


__all__ = [
    "OperatorException",
    "GatewayError",
    "ResourceNotFoundError",
    "RecordNotFoundError",
    "StoreError",
    "DependencyError",
    "ConfigurationError",
    "InvalidTransitionError",
    "ReconcileAggregateError",
]
