"""Dispatch client exceptions."""

from typing import Optional, Any, Dict


class DispatchError(Exception):
    """Base exception for dispatch client errors."""

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for presentation layers."""
        result = {"message": self.message}
        if self.code:
            result["code"] = self.code
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(DispatchError):
    """Raised when an offer or provider identity is missing or malformed."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class RealtimeConnectionError(DispatchError):
    """Dispatch server unreachable or misconfigured."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message, code="CONNECTION_ERROR")
        self.url = url


class OfferUnavailableError(DispatchError):
    """Raised when an offer can no longer be claimed."""

    def __init__(self, job_id: str, status: Optional[str] = None, message: Optional[str] = None,
                 code: str = "OFFER_UNAVAILABLE"):
        if message is None:
            message = f"Offer {job_id} is no longer available"
            if status:
                message += f" (status: {status})"
        super().__init__(message, code=code, details={"job_id": job_id, "status": status})
        self.job_id = job_id
        self.status = status


class AlreadyClaimedError(OfferUnavailableError):
    """Another provider won the claim race."""

    def __init__(self, job_id: str, claimed_by: Optional[str] = None, status: Optional[str] = None):
        super().__init__(
            job_id,
            status=status,
            message=f"Offer {job_id} has already been assigned to another provider",
            code="ALREADY_CLAIMED",
        )
        self.claimed_by = claimed_by


class OfferNotFoundError(OfferUnavailableError):
    """The job record behind an offer does not exist."""

    def __init__(self, job_id: str):
        super().__init__(job_id, message=f"Job with ID {job_id} not found", code="NOT_FOUND")


class ResourceUnavailableError(DispatchError):
    """Raised when a local resource such as the alert sound cannot be loaded."""

    def __init__(self, resource: str, message: Optional[str] = None):
        super().__init__(message or f"{resource} is not available", code="RESOURCE_UNAVAILABLE")
        self.resource = resource


class NotificationDeliveryError(DispatchError):
    """Best-effort customer notification failed."""

    def __init__(self, message: str, user_id: Optional[str] = None):
        super().__init__(message, code="NOTIFICATION_FAILED")
        self.user_id = user_id


class StoreError(DispatchError):
    """Raised when the shared store fails unexpectedly."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, code="STORE_ERROR")
        self.operation = operation
