"""Models and data structures for the dispatch client."""

from .enums import (
    JobStatus,
    ClaimOutcome,
    ConnectionState,
    AlertState,
    LateSubscriberPolicy,
    StoreBackend,
    CLAIMABLE_STATUSES,
    OWNED_STATUSES,
)
from .schemas import (
    CircuitBreakerConfig,
    RetryConfig,
    CustomerLocation,
    JobOffer,
    OfferDistance,
    ProviderProfile,
    JobRecord,
    ClaimAttempt,
    ClaimResult,
    parse_timestamp,
)

__all__ = [
    "JobStatus",
    "ClaimOutcome",
    "ConnectionState",
    "AlertState",
    "LateSubscriberPolicy",
    "StoreBackend",
    "CLAIMABLE_STATUSES",
    "OWNED_STATUSES",
    "CircuitBreakerConfig",
    "RetryConfig",
    "CustomerLocation",
    "JobOffer",
    "OfferDistance",
    "ProviderProfile",
    "JobRecord",
    "ClaimAttempt",
    "ClaimResult",
    "parse_timestamp",
]
