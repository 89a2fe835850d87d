"""Enumerations for job, connection and alert states."""

from enum import Enum


class JobStatus(str, Enum):
    """Job record lifecycle status as stored in the shared store."""
    PENDING = "pending"
    SCHEDULED = "scheduled"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in-progress"
    STARTED = "started"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


# Statuses from which a provider may claim a job
CLAIMABLE_STATUSES = frozenset({JobStatus.PENDING.value, JobStatus.SCHEDULED.value})

# Statuses that mean the assigned provider already owns the job
OWNED_STATUSES = frozenset({
    JobStatus.ACCEPTED.value,
    JobStatus.IN_PROGRESS.value,
    JobStatus.STARTED.value,
    JobStatus.COMPLETED.value,
})


class ClaimOutcome(Enum):
    """Store-level verdict of a claim attempt."""
    CLAIMABLE = "claimable"
    CLAIMED = "claimed"
    ALREADY_OWNED = "already_owned"
    TAKEN = "taken"
    UNAVAILABLE = "unavailable"
    NOT_FOUND = "not_found"


class ConnectionState(Enum):
    """Realtime transport connection states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class AlertState(Enum):
    """Offer alert states."""
    IDLE = "idle"
    RINGING = "ringing"


class LateSubscriberPolicy(str, Enum):
    """What to do with an offer that arrives before any subscriber."""
    DROP = "drop"
    BUFFER_LATEST = "buffer_latest"


class StoreBackend(str, Enum):
    """Shared store implementations."""
    MEMORY = "memory"
    POSTGRES = "postgres"
    FIRESTORE = "firestore"
