"""Shared store interface and the claim decision rule."""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

from ..models.enums import ClaimOutcome, JobStatus, CLAIMABLE_STATUSES, OWNED_STATUSES
from ..models.schemas import ClaimAttempt, JobRecord


def evaluate_claim(status: Optional[str], assigned_provider: Optional[str], provider_id: str) -> ClaimOutcome:
    """Decide whether ``provider_id`` may claim a job in the given state.

    Every store applies this rule inside its atomic step. A missing status
    reads as pending. A job pre-assigned to the claimant in a claimable
    status is a directed booking and may be claimed.
    """
    status = status or JobStatus.PENDING.value

    if assigned_provider and assigned_provider != provider_id:
        return ClaimOutcome.TAKEN

    if status in CLAIMABLE_STATUSES:
        return ClaimOutcome.CLAIMABLE

    if assigned_provider == provider_id and status in OWNED_STATUSES:
        return ClaimOutcome.ALREADY_OWNED

    return ClaimOutcome.UNAVAILABLE


class JobStore(ABC):
    """Durable store shared by every provider client."""

    async def initialize(self):
        """Open connections and prepare the schema."""

    async def close(self):
        """Release connections."""

    @abstractmethod
    async def get(self, job_id: str) -> Optional[JobRecord]:
        """Fetch a job record, or None if it does not exist."""

    @abstractmethod
    async def claim(self, job_id: str, provider_id: str, fields: Dict[str, Any]) -> ClaimAttempt:
        """Atomically assign the job to ``provider_id`` if ``evaluate_claim`` allows it.

        On success the record is written with status ``accepted``, the
        provider id, the given display fields, a fresh ``updated_at`` and an
        incremented version, all in one conditional step.
        """

    @abstractmethod
    async def reject(self, job_id: str, reason: str) -> Optional[JobRecord]:
        """Mark the job rejected. Returns None if it does not exist."""

    @abstractmethod
    async def get_push_token(self, user_id: str) -> Optional[str]:
        """Push token registered for a customer, if any."""
