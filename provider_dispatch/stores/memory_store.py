"""In-process job store."""

import asyncio
import copy
from datetime import datetime, timezone
from typing import Optional, Dict, Any

import structlog

from ..models.enums import ClaimOutcome, JobStatus
from ..models.schemas import ClaimAttempt, JobRecord
from .base import JobStore, evaluate_claim

logger = structlog.get_logger(__name__)


class InMemoryJobStore(JobStore):
    """Job store held in memory and shared by every client in the process.

    A single lock makes each claim a check-and-write with no interleaving.
    ``latency`` delays every write while the lock is held, which keeps a
    claim in flight long enough to race against it.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._records: Dict[str, JobRecord] = {}
        self._push_tokens: Dict[str, str] = {}
        self._lock = asyncio.Lock()
        self.claim_writes = 0

    def add(self, record: JobRecord) -> JobRecord:
        self._records[record.id] = record
        return record

    def set_push_token(self, user_id: str, token: Optional[str]):
        if token is None:
            self._push_tokens.pop(user_id, None)
        else:
            self._push_tokens[user_id] = token

    async def get(self, job_id: str) -> Optional[JobRecord]:
        record = self._records.get(job_id)
        return copy.deepcopy(record) if record else None

    async def claim(self, job_id: str, provider_id: str, fields: Dict[str, Any]) -> ClaimAttempt:
        async with self._lock:
            if self.latency:
                await asyncio.sleep(self.latency)

            record = self._records.get(job_id)
            if record is None:
                return ClaimAttempt(ClaimOutcome.NOT_FOUND)

            verdict = evaluate_claim(record.status, record.provider_id, provider_id)
            if verdict != ClaimOutcome.CLAIMABLE:
                logger.debug("Claim refused", job_id=job_id, provider_id=provider_id, outcome=verdict.value)
                return ClaimAttempt(verdict, copy.deepcopy(record))

            record.status = JobStatus.ACCEPTED.value
            record.provider_id = provider_id
            record.provider_details.update(fields)
            record.updated_at = datetime.now(timezone.utc)
            record.version += 1
            self.claim_writes += 1
            return ClaimAttempt(ClaimOutcome.CLAIMED, copy.deepcopy(record))

    async def reject(self, job_id: str, reason: str) -> Optional[JobRecord]:
        async with self._lock:
            if self.latency:
                await asyncio.sleep(self.latency)

            record = self._records.get(job_id)
            if record is None:
                return None
            record.status = JobStatus.REJECTED.value
            record.rejection_reason = reason
            record.updated_at = datetime.now(timezone.utc)
            record.version += 1
            return copy.deepcopy(record)

    async def get_push_token(self, user_id: str) -> Optional[str]:
        return self._push_tokens.get(user_id)
