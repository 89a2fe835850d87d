"""Firestore job store."""

import inspect
from typing import Optional, Dict, Any

import structlog
from google.cloud import firestore

from ..models.enums import ClaimOutcome, JobStatus
from ..models.schemas import ClaimAttempt, JobRecord
from .base import JobStore, evaluate_claim

logger = structlog.get_logger(__name__)


async def claim_in_transaction(transaction, ref, provider_id: str, fields: Dict[str, Any]) -> ClaimAttempt:
    """Read the job inside ``transaction`` and stage the claim if the rule allows it."""
    snapshot = await ref.get(transaction=transaction)
    if not snapshot.exists:
        return ClaimAttempt(ClaimOutcome.NOT_FOUND)

    data = snapshot.to_dict() or {}
    assigned = data.get("providerId") or data.get("doctorId")
    verdict = evaluate_claim(data.get("status"), assigned, provider_id)
    if verdict != ClaimOutcome.CLAIMABLE:
        return ClaimAttempt(verdict, JobRecord.from_document(ref.id, data))

    update = dict(fields)
    update.update({
        "status": JobStatus.ACCEPTED.value,
        "providerId": provider_id,
        "doctorId": provider_id,
        "updatedAt": firestore.SERVER_TIMESTAMP,
        "version": firestore.Increment(1),
    })
    transaction.update(ref, update)

    merged = dict(data)
    merged.update(update)
    merged["updatedAt"] = None
    merged["version"] = int(data.get("version") or 0) + 1
    return ClaimAttempt(ClaimOutcome.CLAIMED, JobRecord.from_document(ref.id, merged))


# Firestore retries the whole function on contention
_claim_transactionally = firestore.async_transactional(claim_in_transaction)


class FirestoreJobStore(JobStore):
    """Job store over the Cloud Firestore collections the mobile apps use."""

    def __init__(self, project: Optional[str] = None, jobs_collection: str = "consultations",
                 users_collection: str = "users", client: Optional[firestore.AsyncClient] = None):
        self.project = project
        self.jobs_collection = jobs_collection
        self.users_collection = users_collection
        self.client = client

    async def initialize(self):
        if self.client is None:
            self.client = firestore.AsyncClient(project=self.project)
        logger.info("Firestore job store initialized", project=self.project, collection=self.jobs_collection)

    async def close(self):
        if self.client is not None:
            result = self.client.close()
            if inspect.isawaitable(result):
                await result
            self.client = None

    def _job_ref(self, job_id: str):
        return self.client.collection(self.jobs_collection).document(job_id)

    async def get(self, job_id: str) -> Optional[JobRecord]:
        snapshot = await self._job_ref(job_id).get()
        if not snapshot.exists:
            return None
        return JobRecord.from_document(job_id, snapshot.to_dict() or {})

    async def claim(self, job_id: str, provider_id: str, fields: Dict[str, Any]) -> ClaimAttempt:
        transaction = self.client.transaction()
        return await _claim_transactionally(transaction, self._job_ref(job_id), provider_id, fields)

    async def reject(self, job_id: str, reason: str) -> Optional[JobRecord]:
        ref = self._job_ref(job_id)
        snapshot = await ref.get()
        if not snapshot.exists:
            return None
        update = {
            "status": JobStatus.REJECTED.value,
            "rejectionReason": reason,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        await ref.update(update)
        data = snapshot.to_dict() or {}
        data.update(update)
        data["updatedAt"] = None
        return JobRecord.from_document(job_id, data)

    async def get_push_token(self, user_id: str) -> Optional[str]:
        snapshot = await self.client.collection(self.users_collection).document(user_id).get()
        if not snapshot.exists:
            return None
        return (snapshot.to_dict() or {}).get("fcmToken")
