"""PostgreSQL job store."""

import json
from contextlib import asynccontextmanager
from typing import Optional, Dict, Any

import asyncpg
import structlog

from ..exceptions import StoreError
from ..models.enums import ClaimOutcome, CLAIMABLE_STATUSES
from ..models.schemas import ClaimAttempt, JobRecord
from .base import JobStore, evaluate_claim

logger = structlog.get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN (
        'pending', 'scheduled', 'accepted', 'in-progress',
        'started', 'completed', 'cancelled', 'rejected'
    )),
    provider_id TEXT,
    customer_id TEXT,
    service_type TEXT,
    provider_details JSONB NOT NULL DEFAULT '{}'::jsonb,
    rejection_reason TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ,
    version INTEGER NOT NULL DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
CREATE INDEX IF NOT EXISTS idx_jobs_provider ON jobs(provider_id);

CREATE TABLE IF NOT EXISTS push_tokens (
    user_id TEXT PRIMARY KEY,
    token TEXT NOT NULL,
    updated_at TIMESTAMPTZ DEFAULT NOW()
);
"""

CLAIM_QUERY = """
    UPDATE jobs
    SET status = 'accepted',
        provider_id = $2,
        provider_details = provider_details || $3::jsonb,
        updated_at = NOW(),
        version = version + 1
    WHERE id = $1
      AND status = ANY($4::text[])
      AND (NULLIF(provider_id, '') IS NULL OR provider_id = $2)
    RETURNING *
"""

REJECT_QUERY = """
    UPDATE jobs
    SET status = 'rejected',
        rejection_reason = $2,
        updated_at = NOW(),
        version = version + 1
    WHERE id = $1
    RETURNING *
"""

# Re-reads allowed when a conditional update misses but the row still looks claimable
MAX_CLAIM_ROUNDS = 3


def record_from_row(row) -> JobRecord:
    """Convert an asyncpg row into a JobRecord."""
    data = dict(row)
    details = data.get("provider_details") or {}
    if isinstance(details, str):
        details = json.loads(details)
    return JobRecord(
        id=data["id"],
        status=data.get("status") or "pending",
        provider_id=data.get("provider_id"),
        customer_id=data.get("customer_id"),
        service_type=data.get("service_type"),
        provider_details=details,
        rejection_reason=data.get("rejection_reason"),
        updated_at=data.get("updated_at"),
        version=data.get("version") or 1,
    )


class PostgresJobStore(JobStore):
    """Job store backed by PostgreSQL through an asyncpg pool.

    Claims are a single conditional ``UPDATE ... RETURNING``; the database
    serializes competing claims on the row lock.
    """

    def __init__(self, database_url: str, pool: Optional[asyncpg.Pool] = None,
                 min_size: int = 1, max_size: int = 10):
        self.database_url = database_url
        self.pool = pool
        self.min_size = min_size
        self.max_size = max_size

    async def initialize(self):
        """Initialize connection pool and schema."""
        try:
            if self.pool is None:
                self.pool = await asyncpg.create_pool(
                    self.database_url,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    command_timeout=60,
                )
            async with self.get_connection() as conn:
                await conn.execute(SCHEMA)
            logger.info("Postgres job store initialized")
        except (OSError, asyncpg.PostgresError) as e:
            logger.error("Postgres job store initialization failed", error=str(e))
            raise StoreError(f"Failed to initialize job store: {e}", operation="initialize") from e

    async def close(self):
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    @asynccontextmanager
    async def get_connection(self):
        if self.pool is None:
            raise StoreError("Job store is not initialized", operation="connect")
        async with self.pool.acquire() as conn:
            yield conn

    async def get(self, job_id: str) -> Optional[JobRecord]:
        async with self.get_connection() as conn:
            row = await conn.fetchrow("SELECT * FROM jobs WHERE id = $1", job_id)
        return record_from_row(row) if row else None

    async def claim(self, job_id: str, provider_id: str, fields: Dict[str, Any]) -> ClaimAttempt:
        payload = json.dumps(fields, default=str)
        claimable = sorted(CLAIMABLE_STATUSES)

        async with self.get_connection() as conn:
            for _ in range(MAX_CLAIM_ROUNDS):
                row = await conn.fetchrow(CLAIM_QUERY, job_id, provider_id, payload, claimable)
                if row:
                    return ClaimAttempt(ClaimOutcome.CLAIMED, record_from_row(row))

                # Zero rows: find out why
                current = await conn.fetchrow("SELECT * FROM jobs WHERE id = $1", job_id)
                if current is None:
                    return ClaimAttempt(ClaimOutcome.NOT_FOUND)

                record = record_from_row(current)
                verdict = evaluate_claim(record.status, record.provider_id, provider_id)
                if verdict != ClaimOutcome.CLAIMABLE:
                    return ClaimAttempt(verdict, record)

                logger.debug("Claim missed a concurrent write, retrying", job_id=job_id)

        raise StoreError(f"Claim on {job_id} did not settle", operation="claim")

    async def reject(self, job_id: str, reason: str) -> Optional[JobRecord]:
        async with self.get_connection() as conn:
            row = await conn.fetchrow(REJECT_QUERY, job_id, reason)
        return record_from_row(row) if row else None

    async def get_push_token(self, user_id: str) -> Optional[str]:
        async with self.get_connection() as conn:
            return await conn.fetchval("SELECT token FROM push_tokens WHERE user_id = $1", user_id)
