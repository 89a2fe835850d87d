"""Claim resolution for accepted and rejected offers."""

import asyncio
from typing import Any, Optional, Set, Union

import structlog

from ..exceptions import (
    DispatchError,
    ValidationError,
    AlreadyClaimedError,
    OfferUnavailableError,
    OfferNotFoundError,
    NotificationDeliveryError,
    StoreError,
)
from ..models.enums import ClaimOutcome
from ..models.schemas import JobOffer, JobRecord, ProviderProfile, ClaimResult
from ..stores.base import JobStore
from .push_notifier import PushNotifier

logger = structlog.get_logger(__name__)
notification_logger = structlog.get_logger("provider_dispatch.notifications")

DEFAULT_REJECTION_REASON = "Provider rejected the service request"


class ClaimResolver:
    """Turns a provider's decision on an offer into a store write.

    Accepting is a single atomic claim; whether it won, lost or was a
    repeat is decided by the store, never by a prior read.
    """

    def __init__(self, store: JobStore, notifier: Optional[PushNotifier] = None,
                 rejection_reason: str = DEFAULT_REJECTION_REASON):
        self.store = store
        self.notifier = notifier
        self.rejection_reason = rejection_reason
        self._notifications: Set[asyncio.Task] = set()

    async def accept_offer(
        self,
        offer: Union[JobOffer, dict],
        provider_id: Optional[str],
        provider_profile: Optional[Union[ProviderProfile, dict]] = None,
    ) -> ClaimResult:
        """Claim the offer for ``provider_id``.

        Raises:
            ValidationError: offer id or provider id missing.
            AlreadyClaimedError: another provider holds the job.
            OfferUnavailableError: the job is no longer claimable.
            OfferNotFoundError: no such job.
            StoreError: the store failed.
        """
        offer = JobOffer.from_payload(offer)
        job_id = offer.require_id()
        if not provider_id or not str(provider_id).strip():
            raise ValidationError("Provider ID is required", field="provider_id")
        provider_id = str(provider_id).strip()

        profile = ProviderProfile.from_any(provider_profile) or ProviderProfile()

        log = logger.bind(offer_id=job_id, provider_id=provider_id)
        log.info("Accepting offer")

        attempt = await self._call_store("claim", self.store.claim(job_id, provider_id, profile.claim_fields()))

        if attempt.outcome == ClaimOutcome.CLAIMED:
            log.info("Offer claimed")
            record = attempt.record
            self._schedule_notification(
                customer_id=offer.customer_id or (record.customer_id if record else None),
                job_id=job_id,
                provider_name=profile.display_name,
                service_type=offer.service_type or (record.service_type if record else None),
            )
            return ClaimResult(job_id=job_id, provider_id=provider_id, record=record)

        if attempt.outcome == ClaimOutcome.ALREADY_OWNED:
            log.info("Offer already owned by this provider")
            return ClaimResult(job_id=job_id, provider_id=provider_id, already_owned=True, record=attempt.record)

        status = attempt.record.status if attempt.record else None

        if attempt.outcome == ClaimOutcome.TAKEN:
            claimed_by = attempt.record.provider_id if attempt.record else None
            log.info("Offer taken by another provider", claimed_by=claimed_by, status=status)
            raise AlreadyClaimedError(job_id, claimed_by=claimed_by, status=status)

        if attempt.outcome == ClaimOutcome.NOT_FOUND:
            log.warning("Offer not found")
            raise OfferNotFoundError(job_id)

        log.info("Offer unavailable", status=status)
        raise OfferUnavailableError(job_id, status=status)

    async def reject_offer(self, offer: Union[JobOffer, dict], reason: Optional[str] = None) -> JobRecord:
        """Mark the job rejected with ``reason`` or the default reason."""
        offer = JobOffer.from_payload(offer)
        job_id = offer.require_id()
        reason = reason or self.rejection_reason

        record = await self._call_store("reject", self.store.reject(job_id, reason))
        if record is None:
            logger.warning("Offer not found", offer_id=job_id)
            raise OfferNotFoundError(job_id)

        logger.info("Offer rejected", offer_id=job_id, reason=reason)
        return record

    async def drain_notifications(self, timeout: Optional[float] = 5.0) -> bool:
        """Wait for outstanding notifications. Returns False if some are still running."""
        if not self._notifications:
            return True
        _, pending = await asyncio.wait(set(self._notifications), timeout=timeout)
        if pending:
            notification_logger.warning("Notifications still pending", count=len(pending))
        return not pending

    @property
    def pending_notifications(self) -> int:
        return len(self._notifications)

    async def _call_store(self, operation: str, call) -> Any:
        try:
            return await call
        except DispatchError:
            raise
        except Exception as e:
            logger.error("Store operation failed", operation=operation, error=str(e), exc_info=True)
            raise StoreError(f"Store {operation} failed: {e}", operation=operation) from e

    def _schedule_notification(self, **kwargs):
        if self.notifier is None:
            return
        task = asyncio.create_task(self._notify(**kwargs))
        self._notifications.add(task)
        task.add_done_callback(self._notifications.discard)

    async def _notify(self, customer_id, job_id, provider_name, service_type):
        try:
            await self.notifier.notify_service_accepted(customer_id, job_id, provider_name, service_type)
        except NotificationDeliveryError as e:
            notification_logger.warning("Customer notification failed", offer_id=job_id, error=e.message)
        except Exception as e:
            notification_logger.error("Customer notification crashed", offer_id=job_id, error=str(e), exc_info=True)
