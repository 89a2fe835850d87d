"""Tests for the offer callback registry."""

import pytest

from provider_dispatch.models.enums import LateSubscriberPolicy
from provider_dispatch.models.schemas import JobOffer
from provider_dispatch.services.callback_registry import OfferCallbackRegistry

from conftest import booking


def offer(job_id="job-1"):
    return JobOffer.from_payload(booking(job_id))


class TestSubscribe:

    @pytest.mark.asyncio
    async def test_publish_reaches_subscribers_in_order(self, registry):
        calls = []

        def first(o):
            calls.append(("first", o.id))

        async def second(o):
            calls.append(("second", o.id))

        registry.subscribe(first)
        registry.subscribe(second)

        delivered = await registry.publish(offer())

        assert delivered == 2
        assert calls == [("first", "job-1"), ("second", "job-1")]

    @pytest.mark.asyncio
    async def test_unsubscribe_removes_only_that_subscription(self, registry):
        calls = []
        callback = calls.append

        unsubscribe_a = registry.subscribe(callback)
        registry.subscribe(callback)
        assert registry.subscriber_count == 2

        unsubscribe_a()
        unsubscribe_a()
        assert registry.subscriber_count == 1

        await registry.publish(offer())
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_raising_subscriber_is_skipped(self, registry):
        received = []

        def broken(o):
            raise RuntimeError("screen not mounted")

        registry.subscribe(broken)
        registry.subscribe(received.append)

        delivered = await registry.publish(offer())

        assert delivered == 1
        assert [o.id for o in received] == ["job-1"]

    def test_rejects_non_callable(self, registry):
        with pytest.raises(TypeError):
            registry.subscribe("not a callback")

    @pytest.mark.asyncio
    async def test_clear_removes_everything(self, registry):
        registry.subscribe(lambda o: None)
        registry.clear()

        assert registry.subscriber_count == 0
        assert await registry.publish(offer()) == 0


class TestLateSubscribers:

    @pytest.mark.asyncio
    async def test_drop_policy_discards_offer(self):
        registry = OfferCallbackRegistry(policy=LateSubscriberPolicy.DROP)
        received = []

        assert await registry.publish(offer()) == 0
        registry.subscribe(received.append)
        await registry.drain()

        assert received == []

    @pytest.mark.asyncio
    async def test_buffered_offer_goes_to_first_late_subscriber_once(self, registry):
        first, second = [], []

        await registry.publish(offer())
        registry.subscribe(first.append)
        registry.subscribe(second.append)
        await registry.drain()

        assert [o.id for o in first] == ["job-1"]
        assert second == []

    @pytest.mark.asyncio
    async def test_only_latest_offer_is_held(self, registry):
        received = []

        await registry.publish(offer("job-1"))
        await registry.publish(offer("job-2"))
        registry.subscribe(received.append)
        await registry.drain()

        assert [o.id for o in received] == ["job-2"]

    @pytest.mark.asyncio
    async def test_held_offer_expires(self):
        now = [100.0]
        registry = OfferCallbackRegistry(late_offer_ttl=1.0, clock=lambda: now[0])
        received = []

        await registry.publish(offer())
        now[0] += 1.5
        registry.subscribe(received.append)
        await registry.drain()

        assert received == []

    @pytest.mark.asyncio
    async def test_delivered_offer_is_not_held(self, registry):
        unsubscribe = registry.subscribe(lambda o: None)
        await registry.publish(offer())
        unsubscribe()

        received = []
        registry.subscribe(received.append)
        await registry.drain()

        assert received == []
