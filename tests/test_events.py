"""
Job Event Tests - broadcaster fan-out and service publishing
"""
import asyncio
import uuid

import pytest

from src.core.exceptions import AuthorizationError
from src.modules.marketplace.events import JobEvent, JobEventBroadcaster
from src.modules.marketplace.service import JobService


def _event(**overrides) -> JobEvent:
    values = dict(
        job_id=uuid.uuid4(),
        event="purchased",
        status="pending_approval",
        seller_id=uuid.uuid4(),
        buyer_id=uuid.uuid4(),
    )
    values.update(overrides)
    return JobEvent(**values)


@pytest.mark.asyncio
async def test_publish_reaches_every_subscriber():
    events = JobEventBroadcaster()
    event = _event()

    async with events.subscribe() as first, events.subscribe() as second:
        assert events.subscriber_count == 2
        events.publish(event)
        assert await asyncio.wait_for(first.get(), 1) == event
        assert await asyncio.wait_for(second.get(), 1) == event

    assert events.subscriber_count == 0


@pytest.mark.asyncio
async def test_full_queue_drops_instead_of_blocking():
    events = JobEventBroadcaster(queue_size=1)

    async with events.subscribe() as queue:
        events.publish(_event(event="first"))
        events.publish(_event(event="second"))

        assert queue.qsize() == 1
        assert (await queue.get()).event == "first"


def test_event_payload_and_parties():
    event = _event(buyer_id=None, event="created", status="available")
    payload = event.to_payload()

    assert payload["type"] == "job"
    assert payload["buyer_id"] is None
    assert payload["job_id"] == str(event.job_id)
    assert event.concerns(event.seller_id)
    assert not event.concerns(uuid.uuid4())


@pytest.mark.asyncio
async def test_transitions_are_published(db_session, job_data, fund, seller_id, buyer_id):
    events = JobEventBroadcaster()
    service = JobService(db_session, events=events)
    await fund(seller_id, 500)
    await fund(buyer_id, 500)

    async with events.subscribe() as queue:
        job = await service.create(seller_id, job_data())
        await service.purchase(job.id, buyer_id)
        await service.approve(job.id, seller_id)

        received = [queue.get_nowait() for _ in range(queue.qsize())]

    assert [(e.event, e.status) for e in received] == [
        ("created", "available"),
        ("purchased", "pending_approval"),
        ("approved", "approved"),
    ]
    assert received[-1].buyer_id == buyer_id


@pytest.mark.asyncio
async def test_rejected_transition_publishes_nothing(db_session, job_data, fund, seller_id):
    events = JobEventBroadcaster()
    service = JobService(db_session, events=events)
    await fund(seller_id, 500)
    job = await service.create(seller_id, job_data())
    job_id = job.id

    async with events.subscribe() as queue:
        with pytest.raises(AuthorizationError):
            await service.purchase(job_id, seller_id)
        assert queue.empty()
