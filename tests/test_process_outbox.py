from conftest import FakePublisher
from farm2city.application.process_outbox import ProcessOutboxEventsUseCase


async def test_publishes_pending_events_once(uow, place_order):
    order = await place_order()
    publisher = FakePublisher()
    process = ProcessOutboxEventsUseCase(uow, publisher)

    assert await process() == 1
    assert await process() == 0

    [(event_type, key, payload)] = publisher.published
    assert event_type == "order.created"
    assert key == order.id
    assert payload["id"] == order.id
    assert payload["status"] == "pending"


async def test_failed_publish_keeps_event_pending(uow, place_order):
    await place_order()

    assert await ProcessOutboxEventsUseCase(uow, FakePublisher(fail=True))() == 0

    publisher = FakePublisher()
    assert await ProcessOutboxEventsUseCase(uow, publisher)() == 1
    assert len(publisher.published) == 1


async def test_respects_batch_limit(uow, place_order):
    for _ in range(3):
        await place_order(quantity=1)
    process = ProcessOutboxEventsUseCase(uow, FakePublisher())

    assert await process(limit=2) == 2
    assert await process(limit=2) == 1
