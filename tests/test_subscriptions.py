import asyncio

from parcels.subscriptions import Subscription


def test_items_arrive_in_order_until_closed():
    async def scenario():
        subscription = Subscription(name="test")
        for item in (1, 2, 3):
            subscription.push(item)
        subscription.close()
        return [item async for item in subscription]

    assert asyncio.run(scenario()) == [1, 2, 3]


def test_push_after_close_is_ignored():
    async def scenario():
        subscription = Subscription()
        subscription.close()
        return subscription.push("late"), [item async for item in subscription]

    accepted, items = asyncio.run(scenario())
    assert accepted is False
    assert items == []


def test_cancel_is_idempotent_and_runs_hook_once():
    calls = []

    async def scenario():
        subscription = Subscription(on_cancel=lambda: calls.append("cancelled"))
        subscription.push("pending")
        subscription.cancel()
        subscription.cancel()
        return subscription, [item async for item in subscription]

    subscription, items = asyncio.run(scenario())
    assert calls == ["cancelled"]
    # pending items are discarded
    assert items == []
    assert subscription.cancelled and subscription.closed


def test_cancel_wakes_a_waiting_consumer():
    async def scenario():
        subscription = Subscription()
        received = []

        async def consume():
            async for item in subscription:
                received.append(item)

        task = asyncio.ensure_future(consume())
        subscription.push("first")
        await asyncio.sleep(0.01)
        subscription.cancel()
        await asyncio.wait_for(task, timeout=1.0)
        return received

    assert asyncio.run(scenario()) == ["first"]


def test_failing_cancel_hook_does_not_propagate():
    def boom():
        raise RuntimeError("store gone")

    async def scenario():
        subscription = Subscription(on_cancel=boom)
        subscription.cancel()
        return subscription.cancelled

    assert asyncio.run(scenario()) is True
