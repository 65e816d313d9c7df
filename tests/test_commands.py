"""Tests for the command queue, poll and long-poll delivery."""

from __future__ import annotations

import asyncio
import logging

import pytest

from services.commands import CommandDispatcher, DeliveryKind
from services.errors import EmptyRequest, InvalidType


def test_set_command_applies_only_changed_fields() -> None:
    dispatcher = CommandDispatcher()

    applied, changed = dispatcher.set_command({"buzzer": True, "led": False})

    assert applied == {"buzzer": True}
    assert changed is True
    assert dispatcher.state() == {"buzzer": True, "led": False}
    assert dispatcher.pending_count == 1


def test_set_command_repeating_current_value_is_a_noop() -> None:
    dispatcher = CommandDispatcher()
    dispatcher.set_command({"buzzer": True})
    dispatcher.poll()

    applied, changed = dispatcher.set_command({"buzzer": True})

    assert applied == {}
    assert changed is False
    assert dispatcher.pending_count == 0


def test_set_command_requires_a_field() -> None:
    dispatcher = CommandDispatcher()

    with pytest.raises(EmptyRequest):
        dispatcher.set_command({"fan": True})


def test_set_command_rejects_non_boolean_without_partial_apply() -> None:
    dispatcher = CommandDispatcher()

    with pytest.raises(InvalidType) as excinfo:
        dispatcher.set_command({"buzzer": True, "led": "on"})

    assert excinfo.value.message == "LED value must be boolean"
    assert dispatcher.state() == {"buzzer": False, "led": False}
    assert dispatcher.pending_count == 0


def test_poll_dequeues_in_fifo_order() -> None:
    dispatcher = CommandDispatcher()
    dispatcher.set_command({"buzzer": True})
    dispatcher.set_command({"led": True})

    first = dispatcher.poll()
    second = dispatcher.poll()
    third = dispatcher.poll()

    assert (first.kind, first.commands) == (DeliveryKind.queued, {"buzzer": True})
    assert (second.kind, second.commands) == (DeliveryKind.queued, {"led": True})
    assert first.command_id != second.command_id
    assert third.kind is DeliveryKind.snapshot
    assert third.command_id is None
    assert third.commands == {"buzzer": True, "led": True}


def test_long_poll_with_pending_command_resolves_immediately() -> None:
    dispatcher = CommandDispatcher()
    dispatcher.set_command({"led": True})

    delivery = asyncio.run(dispatcher.long_poll(timeout=5.0))

    assert delivery is not None
    assert delivery.kind is DeliveryKind.queued
    assert delivery.commands == {"led": True}
    assert dispatcher.pending_count == 0


def test_long_poll_immediate_returns_snapshot_without_consuming() -> None:
    dispatcher = CommandDispatcher()

    delivery = asyncio.run(dispatcher.long_poll(timeout=5.0, immediate=True))

    assert delivery is not None
    assert delivery.kind is DeliveryKind.snapshot
    assert delivery.commands == {"buzzer": False, "led": False}


def test_long_poll_times_out_with_current_state() -> None:
    dispatcher = CommandDispatcher()

    delivery = asyncio.run(dispatcher.long_poll(timeout=0.05))

    assert delivery is not None
    assert delivery.kind is DeliveryKind.timeout
    assert delivery.commands == {"buzzer": False, "led": False}
    assert dispatcher.waiter_count == 0


def test_new_command_goes_to_the_oldest_waiter_only() -> None:
    dispatcher = CommandDispatcher()

    async def scenario():
        first = asyncio.create_task(dispatcher.long_poll(timeout=0.5))
        await asyncio.sleep(0.01)
        second = asyncio.create_task(dispatcher.long_poll(timeout=0.2))
        await asyncio.sleep(0.01)
        assert dispatcher.waiter_count == 2
        dispatcher.set_command({"buzzer": True})
        return await first, await second

    first, second = asyncio.run(scenario())

    assert first.kind is DeliveryKind.command
    assert first.commands == {"buzzer": True}
    assert second.kind is DeliveryKind.timeout
    assert second.commands == {"buzzer": True, "led": False}
    assert dispatcher.pending_count == 0
    assert dispatcher.waiter_count == 0


def test_broadcast_mode_fans_out_and_keeps_queue_entry() -> None:
    dispatcher = CommandDispatcher(delivery_mode="broadcast")

    async def scenario():
        waiters = [asyncio.create_task(dispatcher.long_poll(timeout=1.0)) for _ in range(2)]
        await asyncio.sleep(0.01)
        dispatcher.set_command({"led": True})
        return await asyncio.gather(*waiters)

    deliveries = asyncio.run(scenario())

    assert [delivery.kind for delivery in deliveries] == [DeliveryKind.command] * 2
    assert deliveries[0].command_id == deliveries[1].command_id
    assert dispatcher.pending_count == 1
    assert dispatcher.waiter_count == 0


def test_unknown_delivery_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        CommandDispatcher(delivery_mode="random")


def test_shutdown_releases_waiters_with_marker() -> None:
    dispatcher = CommandDispatcher()

    async def scenario():
        task = asyncio.create_task(dispatcher.long_poll(timeout=5.0))
        await asyncio.sleep(0.01)
        released = dispatcher.shutdown()
        return released, await task

    released, delivery = asyncio.run(scenario())

    assert released == 1
    assert delivery.kind is DeliveryKind.shutdown
    assert delivery.commands == {"buzzer": False, "led": False}


def test_disconnected_client_is_removed_from_registry() -> None:
    dispatcher = CommandDispatcher(disconnect_check_seconds=0.01)
    checks = []

    async def is_disconnected() -> bool:
        checks.append(True)
        return len(checks) >= 2

    async def scenario():
        delivery = await dispatcher.long_poll(timeout=5.0, is_disconnected=is_disconnected)
        return delivery, dispatcher.waiter_count

    delivery, waiter_count = asyncio.run(scenario())

    assert delivery is None
    assert waiter_count == 0
    assert len(checks) == 2


def test_cancelled_long_poll_is_removed_from_registry() -> None:
    dispatcher = CommandDispatcher()

    async def scenario():
        task = asyncio.create_task(dispatcher.long_poll(timeout=5.0))
        await asyncio.sleep(0.01)
        assert dispatcher.waiter_count == 1
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return dispatcher.waiter_count

    assert asyncio.run(scenario()) == 0

    dispatcher.set_command({"buzzer": True})
    assert dispatcher.pending_count == 1


def test_clear_pending_drops_queue_and_detaches_waiters() -> None:
    dispatcher = CommandDispatcher()
    dispatcher.set_command({"buzzer": True})
    dispatcher.set_command({"led": True})

    async def scenario():
        assert dispatcher.clear_pending() == 2
        task = asyncio.create_task(dispatcher.long_poll(timeout=0.1))
        await asyncio.sleep(0.01)
        assert dispatcher.clear_pending() == 0
        dispatcher.set_command({"buzzer": False})
        return await task

    delivery = asyncio.run(scenario())

    assert delivery.kind is DeliveryKind.timeout
    assert delivery.commands == {"buzzer": False, "led": True}
    assert dispatcher.pending_count == 1


def test_command_update_is_logged(caplog) -> None:
    dispatcher = CommandDispatcher()

    with caplog.at_level(logging.INFO, logger="services.commands"):
        dispatcher.set_command({"led": True})

    records = [record for record in caplog.records if record.name == "services.commands"]
    assert any(record.getMessage() == "Device commands updated" for record in records)
    assert any(getattr(record, "pending_count", None) == 1 for record in records)


def test_shutdown_also_releases_detached_waiters() -> None:
    dispatcher = CommandDispatcher()

    async def scenario():
        task = asyncio.create_task(dispatcher.long_poll(timeout=5.0))
        await asyncio.sleep(0.01)
        dispatcher.clear_pending()
        assert dispatcher.waiter_count == 0
        released = dispatcher.shutdown()
        return released, await task

    released, delivery = asyncio.run(scenario())

    assert released == 1
    assert delivery.kind is DeliveryKind.shutdown


def test_long_poll_after_shutdown_answers_without_parking() -> None:
    dispatcher = CommandDispatcher()
    dispatcher.shutdown()

    delivery = asyncio.run(dispatcher.long_poll(timeout=5.0))

    assert dispatcher.closed is True
    assert delivery.kind is DeliveryKind.shutdown
    assert dispatcher.waiter_count == 0


def test_queued_command_is_still_delivered_after_shutdown() -> None:
    dispatcher = CommandDispatcher()
    dispatcher.set_command({"led": True})
    dispatcher.shutdown()

    delivery = asyncio.run(dispatcher.long_poll(timeout=5.0))

    assert delivery.kind is DeliveryKind.queued
    assert delivery.commands == {"led": True}
