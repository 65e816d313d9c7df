"""Actuator command state, pending queue and long-poll waiters."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Mapping, Optional, Tuple
from uuid import uuid4

from models.records import COMMAND_FIELDS, PendingCommand
from services.errors import EmptyRequest, InvalidType

logger = logging.getLogger(__name__)

DisconnectCheck = Callable[[], Awaitable[bool]]

_COMMAND_LABELS = {"buzzer": "Buzzer", "led": "LED"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryKind(str, Enum):
    """How a poll or long-poll request was answered."""

    queued = "queued"
    snapshot = "snapshot"
    command = "command"
    timeout = "timeout"
    shutdown = "shutdown"


@dataclass(frozen=True)
class CommandDelivery:
    commands: Dict[str, bool]
    timestamp: datetime
    kind: DeliveryKind
    command_id: Optional[str] = None


@dataclass(eq=False)
class Waiter:
    """A parked long-poll request."""

    future: "asyncio.Future[CommandDelivery]"
    deadline: float

    @property
    def resolved(self) -> bool:
        return self.future.done()


class CommandDispatcher:
    """Owns the buzzer/LED state and hands command deltas to devices."""

    def __init__(
        self,
        delivery_mode: str = "fifo",
        disconnect_check_seconds: float = 1.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if delivery_mode not in ("fifo", "broadcast"):
            raise ValueError(f"Unknown delivery mode {delivery_mode!r}.")
        self.delivery_mode = delivery_mode
        self.disconnect_check_seconds = disconnect_check_seconds
        self._clock = clock
        self._state: Dict[str, bool] = {name: False for name in COMMAND_FIELDS}
        self._pending: Deque[PendingCommand] = deque()
        self._waiters: Deque[Waiter] = deque()
        self._detached: List[Waiter] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def waiter_count(self) -> int:
        return len(self._waiters)

    def state(self) -> Dict[str, bool]:
        return dict(self._state)

    def set_command(self, partial: Mapping[str, Any]) -> Tuple[Dict[str, bool], bool]:
        """Apply boolean actuator values and dispatch the resulting delta.

        Returns the fields that actually changed and whether anything did.
        """
        provided = {name: partial[name] for name in COMMAND_FIELDS if name in partial}
        if not provided:
            raise EmptyRequest("At least one command (buzzer or led) must be provided")
        for name, value in provided.items():
            if not isinstance(value, bool):
                raise InvalidType(name, label=_COMMAND_LABELS[name])

        applied: Dict[str, bool] = {}
        for name, value in provided.items():
            if self._state[name] != value:
                self._state[name] = value
                applied[name] = value

        if not applied:
            return applied, False

        command = PendingCommand(id=uuid4().hex, commands=dict(applied), created_at=self._clock())
        self._dispatch(command)
        logger.info(
            "Device commands updated",
            extra={
                "command_id": command.id,
                "commands": dict(self._state),
                "pending_count": len(self._pending),
            },
        )
        return applied, True

    def poll(self) -> CommandDelivery:
        """Dequeue the oldest pending command, or report the current state."""
        if self._pending:
            command = self._pending.popleft()
            return CommandDelivery(
                commands=dict(command.commands),
                timestamp=command.created_at,
                kind=DeliveryKind.queued,
                command_id=command.id,
            )
        return self._snapshot(DeliveryKind.snapshot)

    async def long_poll(
        self,
        timeout: float,
        immediate: bool = False,
        is_disconnected: Optional[DisconnectCheck] = None,
    ) -> Optional[CommandDelivery]:
        """Wait up to ``timeout`` seconds for the next command.

        Returns ``None`` when ``is_disconnected`` reports the client went away.
        """
        if immediate or self._pending:
            return self.poll()
        if self._closed:
            return self._snapshot(DeliveryKind.shutdown)

        loop = asyncio.get_running_loop()
        waiter = Waiter(future=loop.create_future(), deadline=loop.time() + timeout)
        self._waiters.append(waiter)
        logger.debug(
            "Long-poll waiter registered",
            extra={"waiter_count": len(self._waiters), "timeout_ms": int(timeout * 1000)},
        )
        try:
            while True:
                remaining = waiter.deadline - loop.time()
                try:
                    return await asyncio.wait_for(
                        asyncio.shield(waiter.future),
                        timeout=max(0.0, min(remaining, self.disconnect_check_seconds)),
                    )
                except asyncio.TimeoutError:
                    if waiter.resolved:
                        return waiter.future.result()
                if waiter.deadline - loop.time() <= 0:
                    return self._expire(waiter)
                if is_disconnected is not None and await is_disconnected():
                    logger.info("Long-poll client disconnected", extra={"reason": "disconnect"})
                    return None
        finally:
            self._discard(waiter)
            if not waiter.resolved:
                waiter.future.cancel()

    def clear_pending(self) -> int:
        """Drop queued commands and detach every waiter from delivery.

        Detached waiters receive no command; each still answers with the
        current state at its own deadline or on shutdown, whichever is first.
        """
        count = len(self._pending)
        released = len(self._waiters)
        self._pending.clear()
        self._detached.extend(self._waiters)
        self._waiters.clear()
        logger.info(
            "Cleared pending commands",
            extra={"pending_count": count, "waiter_count": released},
        )
        return count

    def shutdown(self) -> int:
        """Answer every parked waiter with the current state.

        Long-polls arriving afterwards are answered the same way without parking.
        """
        self._closed = True
        released = 0
        waiters = list(self._waiters) + self._detached
        self._waiters.clear()
        self._detached.clear()
        for waiter in waiters:
            if self._resolve(waiter, self._snapshot(DeliveryKind.shutdown)):
                released += 1
        if released:
            logger.info("Released waiters on shutdown", extra={"waiter_count": released})
        return released

    def _dispatch(self, command: PendingCommand) -> None:
        delivery = CommandDelivery(
            commands=dict(command.commands),
            timestamp=command.created_at,
            kind=DeliveryKind.command,
            command_id=command.id,
        )

        if self.delivery_mode == "broadcast":
            self._pending.append(command)
            waiters = list(self._waiters)
            self._waiters.clear()
            for waiter in waiters:
                self._resolve(waiter, delivery)
            return

        while self._waiters:
            waiter = self._waiters.popleft()
            if self._resolve(waiter, delivery):
                return
        self._pending.append(command)

    def _expire(self, waiter: Waiter) -> CommandDelivery:
        if waiter.resolved:
            return waiter.future.result()
        delivery = self._snapshot(DeliveryKind.timeout)
        waiter.future.set_result(delivery)
        return delivery

    def _discard(self, waiter: Waiter) -> None:
        for registry in (self._waiters, self._detached):
            try:
                registry.remove(waiter)
            except ValueError:
                pass

    @staticmethod
    def _resolve(waiter: Waiter, delivery: CommandDelivery) -> bool:
        if waiter.resolved:
            return False
        waiter.future.set_result(delivery)
        return True

    def _snapshot(self, kind: DeliveryKind) -> CommandDelivery:
        return CommandDelivery(commands=self.state(), timestamp=self._clock(), kind=kind)
