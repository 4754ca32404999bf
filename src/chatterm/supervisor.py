"""Connection lifecycle: connect, read, detect failure, back off, reconnect.

ReconnectSupervisor owns the session's read path. Inbound events are put on
a single asyncio queue and handed to ``on_event`` by one consumer task, so
log and scroll state are only ever mutated from one place.

The loop never gives up. It runs until the task running ``run()`` is
cancelled.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from chatterm.errors import ChatConnectionError, ProtocolActionError
from chatterm.events import ChatEvent
from chatterm.session import ChatSession

logger = logging.getLogger(__name__)

IDLE_TIMEOUT = 180.0
WRITE_TIMEOUT = 5.0


class SupervisorState(Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    BACKOFF = "backoff"


class Backoff:
    """Doubling delay that wraps back to ``base`` after passing ``ceiling``.

    With base 2 and ceiling 60: 2, 4, 8, 16, 32, 64, 2, 4, ...
    """

    def __init__(self, base: float = 2.0, ceiling: float = 60.0) -> None:
        self.base = base
        self.ceiling = ceiling
        self.current = base

    def next(self) -> float:
        delay = self.current
        self.current = self.base if self.current > self.ceiling else self.current * 2
        return delay

    def reset(self) -> None:
        self.current = self.base


class ReconnectSupervisor:
    """Keeps a ChatSession connected and feeds its events to ``on_event``.

    Args:
        session: The chat session to supervise.
        on_event: Called for each inbound event, in order, from one task.
        on_error: Called with a user-facing message on every connection failure.
        on_state: Called on every state transition.
        sleep: Awaitable used for backoff waits (swapped out in tests).
    """

    def __init__(
        self,
        session: ChatSession,
        on_event: Callable[[ChatEvent], None],
        on_error: Callable[[str], None],
        on_state: Callable[[SupervisorState], None] | None = None,
        *,
        idle_timeout: float = IDLE_TIMEOUT,
        write_timeout: float = WRITE_TIMEOUT,
        backoff: Backoff | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.session = session
        self.on_event = on_event
        self.on_error = on_error
        self.on_state = on_state
        self.idle_timeout = idle_timeout
        self.write_timeout = write_timeout
        self.backoff = backoff or Backoff()
        self.sleep = sleep
        self.state = SupervisorState.CONNECTING
        self.events: asyncio.Queue[ChatEvent] = asyncio.Queue()
        self.read_task: asyncio.Future[ChatEvent] | None = None
        self.write_error: str | None = None
        self.next_delay: float | None = None

    def set_state(self, state: SupervisorState) -> None:
        if state is self.state:
            return
        logger.info("Connection state: %s -> %s", self.state.value, state.value)
        self.state = state
        if self.on_state is not None:
            self.on_state(state)

    # -- main loop ---------------------------------------------------------

    async def run(self) -> None:
        consumer = asyncio.create_task(self.consume(), name="chatterm-events")
        try:
            while True:
                if self.state is SupervisorState.CONNECTING:
                    await self.connect()
                elif self.state is SupervisorState.CONNECTED:
                    await self.read_loop()
                elif self.state is SupervisorState.DISCONNECTED:
                    await self.close_session()
                    self.set_state(SupervisorState.BACKOFF)
                else:
                    await self.wait_backoff()
        finally:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
            await self.close_session()

    async def connect(self) -> None:
        try:
            await self.session.open()
        except ChatConnectionError as exc:
            logger.warning("Connect failed: %s", exc)
            self.on_error(f"Connection failed: {exc}")
            await self.close_session()
            self.set_state(SupervisorState.BACKOFF)
            return
        self.backoff.reset()
        self.write_error = None
        self.next_delay = None
        self.set_state(SupervisorState.CONNECTED)

    async def read_loop(self) -> None:
        """Read until the connection fails, then move to DISCONNECTED."""
        reason = ""
        while self.write_error is None:
            self.read_task = asyncio.ensure_future(asyncio.wait_for(self.session.receive(), self.idle_timeout))
            try:
                event = await self.read_task
            except TimeoutError:
                reason = f"no data received for {self.idle_timeout:g}s"
                break
            except ChatConnectionError as exc:
                reason = str(exc)
                break
            except asyncio.CancelledError:
                task = asyncio.current_task()
                if self.write_error is None or (task is not None and task.cancelling()):
                    raise
                break
            finally:
                self.read_task = None
            self.events.put_nowait(event)

        reason = self.write_error or reason
        self.write_error = None
        logger.warning("Connection lost: %s", reason)
        self.on_error(f"Disconnected: {reason}")
        self.set_state(SupervisorState.DISCONNECTED)

    async def wait_backoff(self) -> None:
        delay = self.backoff.next()
        self.next_delay = delay
        logger.info("Reconnecting in %gs", delay)
        await self.sleep(delay)
        self.set_state(SupervisorState.CONNECTING)

    async def close_session(self) -> None:
        try:
            await self.session.close()
        except ChatConnectionError as exc:
            logger.debug("Error closing session: %s", exc)

    async def consume(self) -> None:
        while True:
            event = await self.events.get()
            try:
                self.on_event(event)
            except Exception:
                logger.exception("Failed to handle %s", type(event).__name__)

    # -- outbound ----------------------------------------------------------

    async def send(self, op: Callable[[ChatSession], Awaitable[None]]) -> None:
        """Run one outbound session call under the write deadline.

        A failure drops the connection into the reconnect path and is
        re-raised as ProtocolActionError for the caller to show.
        """
        if self.state is not SupervisorState.CONNECTED:
            raise ProtocolActionError("not connected")
        try:
            await asyncio.wait_for(op(self.session), self.write_timeout)
        except TimeoutError as exc:
            self.connection_lost(f"write timed out after {self.write_timeout:g}s")
            raise ProtocolActionError("send timed out") from exc
        except ChatConnectionError as exc:
            self.connection_lost(str(exc))
            raise ProtocolActionError(f"send failed: {exc}") from exc

    def connection_lost(self, reason: str) -> None:
        if self.state is not SupervisorState.CONNECTED or self.write_error is not None:
            return
        self.write_error = reason
        if self.read_task is not None and not self.read_task.done():
            self.read_task.cancel()
