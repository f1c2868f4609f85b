"""
Poll-based watcher for MatchFunded events.

Polling instead of a node-side filter trades a few seconds of latency for
resilience: installed filters vanish when a node restarts or load-balances,
while a block cursor held here does not.

Delivery is at-least-once. The cursor only advances once a whole block range
has been fetched and dispatched, so a failed poll re-scans the same range on
the next tick.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Union

from .abi import MATCH_FUNDED_EVENT
from .models import FundingEvent

if TYPE_CHECKING:
    from .transport import LedgerTransport

logger = logging.getLogger(__name__)

EventCallback = Callable[[FundingEvent], Union[None, Awaitable[Any]]]
ErrorCallback = Callable[[Exception], Union[None, Awaitable[Any]]]

MAX_BACKOFF_EXPONENT = 16


class EventWatcher:
    """
    Watches the wager contract for funding events.

    Usage:
        watcher = EventWatcher(
            transport=transport,
            on_event=orchestrator.handle_funding_event,
            poll_interval=5.0,
        )
        await watcher.start()
        # ... daemon runs ...
        await watcher.stop()
    """

    def __init__(
        self,
        transport: "LedgerTransport",
        on_event: EventCallback,
        on_error: Optional[ErrorCallback] = None,
        event_name: str = MATCH_FUNDED_EVENT,
        poll_interval: float = 5.0,
        start_block: Optional[int] = None,
        max_block_range: int = 2000,
        max_error_backoff: float = 60.0,
    ) -> None:
        """
        Initialize the watcher.

        Args:
            transport: Ledger transport to poll
            on_event: Called once per decoded log, in log order
            on_error: Called with each poll or dispatch error (logged if None)
            event_name: Contract event to watch
            poll_interval: Seconds between polls
            start_block: First block to scan; None starts at the current head
            max_block_range: Largest block span requested in one eth_getLogs
            max_error_backoff: Cap on the delay after consecutive poll errors
        """
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        if max_block_range < 1:
            raise ValueError(f"max_block_range must be >= 1, got {max_block_range}")

        self._transport = transport
        self._on_event = on_event
        self._on_error = on_error
        self._event_name = event_name
        self._poll_interval = poll_interval
        self._max_block_range = max_block_range
        self._max_error_backoff = max_error_backoff

        # Last block whose logs have been fully dispatched
        self._cursor: Optional[int] = start_block - 1 if start_block is not None else None

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

        self.last_poll_at: Optional[datetime] = None
        self.consecutive_errors = 0
        self.events_dispatched = 0

    @property
    def is_running(self) -> bool:
        """Whether the poll loop is running."""
        return self._running

    @property
    def cursor(self) -> Optional[int]:
        """Last fully processed block, or None before the first poll."""
        return self._cursor

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    async def start(self) -> None:
        """Start the poll loop in the background."""
        if self._running:
            logger.warning("EventWatcher already running")
            return

        self._running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self._poll_loop(), name="event_watcher")
        logger.info(
            f"Watching {self._event_name} on {self._transport.contract_address} "
            f"(interval={self._poll_interval}s)"
        )

    async def stop(self) -> None:
        """Stop the poll loop and wait for it to exit."""
        if not self._running:
            return

        self._running = False
        self._stop_event.set()

        if self._task and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Event watcher stopped")

    def next_delay(self) -> float:
        """Delay before the next poll, backing off after consecutive errors."""
        if self.consecutive_errors == 0:
            return self._poll_interval
        # Exponent capped so long outages cannot overflow the float conversion
        exponent = min(self.consecutive_errors, MAX_BACKOFF_EXPONENT)
        delay = self._poll_interval * (2 ** exponent)
        return min(delay, max(self._max_error_backoff, self._poll_interval))

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
                self.consecutive_errors = 0
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.consecutive_errors += 1
                logger.error(
                    f"Watcher poll failed ({self.consecutive_errors} in a row): {e}"
                )
                await self._report_error(e)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.next_delay())
                break  # Stop requested
            except asyncio.TimeoutError:
                pass
            except asyncio.CancelledError:
                break

    async def poll_once(self) -> int:
        """
        Fetch and dispatch logs for all blocks since the cursor.

        Returns:
            Number of events dispatched

        Raises:
            TransportError: If the head or logs could not be fetched. The
                cursor stays at the last fully dispatched chunk.
        """
        head = await self._transport.get_block_number()

        if self._cursor is None:
            # Anchor at the current head; only later blocks are scanned
            self._cursor = head
            self.last_poll_at = datetime.now(timezone.utc)
            logger.info(f"Watcher anchored at block {head}")
            return 0

        dispatched = 0
        while self._cursor < head:
            from_block = self._cursor + 1
            to_block = min(head, from_block + self._max_block_range - 1)

            logs = await self._transport.get_logs(self._event_name, from_block, to_block)
            for log in logs:
                if await self._dispatch(log):
                    dispatched += 1

            self._cursor = to_block
            if logs:
                logger.debug(
                    f"Scanned blocks {from_block}-{to_block}: {len(logs)} {self._event_name} log(s)"
                )

        # Only a poll that reached the head counts as successful
        self.last_poll_at = datetime.now(timezone.utc)
        return dispatched

    async def _dispatch(self, log: dict[str, Any]) -> bool:
        """Hand one log to the event callback. Errors are reported, not raised."""
        try:
            event = FundingEvent.from_log(log)
            result = self._on_event(event)
            if inspect.isawaitable(result):
                await result
            self.events_dispatched += 1
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to dispatch {self._event_name} log: {e}")
            await self._report_error(e)
            return False

    async def _report_error(self, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            result = self._on_error(error)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Watcher error callback failed: {e}")
