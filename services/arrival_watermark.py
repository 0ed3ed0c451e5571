"""
Arrival watermark: "new orders since you last looked" without a push channel.

The staff client keeps the pending-order count it last acknowledged (the
watermark), polls the server's pending count on a fixed interval and shows
a badge for the difference. The watermark is client-local view state; the
server never sees it.

Badge rules:
  * cold start stores the current count and never alarms;
  * the badge only grows until acknowledged, so a falling pending count
    (orders getting assigned) cannot shrink or clear it;
  * acknowledging re-reads the count at that moment and clears the badge.
"""
import asyncio
import json
import logging
import os
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

FetchPendingCount = Callable[[], Awaitable[int]]
Notifier = Callable[[str, int], None]


class ArrivalWatermark(BaseModel):
    last_seen_pending_count: int = Field(ge=0)

    class Config:
        frozen = True


def compute_badge(current: int, watermark: ArrivalWatermark) -> int:
    """Orders that became pending since the watermark, never negative."""
    return max(0, current - watermark.last_seen_pending_count)


def acknowledge(current: int) -> ArrivalWatermark:
    return ArrivalWatermark(last_seen_pending_count=max(0, current))


def new_orders_message(count: int) -> str:
    return f"{count} new order{'s' if count != 1 else ''} received"


class InMemoryWatermarkStore:
    def __init__(self, watermark: Optional[ArrivalWatermark] = None):
        self._watermark = watermark

    def load(self) -> Optional[ArrivalWatermark]:
        return self._watermark

    def save(self, watermark: ArrivalWatermark) -> None:
        self._watermark = watermark

    def clear(self) -> None:
        self._watermark = None


class JsonFileWatermarkStore:
    """Watermark persisted in a small JSON file, the client's local storage."""

    def __init__(self, path: str):
        self.path = os.path.expanduser(path)

    def load(self) -> Optional[ArrivalWatermark]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return ArrivalWatermark(**data)
        except FileNotFoundError:
            return None
        except (ValueError, TypeError) as e:
            # Corrupt local state behaves like cleared storage
            logger.warning(f"Ignoring unreadable watermark file {self.path}: {e}")
            return None

    def save(self, watermark: ArrivalWatermark) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(watermark.model_dump(), f)
        os.replace(tmp_path, self.path)

    def clear(self) -> None:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass


class ArrivalWatermarkTracker:
    """Polls the pending count and maintains the new-orders badge.

    Everything time- or IO-related is injected: ``fetch_pending_count`` for
    the server round trip, ``sleep`` for the interval, ``notifier`` for the
    transient message and ``play_sound`` for the audible alert.
    """

    def __init__(
        self,
        fetch_pending_count: FetchPendingCount,
        store=None,
        interval: float = 30.0,
        notifier: Optional[Notifier] = None,
        play_sound: Optional[Callable[[], None]] = None,
        sound_enabled: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.fetch_pending_count = fetch_pending_count
        self.store = store if store is not None else InMemoryWatermarkStore()
        self.interval = interval
        self.notifier = notifier
        self.play_sound = play_sound
        self.sound_enabled = sound_enabled
        self.sleep = sleep

        self.badge = 0
        self.last_count: Optional[int] = None
        self.last_error: Optional[str] = None
        self.skipped_polls = 0
        self._in_flight = False
        self._stopped = asyncio.Event()
        self._tick_tasks = set()

    @property
    def watermark(self) -> Optional[ArrivalWatermark]:
        return self.store.load()

    @property
    def polling(self) -> bool:
        return self._in_flight

    async def initialize(self) -> ArrivalWatermark:
        """Seed the watermark on first use. Never notifies."""
        existing = self.store.load()
        if existing is not None:
            return existing

        current = await self.fetch_pending_count()
        watermark = acknowledge(current)
        self.store.save(watermark)
        self.last_count = current
        self.badge = 0
        logger.info(f"Watermark initialized with {current} pending orders")
        return watermark

    async def poll(self) -> Optional[int]:
        """Fetch the pending count once and update the badge.

        Returns the badge after the poll, or None when the tick was skipped
        because a previous poll is still in flight or the fetch failed.
        """
        if self._in_flight:
            self.skipped_polls += 1
            logger.debug("Pending-count poll still in flight; skipping tick")
            return None

        self._in_flight = True
        try:
            try:
                current = await self.fetch_pending_count()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.last_error = str(e) or e.__class__.__name__
                logger.warning(f"Pending-count poll failed: {self.last_error}")
                return None

            self.last_error = None
            self.last_count = current

            watermark = self.store.load()
            if watermark is None:
                # Storage was cleared under us; treat this poll as a cold start
                self.store.save(acknowledge(current))
                self.badge = 0
                return self.badge

            delta = compute_badge(current, watermark)
            if delta > self.badge:
                self.badge = delta
                self._announce(delta)
            return self.badge
        finally:
            self._in_flight = False

    async def check_now(self) -> Optional[int]:
        return await self.poll()

    async def acknowledge(self) -> ArrivalWatermark:
        """Staff viewed the orders list: move the watermark to the live count."""
        current = await self.fetch_pending_count()
        watermark = acknowledge(current)
        self.store.save(watermark)
        self.last_count = current
        self.badge = 0
        logger.info(f"Badge cleared; watermark moved to {current}")
        return watermark

    def toggle_sound(self) -> bool:
        self.sound_enabled = not self.sound_enabled
        return self.sound_enabled

    def _announce(self, count: int) -> None:
        message = new_orders_message(count)
        logger.info(message)
        if self.notifier is not None:
            self.notifier(message, count)
        if self.sound_enabled and self.play_sound is not None:
            try:
                self.play_sound()
            except Exception as e:
                logger.warning(f"Could not play notification sound: {e}")

    async def run(self, max_ticks: Optional[int] = None) -> None:
        """Poll on a fixed interval until ``stop()`` is called.

        Each tick starts a poll without waiting for it, so a slow round trip
        makes the next tick skip instead of queueing behind it.
        """
        await self.initialize()
        ticks = 0
        while not self._stopped.is_set():
            task = asyncio.ensure_future(self.poll())
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)

            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            await self._wait_interval()

        if self._tick_tasks:
            await asyncio.gather(*list(self._tick_tasks), return_exceptions=True)

    async def _wait_interval(self) -> None:
        """Sleep one interval, returning early if ``stop()`` is called."""
        sleeper = asyncio.ensure_future(self.sleep(self.interval))
        stopper = asyncio.ensure_future(self._stopped.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, stopper):
                if not task.done():
                    task.cancel()
            await asyncio.gather(sleeper, stopper, return_exceptions=True)

    def stop(self) -> None:
        self._stopped.set()
