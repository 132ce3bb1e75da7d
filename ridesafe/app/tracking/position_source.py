"""
Device position sources.

A position source is the continuous-position API of a device: callers
register fix and error callbacks with `watch_position` and release the
registration with `clear_watch`.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Protocol, Union

from ridesafe.app.tracking.position import (
    PositionError, PositionErrorCode, PositionOptions, PositionSample
)

logger = logging.getLogger("ridesafe.tracking.source")

FixCallback = Callable[[PositionSample], None]
ErrorCallback = Callable[[PositionError], None]


class PositionSource(Protocol):
    supported: bool

    def watch_position(self, on_fix: FixCallback, on_error: ErrorCallback, options: PositionOptions) -> int:
        ...

    def clear_watch(self, watch_id: int) -> None:
        ...


@dataclass
class _Watch:
    queue: asyncio.Queue
    task: asyncio.Task


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _drain(queue: asyncio.Queue) -> None:
    # unblock pushers waiting on queue.join()
    while not queue.empty():
        queue.get_nowait()
        queue.task_done()


class DevicePositionSource:
    """
    Position source fed by fixes the client device pushes over the API.

    Every watch runs its own task. A watch that receives no fix within
    `options.timeout_ms` reports TIMEOUT and ends; a device-reported error
    ends it as well. Fixes stamped before the watch started (minus
    `maximum_age_ms`) are dropped so a stale fix is never reused.
    """

    def __init__(self, supported: bool = True):
        self.supported = supported
        self._watches: Dict[int, _Watch] = {}
        self._ids = itertools.count(1)

    @property
    def active_watches(self) -> int:
        return len(self._watches)

    def watch_position(self, on_fix: FixCallback, on_error: ErrorCallback, options: PositionOptions) -> int:
        watch_id = next(self._ids)
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.get_running_loop().create_task(
            self._run(watch_id, queue, on_fix, on_error, options),
            name=f"position-watch-{watch_id}",
        )
        self._watches[watch_id] = _Watch(queue=queue, task=task)
        return watch_id

    def clear_watch(self, watch_id: int) -> None:
        watch = self._watches.pop(watch_id, None)
        if watch is None:
            return
        if watch.task is not asyncio.current_task():
            watch.task.cancel()
        _drain(watch.queue)

    async def push(self, sample: PositionSample) -> int:
        """
        Deliver a fix to every open watch and wait until each has handled it.

        Returns:
            Number of watches reached
        """
        return await self._deliver(sample)

    async def report_error(self, code: PositionErrorCode, message: str) -> int:
        """Fail every open watch with a device-reported error."""
        return await self._deliver(PositionError(code=code, message=message))

    async def _deliver(self, item: Union[PositionSample, PositionError]) -> int:
        watches = list(self._watches.values())
        for watch in watches:
            watch.queue.put_nowait(item)
        await asyncio.gather(*(watch.queue.join() for watch in watches))
        return len(watches)

    async def _run(
        self,
        watch_id: int,
        queue: asyncio.Queue,
        on_fix: FixCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ) -> None:
        oldest_allowed = datetime.now(timezone.utc) - timedelta(milliseconds=options.maximum_age_ms)
        timeout = options.timeout_ms / 1000
        try:
            while True:
                try:
                    item = await asyncio.wait_for(queue.get(), timeout)
                except asyncio.TimeoutError:
                    on_error(PositionError(PositionErrorCode.TIMEOUT, "Timeout expired"))
                    return

                try:
                    if isinstance(item, PositionError):
                        on_error(item)
                        return

                    if _as_utc(item.timestamp) < oldest_allowed:
                        logger.debug("Dropping stale fix on watch %s", watch_id)
                        continue

                    on_fix(item)
                finally:
                    queue.task_done()
        finally:
            self._watches.pop(watch_id, None)
            _drain(queue)
