# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
import asyncio
import logging
import math
import time

logger = logging.getLogger(__name__)


class PeriodicScheduler(object):
    """Invoke a coroutine function on a fixed interval until stopped.

    Ticks are aligned to the start time, so the Nth invocation is due at start + N * interval
    (there is no invocation at the start time itself). Ticks that fall due while an invocation
    is still running are coalesced into a single late invocation rather than queued.

    Once a stop has been requested no further invocation begins, even if the sleep for the
    next tick has already finished. An invocation that has already begun runs to completion.
    """

    def __init__(self, interval, action, clock=time.monotonic, sleep=asyncio.sleep):
        if not math.isfinite(interval) or interval <= 0:
            raise ValueError("interval must be a finite number greater than zero")
        self.interval = interval
        self._action = action
        self._clock = clock
        self._sleep = sleep
        self._task = None
        self._stop_requested = False
        self._in_action = False
        self.tick_count = 0

    @property
    def running(self):
        return self._task is not None and not self._task.done()

    def start(self):
        """Start ticking on the running event loop"""
        if self.running:
            raise RuntimeError("Scheduler is already running")
        self._stop_requested = False
        self.tick_count = 0
        self._task = asyncio.ensure_future(self._run())

    def request_stop(self):
        """Prevent any further invocation. Does not wait for an in-flight invocation."""
        self._stop_requested = True

    async def stop(self):
        """Stop ticking and wait for the task to end.

        A wait for the next tick is cancelled. An invocation that is already running is allowed
        to finish, so an in-flight network call is never aborted.
        """
        self.request_stop()
        task = self._task
        if task is None:
            return
        if not task.done() and not self._in_action:
            task.cancel()
        try:
            await self.wait_stopped()
        finally:
            self._task = None

    async def wait_stopped(self):
        """Wait for the scheduler task to end without requesting a stop"""
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _run(self):
        start = self._clock()
        due = 0
        while not self._stop_requested:
            due += 1
            delay = start + due * self.interval - self._clock()
            if delay < 0:
                skipped = int(-delay // self.interval)
                if skipped:
                    logger.warning("Skipping {} overdue tick(s)".format(skipped))
                    due += skipped
            elif delay > 0:
                await self._sleep(delay)
            if self._stop_requested:
                break
            self.tick_count += 1
            self._in_action = True
            try:
                await self._action()
            except Exception:
                logger.error("Scheduled action raised an exception", exc_info=True)
            finally:
                self._in_action = False
        logger.debug("Scheduler stopped after {} tick(s)".format(self.tick_count))
