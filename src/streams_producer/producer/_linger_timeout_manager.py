# Copyright 2025 Confluent Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import asyncio
import logging

logger = logging.getLogger(__name__)


class LingerTimeoutManager:
    """Closes open batches once they reach the configured linger age

    This class is responsible for:
    - Arming one timer per open batch when the batch is opened
    - Disarming the timer when the batch closes for another reason (size, flush)
    - Handing expired batches back to the accumulator
    - Cancelling every outstanding timer on shutdown
    """

    def __init__(self, linger, on_expire, loop=None):
        """Initialize the linger timeout manager

        Args:
            linger: Maximum age in seconds of an open batch
            on_expire: Callable invoked with the batch when its timer fires
            loop: Event loop to schedule timers on (defaults to the running loop)
        """
        self._linger = linger
        self._on_expire = on_expire
        self._loop = loop
        self._timers = {}
        self._running = True

    def arm(self, batch):
        """Start the linger timer for a freshly opened batch"""
        if not self._running:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._timers[batch] = self._loop.call_later(self._linger, self._expire, batch)

    def disarm(self, batch):
        """Cancel the linger timer of a batch that closed early"""
        handle = self._timers.pop(batch, None)
        if handle is not None:
            handle.cancel()

    def stop(self):
        """Cancel all outstanding timers"""
        self._running = False
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    @property
    def armed_count(self):
        return len(self._timers)

    def _expire(self, batch):
        if self._timers.pop(batch, None) is None:
            return
        try:
            self._on_expire(batch)
        except Exception:
            logger.error("Error closing lingering batch %s", batch.info, exc_info=True)
            raise
