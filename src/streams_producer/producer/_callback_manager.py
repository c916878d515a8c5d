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
import inspect
import logging

from .._model import RecordMetadata
from .._types import DeliveryCallback
from ..error import ProducerError

logger = logging.getLogger(__name__)


class CallbackManager:
    """Resolves delivery futures and runs user delivery callbacks

    This class is responsible for:
    - Resolving each message's future exactly once with RecordMetadata or an error
    - Handling both synchronous and asynchronous user callbacks
    - Scheduling user callbacks on the event loop so they never re-enter the
      engine while a batch is being completed
    - Keeping user callback errors away from the engine
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        """Initialize the callback manager

        Args:
            loop: The asyncio event loop to use for scheduling callbacks
        """
        self._loop = loop
        self._tasks = set()

    def complete_batch(self, batch, ack=None, error=None):
        """Resolve every message of a batch

        Args:
            batch: MessageBatch that reached a terminal state
            ack: BatchAck on success
            error: Exception on failure (takes precedence over ack)

        Returns:
            int: Number of futures resolved by this call
        """
        resolved = 0
        offsets = getattr(ack, 'offsets', None) if error is None else None

        for i, future in enumerate(batch.futures):
            err, metadata = error, None
            if error is None:
                try:
                    offset = offsets[i] if offsets else ack.base_offset + i
                    metadata = RecordMetadata(batch.topic, batch.partition, offset, ack.timestamp)
                except Exception as e:
                    logger.error("Invalid acknowledgement for %s: %r", batch.info, e)
                    err = ProducerError("Invalid acknowledgement: {!r}".format(e),
                                        topic=batch.topic, partition=batch.partition)

            # A caller may have cancelled its future; the callback still runs
            if not future.done():
                if err is None:
                    future.set_result(metadata)
                else:
                    future.set_exception(err)
                resolved += 1

            callback = batch.callbacks[i]
            if callback is not None:
                self.handle_user_callback(callback, err, metadata)

        return resolved

    def handle_user_callback(self, user_callback: DeliveryCallback, err, metadata):
        """Schedule a user callback, supporting both sync and async callbacks

        Args:
            user_callback: User-provided callback function (sync or async)
            err: Error object (None if successful)
            metadata: RecordMetadata (None on failure)
        """
        if inspect.iscoroutinefunction(user_callback):
            task = self._loop.create_task(user_callback(err, metadata))
            self._tasks.add(task)
            task.add_done_callback(self._on_async_callback_done)
        else:
            self._loop.call_soon(self._run_sync_callback, user_callback, err, metadata)

    async def drain(self):
        """Wait for outstanding async user callbacks"""
        if self._tasks:
            await asyncio.wait(list(self._tasks))
        # Let call_soon scheduled sync callbacks run
        await asyncio.sleep(0)

    @staticmethod
    def _run_sync_callback(user_callback, err, metadata):
        try:
            user_callback(err, metadata)
        except Exception as e:
            logger.error(f"Error in sync user callback: {e}", exc_info=True)

    def _on_async_callback_done(self, task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Error in async user callback: {exc}", exc_info=exc)
