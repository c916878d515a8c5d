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
import concurrent.futures
import logging

from .._model import BatchAck
from ..error import DeliveryTimeout, ProducerError

logger = logging.getLogger(__name__)


class ProducerBatchExecutor:
    """Ships admitted batches through the transport

    This class is responsible for:
    - Running one background task per dispatch attempt
    - Applying the per-attempt delivery timeout
    - Reporting the outcome of each attempt back on the event loop thread
    - Tracking outstanding attempts so shutdown can wait for them
    """

    def __init__(self, transport, delivery_timeout=None, loop=None):
        """Initialize the batch executor

        Args:
            transport: Transport instance performing the actual dispatch
            delivery_timeout: Seconds allowed per attempt (None disables)
            loop: Event loop to run attempts on (defaults to the running loop)
        """
        self._transport = transport
        self._delivery_timeout = delivery_timeout
        self._loop = loop
        self._on_ack = None
        self._on_failure = None
        self._tasks = set()

    def bind(self, on_ack, on_failure):
        self._on_ack = on_ack
        self._on_failure = on_failure

    def submit(self, batch):
        """Start a dispatch attempt for ``batch`` without waiting for it"""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        task = self._loop.create_task(self.execute_batch(batch))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def execute_batch(self, batch):
        """Execute a single dispatch attempt

        Every exception raised by the transport is routed to the failure
        handler; the retry scheduler decides whether it is retriable. A
        malformed acknowledgement fails the attempt with a non-retriable
        ProducerError.
        """
        try:
            ack = await self._dispatch(batch)
            self._check_ack(batch, ack)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("Dispatch of %s failed: %r", batch.info, e)
            self._on_failure(batch, e)
        else:
            self._on_ack(batch, ack)

    async def _dispatch(self, batch):
        result = self._transport.dispatch(batch)
        if isinstance(result, concurrent.futures.Future):
            result = asyncio.wrap_future(result)

        if self._delivery_timeout is None:
            return await result

        try:
            return await asyncio.wait_for(result, self._delivery_timeout)
        except asyncio.TimeoutError:
            raise DeliveryTimeout(self._delivery_timeout,
                                  topic=batch.topic, partition=batch.partition) from None

    @property
    def active_count(self):
        return len(self._tasks)

    async def drain(self):
        """Wait until no dispatch attempt is running"""
        while self._tasks:
            await asyncio.wait(list(self._tasks))

    @staticmethod
    def _check_ack(batch, ack):
        if not isinstance(ack, BatchAck):
            raise ProducerError("Transport returned {} instead of a BatchAck".format(type(ack).__name__),
                                topic=batch.topic, partition=batch.partition)
        if ack.offsets is None:
            if isinstance(ack.base_offset, bool) or not isinstance(ack.base_offset, int):
                raise ProducerError("Acknowledgement without a base offset",
                                    topic=batch.topic, partition=batch.partition)
        elif len(ack.offsets) != batch.size:
            raise ProducerError("Acknowledgement carries {} offset(s) for {} message(s)".format(
                                len(ack.offsets), batch.size),
                                topic=batch.topic, partition=batch.partition)

    def _on_task_done(self, task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Error completing dispatch attempt: %s", exc, exc_info=exc)
