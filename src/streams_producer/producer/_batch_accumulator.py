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

import logging

from ..error import MessageTooLarge
from ._message_batch import MessageBatch

logger = logging.getLogger(__name__)


class BatchAccumulator:
    """Accumulates messages into size and time bounded batches per partition

    This class encapsulates all the logic for:
    - Keeping at most one open batch per (topic, partition)
    - Closing a batch once it reaches max_batch_bytes or max_batch_linger
    - Giving oversized messages a one-message batch of their own
    - Rejecting messages above the absolute message size cap
    - Handing closed batches to the ready callback (the in-flight tracker)
    """

    def __init__(self, partitions, max_batch_bytes, message_max_bytes, on_batch_ready,
                 timeout_manager=None, stats=None):
        """Initialize the batch accumulator

        Args:
            partitions: PartitionTable shared with the in-flight tracker
            max_batch_bytes: Size at which a batch is closed
            message_max_bytes: Absolute cap for a single message
            on_batch_ready: Callable receiving every closed batch
            timeout_manager: LingerTimeoutManager, None disables linger timers
            stats: Optional EngineStats instance
        """
        self._partitions = partitions
        self._max_batch_bytes = max_batch_bytes
        self._message_max_bytes = message_max_bytes
        self._on_batch_ready = on_batch_ready
        self._timeout_manager = timeout_manager
        self._stats = stats

    def append(self, message, future, callback=None):
        """Add a message to the open batch of its partition

        Never blocks. ``message.partition`` must already be resolved.

        Args:
            message: Message to append
            future: asyncio.Future resolved when the message is delivered
            callback: Optional user delivery callback

        Returns:
            MessageBatch: The batch the message was appended to

        Raises:
            MessageTooLarge: If the message exceeds message_max_bytes
        """
        size = message.size
        if size > self._message_max_bytes:
            raise MessageTooLarge(size, self._message_max_bytes,
                                  topic=message.topic, partition=message.partition)

        state = self._partitions.get(message.topic, message.partition)

        if size > self._max_batch_bytes:
            # Close the open batch first so sequence order matches send order
            if state.open_batch is not None:
                self._close(state)
            batch = self._open(state, linger=False)
            batch.append(message, future, callback)
            self._close(state)
            return batch

        batch = state.open_batch
        if batch is not None and batch.size_bytes + size > self._max_batch_bytes:
            self._close(state)
            batch = None

        if batch is None:
            batch = self._open(state)

        batch.append(message, future, callback)

        if batch.size_bytes >= self._max_batch_bytes:
            self._close(state)

        return batch

    def expire(self, batch):
        """Close ``batch`` if it is still the open batch of its partition"""
        state = self._partitions.get(batch.topic, batch.partition)
        if state.open_batch is batch:
            self._close(state)

    def close_all(self):
        """Close every open batch, returning the number of batches closed"""
        closed = 0
        for state in self._partitions:
            if state.open_batch is not None:
                self._close(state)
                closed += 1
        return closed

    def open_batch_count(self):
        return sum(1 for state in self._partitions if state.open_batch is not None)

    def _open(self, state, linger=True):
        batch = MessageBatch(state.topic, state.partition, state.take_sequence_number())
        state.open_batch = batch
        if linger and self._timeout_manager is not None:
            self._timeout_manager.arm(batch)
        return batch

    def _close(self, state):
        batch = state.open_batch
        state.open_batch = None
        batch.close()
        if self._timeout_manager is not None:
            self._timeout_manager.disarm(batch)
        if self._stats is not None:
            self._stats.record('batches_created')
        self._on_batch_ready(batch)
