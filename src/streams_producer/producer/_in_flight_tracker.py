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

logger = logging.getLogger(__name__)


class InFlightTracker:
    """Tracks dispatched batches and surfaces their outcomes in order

    This class is responsible for:
    - Admitting closed batches while the partition has a free in-flight slot
    - Queueing the others per partition, ordered by sequence number
    - Releasing slots on acknowledgement or failure and dispatching queued batches
    - Holding outcomes until every lower sequence number of the partition has
      reached a terminal state, so callers observe results in send order

    ``on_ack``, ``on_failure`` and ``fail`` are the only mutators of the
    in-flight sets. They must be called on the event loop thread; transports
    that complete from other threads hand results over with
    ``loop.call_soon_threadsafe`` before they reach this class.
    """

    def __init__(self, partitions, max_in_flight, dispatch, complete, retry_handler=None, stats=None):
        """Initialize the in-flight tracker

        Args:
            partitions: PartitionTable shared with the batch accumulator
            max_in_flight: Maximum dispatched batches per partition
            dispatch: Callable shipping an admitted batch (non-blocking)
            complete: Callable ``complete(batch, ack, error)`` resolving a batch
            retry_handler: Callable ``retry_handler(batch, attempt_count, error)``
                deciding what happens to a failed batch. Without one every
                failure is terminal.
            stats: Optional EngineStats instance
        """
        self._partitions = partitions
        self._max_in_flight = max_in_flight
        self._dispatch = dispatch
        self._complete = complete
        self._retry_handler = retry_handler
        self._stats = stats

    def set_retry_handler(self, retry_handler):
        self._retry_handler = retry_handler

    def admit(self, batch):
        """Dispatch a closed batch now, or queue it until a slot frees

        Retried batches keep their original sequence number and are queued
        ahead of any higher numbered batch.

        Args:
            batch: Closed MessageBatch

        Returns:
            bool: True if the batch was dispatched immediately
        """
        state = self._partitions.get(batch.topic, batch.partition)
        if state.in_flight_count < self._max_in_flight and (
                not state.waiting or state.waiting[0].sequence_number > batch.sequence_number):
            self._send(state, batch)
            return True

        state.enqueue(batch)
        return False

    def on_ack(self, batch, ack):
        """Release the batch's slot and record its successful outcome"""
        state = self._release(batch)
        if state is None:
            return
        if self._stats is not None:
            self._stats.record('batches_acked')
            self._stats.emit('batch_acked', topic=batch.topic, partition=batch.partition,
                             sequence_number=batch.sequence_number, attempts=batch.attempt_count)
        state.resolved[batch.sequence_number] = (batch, ack, None)
        self._pump(state)
        self._surface(state)

    def on_failure(self, batch, error):
        """Release the batch's slot and hand it to the retry handler"""
        state = self._release(batch)
        if state is None:
            return
        batch.last_error = error
        self._pump(state)
        if self._retry_handler is None:
            self.fail(batch, error)
        else:
            self._retry_handler(batch, batch.attempt_count, error)

    def fail(self, batch, error):
        """Record a terminal failure for a batch that is not in flight"""
        state = self._partitions.get(batch.topic, batch.partition)
        if self._stats is not None:
            self._stats.record('batches_failed')
            self._stats.emit('batch_failed', topic=batch.topic, partition=batch.partition,
                             sequence_number=batch.sequence_number, attempts=batch.attempt_count,
                             error=error)
        logger.warning("Batch %s failed: %s", batch.info, error)
        state.resolved[batch.sequence_number] = (batch, None, error)
        self._surface(state)

    def in_flight_count(self, topic, partition):
        return self._partitions.get(topic, partition).in_flight_count

    def waiting_count(self, topic=None, partition=None):
        if topic is not None:
            return len(self._partitions.get(topic, partition).waiting)
        return sum(len(state.waiting) for state in self._partitions)

    def total_in_flight(self):
        return sum(state.in_flight_count for state in self._partitions)

    def _send(self, state, batch):
        batch.attempt_count += 1
        state.in_flight[batch.sequence_number] = batch
        if self._stats is not None:
            self._stats.record('batches_dispatched')
            self._stats.emit('batch_dispatched', topic=batch.topic, partition=batch.partition,
                             sequence_number=batch.sequence_number, attempt=batch.attempt_count,
                             size=batch.size, size_bytes=batch.size_bytes)
        logger.debug("Dispatching %s", batch.info)
        self._dispatch(batch)

    def _release(self, batch):
        state = self._partitions.get(batch.topic, batch.partition)
        if state.in_flight.get(batch.sequence_number) is not batch:
            logger.warning("Ignoring result for batch %s which is not in flight", batch.info)
            return None
        del state.in_flight[batch.sequence_number]
        return state

    def _pump(self, state):
        while state.waiting and state.in_flight_count < self._max_in_flight:
            self._send(state, state.waiting.popleft())

    def _surface(self, state):
        while state.next_surface_sequence in state.resolved:
            batch, ack, error = state.resolved.pop(state.next_surface_sequence)
            state.next_surface_sequence += 1
            self._complete(batch, ack, error)
