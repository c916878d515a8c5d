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
import time

from .._common import to_bytes
from .._model import Message
from .._partitioner import Partitioner
from ..config import EngineConfig
from ..error import EngineClosed
from ._batch_accumulator import BatchAccumulator
from ._batch_executor import ProducerBatchExecutor
from ._callback_manager import CallbackManager
from ._engine_stats import EngineStats
from ._flush_waiter import FlushWaiter
from ._in_flight_tracker import InFlightTracker
from ._linger_timeout_manager import LingerTimeoutManager
from ._partition_state import PartitionTable
from ._retry_scheduler import RetryScheduler

logger = logging.getLogger(__name__)


class ProducerEngine:
    """Partition aware, batching, retrying message producer

    Messages move through ``Pending -> Batched -> InFlight -> Acknowledged``,
    possibly via ``Retrying -> InFlight`` (bounded by ``max_retries``), or end
    in ``Failed``. Results are surfaced per partition in send order.

    Must be created and used from within a running event loop.

    Args:
        config (dict or EngineConfig): Engine configuration, see
            :class:`streams_producer.config.EngineConfig`.

        transport (Transport): Collaborator creating topics and shipping batches.

    Keyword Args:
        rng (random.Random, optional): Random source for retry jitter.
    """

    # ========================================================================
    # INITIALIZATION AND LIFECYCLE MANAGEMENT
    # ========================================================================

    def __init__(self, config, transport, rng=None):
        if not isinstance(config, EngineConfig):
            config = EngineConfig(config)
        self._config = config
        self._transport = transport

        # Store the event loop for async operations
        self._loop = asyncio.get_running_loop()

        self._is_closed = False
        self._started = False
        self._transport_closed = False

        self._stats = EngineStats(config['event_cb'])
        self._partitions = PartitionTable()
        self._partitioner = Partitioner()
        self._partitioner.set_partition_count(config['topic_name'], config['num_partitions'])

        # Delivery futures not yet resolved, mapped to their message
        self._pending = {}

        self._callback_manager = CallbackManager(self._loop)

        self._batch_executor = ProducerBatchExecutor(
            transport, config['delivery_timeout'], loop=self._loop)

        self._retry_scheduler = RetryScheduler(
            config['base_retry_delay'], config['max_retry_delay'], config['max_retries'],
            jitter=config['retry_jitter'], loop=self._loop, rng=rng, stats=self._stats)

        self._tracker = InFlightTracker(
            self._partitions, config['max_in_flight_per_partition'],
            dispatch=self._batch_executor.submit,
            complete=self._complete_batch,
            retry_handler=self._retry_scheduler.schedule_retry,
            stats=self._stats)

        self._batch_executor.bind(self._tracker.on_ack, self._tracker.on_failure)
        self._retry_scheduler.bind(self._tracker.admit, self._tracker.fail)

        self._linger_timeout_manager = LingerTimeoutManager(
            config['max_batch_linger'], self._expire_batch, loop=self._loop)

        self._batch_accumulator = BatchAccumulator(
            self._partitions, config['max_batch_bytes'], config['message_max_bytes'],
            on_batch_ready=self._tracker.admit,
            timeout_manager=self._linger_timeout_manager,
            stats=self._stats)

    async def start(self):
        """Create the configured topic through the transport

        Topic creation is idempotent; calling start() again is a no-op.

        Raises:
            AdminError: If the transport fails to create the topic.
        """
        if self._started:
            return
        if self._is_closed:
            raise EngineClosed()
        await self._transport.create_topic(self._config['topic_name'],
                                           self._config['num_partitions'],
                                           self._config['replication_factor'])
        self._started = True
        logger.info("Producer engine started for topic %s (%d partitions)",
                    self._config['topic_name'], self._config['num_partitions'])

    async def add_topic(self, name, partitions, replication_factor=1):
        """Create an additional topic and make it available to send()"""
        if self._is_closed:
            raise EngineClosed()
        await self._transport.create_topic(name, partitions, replication_factor)
        self._partitioner.set_partition_count(name, partitions)

    async def close(self):
        """Close the engine and release its resources

        1. **Refuse new sends**: send() raises EngineClosed from now on
        2. **Flush**: waits until every accepted message reached a terminal state
        3. **Stop timers**: linger and retry timers are cancelled
        4. **Close transport**: the transport's resources are released

        Calling close() again is harmless.
        """
        self._is_closed = True

        try:
            await self.flush()
        except Exception:
            logger.error("Error flushing messages during close", exc_info=True)
            raise
        finally:
            self._linger_timeout_manager.stop()
            self._retry_scheduler.stop()

        await self._batch_executor.drain()
        await self._callback_manager.drain()

        if not self._transport_closed:
            self._transport_closed = True
            await self._transport.close()
            logger.info("Producer engine closed")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ========================================================================
    # CORE PRODUCER OPERATIONS - Main public API
    # ========================================================================

    async def send(self, topic=None, value=None, key=None, partition=None, timestamp=None,
                   on_delivery=None):
        """Accept a message for delivery without waiting for it

        Args:
            topic: Target topic (defaults to the configured ``topic_name``)
            value: Message payload, bytes or str
            key: Message key, bytes or str; messages with the same key always
                go to the same partition
            partition: Explicit partition, overrides the key
            timestamp: Create time in seconds since the epoch (defaults to now)
            on_delivery: Optional ``callback(err, metadata)``, sync or async

        Returns:
            asyncio.Future: Resolves to RecordMetadata, or raises the delivery error

        Raises:
            EngineClosed, UnknownTopicError, InvalidPartition, MessageTooLarge,
            TypeError: Nothing was admitted.
        """
        if self._is_closed:
            raise EngineClosed()
        if topic is None:
            topic = self._config['topic_name']
        key = to_bytes(key, 'key')
        value = to_bytes(value, 'value')

        selected = self._partitioner.select(topic, key, partition)
        message = Message(topic, key, value, selected,
                          time.time() if timestamp is None else timestamp)

        result = self._loop.create_future()
        self._batch_accumulator.append(message, result, on_delivery)

        self._pending[result] = message
        result.add_done_callback(self._pending_done)
        self._stats.record('messages_sent')
        return result

    def flush(self, timeout=None):
        """Close open batches and wait for every currently pending message

        Messages sent after this call are not part of the wait set.

        Args:
            timeout: Maximum seconds to wait (None waits until done)

        Returns:
            FlushWaiter: Await it for a FlushResult; call its cancel() to stop
            waiting early.
        """
        self._batch_accumulator.close_all()
        return FlushWaiter(self._loop, dict(self._pending), timeout)

    def stats(self):
        """Counters describing the engine's activity so far

        Returns:
            dict: Counter snapshot plus current in-flight and queue sizes
        """
        snapshot = self._stats.snapshot()
        snapshot['pending_messages'] = len(self._pending)
        snapshot['open_batches'] = self._batch_accumulator.open_batch_count()
        snapshot['in_flight_batches'] = self._tracker.total_in_flight()
        snapshot['waiting_batches'] = self._tracker.waiting_count()
        snapshot['retrying_batches'] = self._retry_scheduler.pending_count()
        return snapshot

    @property
    def closed(self):
        return self._is_closed

    def __len__(self):
        return len(self._pending)

    # ========================================================================
    # INTERNAL CALLBACKS
    # ========================================================================

    def _expire_batch(self, batch):
        self._batch_accumulator.expire(batch)

    def _complete_batch(self, batch, ack, error):
        if error is None:
            self._stats.record('messages_acked', batch.size)
        else:
            self._stats.record('messages_failed', batch.size)
        self._callback_manager.complete_batch(batch, ack, error)

    def _pending_done(self, future):
        self._pending.pop(future, None)
