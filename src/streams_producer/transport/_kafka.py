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
import threading

import confluent_kafka
from confluent_kafka import KafkaError, KafkaException
from confluent_kafka.admin import AdminClient, NewTopic

from .. import _common
from .._model import BatchAck
from ..error import AdminError, AuthorizationError, DispatchError, MessageTooLarge, ProducerError
from ._base import Transport

logger = logging.getLogger(__name__)

_AUTHORIZATION_ERRORS = frozenset([
    KafkaError.TOPIC_AUTHORIZATION_FAILED,
    KafkaError.CLUSTER_AUTHORIZATION_FAILED,
])

# Admin properties shared with the producer configuration
_ADMIN_PROPERTIES = (
    'bootstrap.servers',
    'client.id',
    'security.protocol',
    'sasl.mechanism',
    'sasl.mechanisms',
    'sasl.username',
    'sasl.password',
    'ssl.ca.location',
    'ssl.certificate.location',
    'ssl.key.location',
    'ssl.key.password',
)


def map_kafka_error(err, batch):
    """Translate a librdkafka delivery error into the engine's taxonomy

    Args:
        err: KafkaError (or any other error description)
        batch: The MessageBatch the error applies to

    Returns:
        ProducerError: MessageTooLarge and AuthorizationError are never
        retried, fatal errors are plain ProducerErrors, everything else is a
        retriable DispatchError.
    """
    if not isinstance(err, KafkaError):
        return DispatchError(str(err), topic=batch.topic, partition=batch.partition)

    code = err.code()
    if code == KafkaError.MSG_SIZE_TOO_LARGE:
        return MessageTooLarge(max(m.size for m in batch.messages),
                               topic=batch.topic, partition=batch.partition)
    if code in _AUTHORIZATION_ERRORS:
        return AuthorizationError(err.str(), topic=batch.topic, partition=batch.partition)
    if err.fatal():
        return ProducerError(err.str(), topic=batch.topic, partition=batch.partition)
    return DispatchError(err.str(), topic=batch.topic, partition=batch.partition)


class _BatchDelivery:
    """Collects per-message delivery reports of one dispatch attempt

    Delivery callbacks arrive on librdkafka's polling thread; the outcome is
    handed to the event loop with call_soon_threadsafe once every message of
    the batch has been reported.
    """

    def __init__(self, loop, batch):
        self.future = loop.create_future()
        self._loop = loop
        self._batch = batch
        self._lock = threading.Lock()
        self._offsets = [None] * batch.size
        self._remaining = batch.size
        self._error = None
        self._timestamp = None

    def callback(self, index):
        def on_delivery(err, msg):
            self._on_delivery(index, err, msg)
        return on_delivery

    def _on_delivery(self, index, err, msg):
        with self._lock:
            if err is not None:
                if self._error is None:
                    self._error = err
            else:
                self._offsets[index] = msg.offset()
                if self._timestamp is None:
                    _, timestamp_ms = msg.timestamp()
                    if timestamp_ms is not None and timestamp_ms >= 0:
                        self._timestamp = timestamp_ms / 1000.0
            self._remaining -= 1
            finished = self._remaining == 0

        if finished:
            try:
                self._loop.call_soon_threadsafe(self._resolve)
            except RuntimeError:
                logger.warning("Event loop closed, dropping delivery report for %s", self._batch.info)

    def _resolve(self):
        # The attempt may already have timed out
        if self.future.done():
            return
        if self._error is not None:
            self.future.set_exception(map_kafka_error(self._error, self._batch))
        else:
            self.future.set_result(BatchAck(self._offsets[0], self._timestamp, tuple(self._offsets)))


class KafkaTransport(Transport):
    """
    Transport backed by confluent_kafka's Producer and AdminClient.

    Blocking librdkafka calls run on a ThreadPoolExecutor and delivery
    reports are served by a background polling task.

    Must be created from within a running event loop.

    Args:
        producer_conf (dict): librdkafka producer configuration.

    Keyword Args:
        admin_conf (dict, optional): AdminClient configuration, derived from
            ``producer_conf`` when omitted.

        max_workers (int, optional): Thread pool size when no executor is given.

        executor (Executor, optional): Thread pool to run blocking calls on.

        poll_interval (float, optional): Seconds each background poll may block.

        flush_timeout (float, optional): Seconds close() waits for librdkafka
            to drain its queue.
    """

    def __init__(self, producer_conf, admin_conf=None, max_workers=2, executor=None,
                 poll_interval=0.1, flush_timeout=10.0):
        # A caller supplied executor is left running on close
        self._owns_executor = executor is None
        if executor is not None:
            self.executor = executor
        else:
            self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)
        self._loop = asyncio.get_running_loop()

        if admin_conf is None:
            admin_conf = {k: v for k, v in producer_conf.items() if k in _ADMIN_PROPERTIES}

        self._producer = confluent_kafka.Producer(dict(producer_conf))
        self._admin = AdminClient(admin_conf)

        self._poll_interval = poll_interval
        self._flush_timeout = flush_timeout
        self._poll_task = None
        self._running = True

    async def create_topic(self, name, partitions, replication_factor):
        new_topic = NewTopic(name, num_partitions=partitions, replication_factor=replication_factor)
        futures = self._admin.create_topics([new_topic])
        try:
            await _common.async_call(self.executor, futures[name].result)
        except KafkaException as e:
            error = e.args[0]
            if isinstance(error, KafkaError) and error.code() == KafkaError.TOPIC_ALREADY_EXISTS:
                logger.info("Topic %s already exists", name)
                return
            raise AdminError(str(error), topic=name) from e
        logger.info("Topic %s created", name)

    async def dispatch(self, batch):
        delivery = _BatchDelivery(self._loop, batch)
        messages = []
        for i, message in enumerate(batch.messages):
            msg = {
                'value': message.value,
                'key': message.key,
                'callback': delivery.callback(i),
            }
            if message.timestamp is not None:
                msg['timestamp'] = int(message.timestamp * 1000)
            messages.append(msg)

        self._ensure_polling()
        await _common.async_call(self.executor, self._produce_batch, batch, messages)
        return await delivery.future

    async def close(self):
        """Stop polling, drain librdkafka's queue and shut down an owned thread pool"""
        self._running = False
        if self._poll_task is not None:
            await self._poll_task
            self._poll_task = None

        remaining = await _common.async_call(self.executor, self._producer.flush, self._flush_timeout)
        if remaining:
            logger.warning("%d message(s) still queued in librdkafka after close", remaining)

        if self._owns_executor:
            await asyncio.get_running_loop().run_in_executor(None, self.executor.shutdown, True)

    def _produce_batch(self, batch, messages):
        try:
            self._producer.produce_batch(batch.topic, messages, partition=batch.partition)
        except BufferError as e:
            raise DispatchError(str(e), topic=batch.topic, partition=batch.partition) from e
        except KafkaException as e:
            raise map_kafka_error(e.args[0], batch) from e

        # Messages rejected by produce_batch carry '_error' and get no delivery report
        for msg in messages:
            if '_error' in msg:
                msg['callback'](msg['_error'], None)

        return self._producer.poll(0)

    def _ensure_polling(self):
        if self._poll_task is None and self._running:
            self._poll_task = self._loop.create_task(self._poll_loop())

    async def _poll_loop(self):
        while self._running:
            await _common.async_call(self.executor, self._producer.poll, self._poll_interval)
