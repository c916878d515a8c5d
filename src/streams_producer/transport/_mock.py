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
from collections import defaultdict
from typing import NamedTuple, Optional

from .._model import BatchAck
from ..error import DispatchError, ProducerError
from ._base import Transport

logger = logging.getLogger(__name__)


class DispatchRecord(NamedTuple):
    """One dispatch attempt observed by the MockTransport"""
    topic: str
    partition: int
    sequence_number: int
    attempt: int
    size: int
    size_bytes: int


class _FailureRule:

    def __init__(self, error, times, topic, partition):
        self.error = error
        self.remaining = times
        self.topic = topic
        self.partition = partition

    def matches(self, batch):
        if self.remaining is not None and self.remaining <= 0:
            return False
        if self.topic is not None and batch.topic != self.topic:
            return False
        if self.partition is not None and batch.partition != self.partition:
            return False
        return True

    def take(self):
        if self.remaining is not None:
            self.remaining -= 1
        error = self.error
        return error() if callable(error) else error


class MockTransport(Transport):
    """
    In-memory transport keeping one append-only log per partition.

    Useful for tests and for running the engine without a cluster. Failures
    and latency can be scripted:

    - :meth:`fail_next` makes the next N matching dispatches fail
    - ``latency`` (seconds, or a callable ``latency(batch) -> seconds``)
      delays every dispatch, which also allows completions to be reordered

    Args:
        latency (float or callable, optional): Delay applied to each dispatch.

        auto_create_topics (bool, optional): Accept dispatches to topics that
            were never created. Defaults to True.

        admin_error (Exception, optional): Raised by every create_topic() call.
    """

    def __init__(self, latency=0.0, auto_create_topics=True, admin_error=None):
        self._latency = latency
        self._auto_create_topics = auto_create_topics
        self._admin_error = admin_error
        self._rules = []

        self.topics = {}
        self.logs = defaultdict(list)
        self.dispatched = []
        self.create_topic_calls = []
        self.closed = False

        self._active = defaultdict(int)
        self.max_concurrent = defaultdict(int)

    async def create_topic(self, name, partitions, replication_factor):
        self.create_topic_calls.append((name, partitions, replication_factor))
        if self._admin_error is not None:
            raise self._admin_error
        if name in self.topics:
            logger.debug("Topic %s already exists", name)
            return
        self.topics[name] = (partitions, replication_factor)

    def fail_next(self, error=None, times=1, topic=None, partition=None):
        """Make the next ``times`` matching dispatches fail

        Args:
            error: Exception instance or factory (defaults to a DispatchError)
            times: Number of failures, None to fail forever
            topic: Only fail batches for this topic
            partition: Only fail batches for this partition
        """
        if error is None:
            error = lambda: DispatchError("Injected transient failure")  # noqa: E731
        self._rules.append(_FailureRule(error, times, topic, partition))

    def fail_always(self, error=None, topic=None, partition=None):
        self.fail_next(error, times=None, topic=topic, partition=partition)

    def clear_failures(self):
        self._rules = []

    async def dispatch(self, batch):
        tp = (batch.topic, batch.partition)
        self.dispatched.append(DispatchRecord(batch.topic, batch.partition, batch.sequence_number,
                                              batch.attempt_count, batch.size, batch.size_bytes))
        self._active[tp] += 1
        self.max_concurrent[tp] = max(self.max_concurrent[tp], self._active[tp])
        try:
            delay = self._latency(batch) if callable(self._latency) else self._latency
            if delay:
                await asyncio.sleep(delay)
            else:
                await asyncio.sleep(0)

            error = self._next_failure(batch)
            if error is not None:
                raise error

            return self._append(batch)
        finally:
            self._active[tp] -= 1

    async def close(self):
        self.closed = True

    def messages(self, topic, partition):
        """Messages written to a partition, in log order"""
        return list(self.logs[(topic, partition)])

    def _next_failure(self, batch) -> Optional[Exception]:
        for rule in self._rules:
            if rule.matches(batch):
                return rule.take()
        return None

    def _append(self, batch):
        if batch.topic not in self.topics:
            if not self._auto_create_topics:
                raise DispatchError("Unknown topic", topic=batch.topic, partition=batch.partition)
        else:
            partitions, _ = self.topics[batch.topic]
            if batch.partition >= partitions:
                raise ProducerError("Unknown partition", topic=batch.topic, partition=batch.partition)

        log = self.logs[(batch.topic, batch.partition)]
        base_offset = len(log)
        log.extend(batch.messages)
        return BatchAck(base_offset, time.time())
