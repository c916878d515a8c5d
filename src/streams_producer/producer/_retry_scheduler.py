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
import random

from ..error import ProducerError, TerminalFailure

logger = logging.getLogger(__name__)


class RetryScheduler:
    """Re-queues failed batches with bounded exponential backoff

    This class is responsible for:
    - Failing batches immediately on non-retriable errors
    - Failing batches with TerminalFailure once the retry ceiling is exceeded
    - Holding the other batches for ``min(base * 2**attempts, max)`` seconds,
      shortened by a random jitter factor, then re-admitting them with their
      original sequence number
    """

    def __init__(self, base_delay, max_delay, max_retries, jitter=0.2, loop=None, rng=None,
                 stats=None):
        """Initialize the retry scheduler

        Args:
            base_delay: Backoff before the first retry, before doubling
            max_delay: Upper bound of the backoff
            max_retries: Retries allowed after the initial attempt
            jitter: Fraction of the delay that may be randomly removed
            loop: Event loop to schedule retries on (defaults to the running loop)
            rng: random.Random instance used for jitter
            stats: Optional EngineStats instance
        """
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._max_retries = max_retries
        self._jitter = jitter
        self._loop = loop
        self._rng = rng if rng is not None else random.Random()
        self._stats = stats
        self._resubmit = None
        self._fail = None
        self._scheduled = {}

    def bind(self, resubmit, fail):
        """Wire the scheduler to the in-flight tracker

        Args:
            resubmit: Callable re-admitting a batch whose backoff elapsed
            fail: Callable ``fail(batch, error)`` recording a terminal failure
        """
        self._resubmit = resubmit
        self._fail = fail

    @property
    def max_retries(self):
        return self._max_retries

    def backoff(self, attempt_count):
        """Compute the delay before the next attempt

        Args:
            attempt_count: Attempts made so far

        Returns:
            float: Delay in seconds
        """
        delay = min(self._base_delay * (2 ** attempt_count), self._max_delay)
        if self._jitter:
            delay *= self._rng.uniform(1.0 - self._jitter, 1.0)
        return delay

    def schedule_retry(self, batch, attempt_count, error=None):
        """Decide the fate of a failed batch

        Args:
            batch: Failed MessageBatch, no longer in flight
            attempt_count: Attempts made so far, including the failed one
            error: The exception the attempt failed with
        """
        if error is not None and not self.is_retriable(error):
            self._fail(batch, error)
            return

        if attempt_count > self._max_retries:
            self._fail(batch, TerminalFailure(attempt_count, error,
                                              topic=batch.topic, partition=batch.partition))
            return

        delay = self.backoff(attempt_count)
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        logger.info("Retrying %s in %.3fs after: %s", batch.info, delay, error)
        if self._stats is not None:
            self._stats.record('batches_retried')
            self._stats.emit('batch_retry', topic=batch.topic, partition=batch.partition,
                             sequence_number=batch.sequence_number, attempt=attempt_count,
                             delay=delay, error=error)
        self._scheduled[batch] = self._loop.call_later(delay, self._fire, batch)

    @staticmethod
    def is_retriable(error):
        return isinstance(error, ProducerError) and error.retriable()

    def pending_count(self):
        return len(self._scheduled)

    def stop(self):
        """Cancel pending retries, failing their batches so no handle is left unresolved"""
        scheduled, self._scheduled = self._scheduled, {}
        for batch, handle in scheduled.items():
            handle.cancel()
            self._fail(batch, TerminalFailure(batch.attempt_count, batch.last_error,
                                              topic=batch.topic, partition=batch.partition))

    def _fire(self, batch):
        if self._scheduled.pop(batch, None) is None:
            return
        self._resubmit(batch)
