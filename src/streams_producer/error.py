#!/usr/bin/env python
# -*- coding: utf-8 -*-
#
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
#


class ProducerError(Exception):
    """
    Base class for all errors raised or delivered by the production engine.

    Errors are either raised synchronously from ``ProducerEngine.send()``
    (nothing is admitted in that case) or set on the delivery future of every
    message in the affected batch.

    Args:
        reason (str): Human readable description of the error.

    Keyword Args:
        topic (str, optional): Topic the error relates to.

        partition (int, optional): Partition the error relates to.

    """
    _retriable = False

    def __init__(self, reason=None, topic=None, partition=None):
        super(ProducerError, self).__init__(reason)
        self.reason = reason
        self.topic = topic
        self.partition = partition

    def retriable(self):
        """
        :returns: True if the operation that caused this error may be retried.
        :rtype: bool
        """
        return self._retriable

    def __str__(self):
        if self.topic is None:
            return str(self.reason)
        return "{} [{}/{}]".format(self.reason, self.topic, self.partition)


class InvalidPartition(ProducerError):
    """
    An explicit partition was requested that does not exist for the topic.
    """
    def __init__(self, topic, partition, partition_count):
        super(InvalidPartition, self).__init__(
            "Partition {} out of range, topic has {} partition(s)".format(partition, partition_count),
            topic=topic, partition=partition)
        self.partition_count = partition_count


class UnknownTopicError(ProducerError):
    """
    The topic has not been registered with the engine.
    """
    def __init__(self, topic):
        super(UnknownTopicError, self).__init__("Unknown topic {!r}".format(topic))
        self.topic = topic


class MessageTooLarge(ProducerError):
    """
    The message exceeds the absolute message size cap, either locally
    (``message_max_bytes``) or as reported by the transport.
    """
    def __init__(self, size, limit=None, topic=None, partition=None):
        if limit is None:
            reason = "Message of {} bytes rejected as too large".format(size)
        else:
            reason = "Message of {} bytes exceeds maximum of {} bytes".format(size, limit)
        super(MessageTooLarge, self).__init__(reason, topic=topic, partition=partition)
        self.size = size
        self.limit = limit


class EngineClosed(ProducerError):
    """
    The engine has been closed and no longer accepts messages.
    """
    def __init__(self):
        super(EngineClosed, self).__init__("Producer engine is closed")


class DispatchError(ProducerError):
    """
    Transient error while shipping a batch. Batches failing with this error
    are retried with backoff until ``max_retries`` is exceeded.
    """
    _retriable = True


class DeliveryTimeout(DispatchError):
    """
    A single dispatch attempt did not complete within ``delivery_timeout``.
    """
    def __init__(self, timeout, topic=None, partition=None):
        super(DeliveryTimeout, self).__init__(
            "Dispatch not acknowledged within {}s".format(timeout), topic=topic, partition=partition)
        self.timeout = timeout


class AuthorizationError(ProducerError):
    """
    The client is not authorized to produce to the topic. Never retried.
    """


class AdminError(ProducerError):
    """
    Topic administration (creation) failed.
    """


class TerminalFailure(ProducerError):
    """
    A batch failed on every attempt and the retry ceiling was reached.

    The last underlying error is available as ``__cause__`` and
    ``last_error``.
    """
    def __init__(self, attempts, last_error=None, topic=None, partition=None):
        super(TerminalFailure, self).__init__(
            "Delivery failed after {} attempt(s): {}".format(attempts, last_error),
            topic=topic, partition=partition)
        self.attempts = attempts
        self.last_error = last_error
        self.__cause__ = last_error
