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

from confluent_kafka import murmur2

from .error import InvalidPartition, UnknownTopicError


class Partitioner(object):
    """
    Selects the target partition of a message.

    The partition count of each topic must be registered with
    :meth:`set_partition_count` before messages are sent to it.

    Selection order:
        1. explicit partition, bounds checked
        2. murmur2 hash of the key, as the Java client's default partitioner
        3. round-robin per topic for keyless messages
    """

    def __init__(self):
        self._partition_counts = {}
        self._round_robin = {}

    def set_partition_count(self, topic, partition_count):
        if partition_count <= 0:
            raise ValueError("partition_count must be > 0")
        self._partition_counts[topic] = partition_count

    def partition_count(self, topic):
        try:
            return self._partition_counts[topic]
        except KeyError:
            raise UnknownTopicError(topic) from None

    def select(self, topic, key=None, explicit_partition=None):
        """
        :param str topic: Target topic.
        :param bytes key: Message key, may be None.
        :param int explicit_partition: Caller supplied partition, may be None.
        :raises UnknownTopicError: if the topic is not registered.
        :raises InvalidPartition: if explicit_partition is out of range.
        :returns: Partition index.
        :rtype: int
        """
        count = self.partition_count(topic)

        if explicit_partition is not None:
            if isinstance(explicit_partition, bool) or not isinstance(explicit_partition, int):
                raise TypeError("partition must be an int")
            if not 0 <= explicit_partition < count:
                raise InvalidPartition(topic, explicit_partition, count)
            return explicit_partition

        if key is not None:
            return murmur2(key, count)

        partition = self._round_robin.get(topic, 0)
        self._round_robin[topic] = (partition + 1) % count
        return partition
