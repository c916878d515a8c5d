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

from collections import deque
from typing import Dict

from .._types import TopicPartitionKey


class PartitionState:
    """Per (topic, partition) bookkeeping shared by the batcher and tracker

    Only ever touched from the event loop thread, which serializes every
    mutation for a partition.

    Attributes:
        next_sequence_number: Sequence number given to the next new batch
        open_batch: Batch currently accepting messages, or None
        in_flight: sequence_number -> dispatched batch awaiting a result
        waiting: Closed batches waiting for an in-flight slot, sorted by
            sequence number
        resolved: sequence_number -> (batch, ack, error) outcomes held until
            every lower sequence number has been surfaced
        next_surface_sequence: Lowest sequence number not yet surfaced
    """

    __slots__ = ('topic', 'partition', 'next_sequence_number', 'open_batch',
                 'in_flight', 'waiting', 'resolved', 'next_surface_sequence')

    def __init__(self, topic, partition):
        self.topic = topic
        self.partition = partition
        self.next_sequence_number = 0
        self.open_batch = None
        self.in_flight = {}
        self.waiting = deque()
        self.resolved = {}
        self.next_surface_sequence = 0

    @property
    def in_flight_count(self):
        return len(self.in_flight)

    def take_sequence_number(self):
        seq = self.next_sequence_number
        self.next_sequence_number += 1
        return seq

    def enqueue(self, batch):
        """Queue a batch for admission, keeping sequence order

        Fresh batches always carry the highest sequence number and go to the
        back; only retried batches are inserted further ahead.
        """
        waiting = self.waiting
        if not waiting or waiting[-1].sequence_number < batch.sequence_number:
            waiting.append(batch)
            return
        for i, queued in enumerate(waiting):
            if queued.sequence_number > batch.sequence_number:
                waiting.insert(i, batch)
                return


class PartitionTable:
    """Lazily created PartitionState objects keyed by (topic, partition)"""

    def __init__(self):
        self._states: Dict[TopicPartitionKey, PartitionState] = {}

    def get(self, topic, partition):
        key = (topic, partition)
        state = self._states.get(key)
        if state is None:
            state = PartitionState(topic, partition)
            self._states[key] = state
        return state

    def __iter__(self):
        return iter(list(self._states.values()))

    def __len__(self):
        return len(self._states)
