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

import time


class MessageBatch:
    """Ordered group of messages destined for one topic and partition

    A batch is the unit of dispatch and acknowledgement. Messages and their
    delivery futures stay synchronized by index. Once ``closed`` is set no
    further messages are appended; only ``attempt_count`` changes afterwards.
    """

    __slots__ = ('topic', 'partition', 'sequence_number', 'created_at',
                 'messages', 'futures', 'callbacks', 'size_bytes',
                 'attempt_count', 'closed', 'last_error')

    def __init__(self, topic, partition, sequence_number, created_at=None):
        self.topic = topic
        self.partition = partition
        self.sequence_number = sequence_number
        self.created_at = time.monotonic() if created_at is None else created_at
        self.messages = []
        self.futures = []
        self.callbacks = []
        self.size_bytes = 0
        self.attempt_count = 0
        self.closed = False
        self.last_error = None

    def append(self, message, future, callback=None):
        self.messages.append(message)
        self.futures.append(future)
        self.callbacks.append(callback)
        self.size_bytes += message.size

    def close(self):
        self.closed = True

    @property
    def size(self):
        """Get the number of messages in this batch"""
        return len(self.messages)

    @property
    def info(self):
        """Get a string representation of batch info"""
        return (f"MessageBatch(topic='{self.topic}', partition={self.partition}, "
                f"seq={self.sequence_number}, size={len(self.messages)}, "
                f"bytes={self.size_bytes}, attempts={self.attempt_count})")

    def __repr__(self):
        return self.info
