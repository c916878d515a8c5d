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

from typing import NamedTuple, Optional, Tuple


class Message(NamedTuple):
    """Immutable application message accepted by ``ProducerEngine.send()``

    Messages held by a batch always carry the partition chosen by the
    partitioner. ``timestamp`` is the create time in seconds since the epoch.
    """
    topic: str
    key: Optional[bytes] = None
    value: Optional[bytes] = None
    partition: Optional[int] = None
    timestamp: Optional[float] = None

    @property
    def size(self) -> int:
        """Payload size in bytes (key plus value)"""
        return len(self.key or b'') + len(self.value or b'')


class RecordMetadata(NamedTuple):
    """
    Successful delivery record, the result of a message's delivery future.

    :ivar str topic: Topic the message was written to.
    :ivar int partition: Partition the message was written to.
    :ivar int offset: Offset of the message within the partition.
    :ivar float timestamp: Broker (or transport) timestamp of the write.
    """
    topic: str
    partition: int
    offset: int
    timestamp: Optional[float] = None


class BatchAck(NamedTuple):
    """Acknowledgement returned by a transport for a whole batch

    Message ``i`` of the batch was written at ``offsets[i]`` when the
    transport reports individual offsets, else at ``base_offset + i``.
    """
    base_offset: int
    timestamp: Optional[float] = None
    offsets: Optional[Tuple[int, ...]] = None
