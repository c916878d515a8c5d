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

from ._model import BatchAck, Message, RecordMetadata
from ._partitioner import Partitioner
from .config import EngineConfig
from .error import (
    AdminError,
    AuthorizationError,
    DeliveryTimeout,
    DispatchError,
    EngineClosed,
    InvalidPartition,
    MessageTooLarge,
    ProducerError,
    TerminalFailure,
    UnknownTopicError,
)
from .producer import FlushResult, FlushWaiter, ProducerEngine

__all__ = [
    "AdminError",
    "AuthorizationError",
    "BatchAck",
    "DeliveryTimeout",
    "DispatchError",
    "EngineClosed",
    "EngineConfig",
    "FlushResult",
    "FlushWaiter",
    "InvalidPartition",
    "Message",
    "MessageTooLarge",
    "murmur2",
    "Partitioner",
    "ProducerEngine",
    "ProducerError",
    "RecordMetadata",
    "TerminalFailure",
    "transport",
    "UnknownTopicError",
]

__version__ = "1.0.0"
