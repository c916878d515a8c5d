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

"""
Producer engine

Core Components:
- ProducerEngine: Orchestrates sends, batching, dispatch, retries and flushes
- BatchAccumulator: Size and linger bounded batching per partition
- InFlightTracker: In-flight cap and ordered result surfacing per partition
- RetryScheduler: Bounded exponential backoff with jitter
- ProducerBatchExecutor: Dispatch attempts through the transport
- LingerTimeoutManager: Linger timers of open batches
- CallbackManager: Delivery futures and user callbacks

Data Structures:
- MessageBatch: Unit of dispatch and acknowledgement
- PartitionState: Per partition sequence numbers, queues and held outcomes
"""

from ._flush_waiter import FlushResult, FlushWaiter
from ._message_batch import MessageBatch
from ._producer_engine import ProducerEngine

__all__ = ['ProducerEngine', 'FlushResult', 'FlushWaiter', 'MessageBatch']
