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

from abc import ABC, abstractmethod

from .._types import DispatchResult


class Transport(ABC):
    """
    Collaborator that talks to the brokers on behalf of a ProducerEngine.

    Transports impose no ordering; the engine sequences batches itself.
    ``dispatch`` is called once per attempt and may be in progress for
    several batches of the same partition at once.
    """

    @abstractmethod
    async def create_topic(self, name, partitions, replication_factor):
        """
        Create a topic. Must succeed if the topic already exists.

        :param str name: Topic name.
        :param int partitions: Partition count.
        :param int replication_factor: Replication factor.
        :raises AdminError: if the topic could not be created.
        """
        pass

    @abstractmethod
    def dispatch(self, batch) -> DispatchResult:
        """
        Ship a batch.

        :param MessageBatch batch: Batch to write, all messages share its
            topic and partition.
        :returns: Awaitable (coroutine, asyncio or concurrent future)
            resolving to a BatchAck.
        :raises DispatchError: transient failure, the batch will be retried.
        :raises AuthorizationError: never retried.
        :raises MessageTooLarge: never retried.
        """
        pass

    async def close(self):
        """Release resources held by the transport"""
        pass
