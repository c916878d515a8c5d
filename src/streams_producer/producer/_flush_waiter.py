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
from typing import NamedTuple, Tuple

from .._model import Message


class FlushResult(NamedTuple):
    """Outcome of a flush

    ``pending`` lists the messages of the flush's wait set that had not
    reached a terminal state when the flush returned.
    """
    pending: Tuple[Message, ...] = ()
    cancelled: bool = False
    timed_out: bool = False

    @property
    def complete(self) -> bool:
        return not self.pending


class FlushWaiter:
    """Awaitable returned by ``ProducerEngine.flush()``

    The wait set is fixed when the waiter is created. Awaiting the waiter
    suspends the calling task until every message of the wait set is
    acknowledged or failed, the timeout elapses, or :meth:`cancel` is called.
    None of these alter message state.
    """

    def __init__(self, loop, pending, timeout=None):
        """
        Args:
            loop: Event loop the delivery futures belong to
            pending: dict of delivery future -> Message forming the wait set
            timeout: Optional maximum wait in seconds
        """
        self._loop = loop
        self._pending = pending
        self._timeout = timeout
        self._cancelled = loop.create_future()

    def cancel(self):
        """Make the pending (or next) await return immediately"""
        if not self._cancelled.done():
            self._cancelled.set_result(None)

    def cancelled(self):
        return self._cancelled.done()

    def __len__(self):
        return len(self._pending)

    def __await__(self):
        return self.wait().__await__()

    async def wait(self):
        remaining = [f for f in self._pending if not f.done()]
        if not remaining:
            return FlushResult()

        timed_out = False
        if not self._cancelled.done():
            all_done = self._loop.create_future()
            outstanding = [len(remaining)]

            def _one_done(_):
                outstanding[0] -= 1
                if outstanding[0] == 0 and not all_done.done():
                    all_done.set_result(None)

            for future in remaining:
                future.add_done_callback(_one_done)
            try:
                done, _ = await asyncio.wait({all_done, self._cancelled}, timeout=self._timeout,
                                             return_when=asyncio.FIRST_COMPLETED)
                timed_out = not done
            finally:
                for future in remaining:
                    future.remove_done_callback(_one_done)
                if not all_done.done():
                    all_done.cancel()

        pending = tuple(self._pending[f] for f in remaining if not f.done())
        return FlushResult(pending=pending,
                           cancelled=bool(pending) and self._cancelled.done(),
                           timed_out=bool(pending) and timed_out)
