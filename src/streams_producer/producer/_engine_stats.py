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

import logging
from typing import Optional

from .._types import EventCallback

logger = logging.getLogger(__name__)


class EngineStats:
    """Counters and batch level events exposed to monitoring collaborators

    Nothing here is called per message except the ``messages_*`` counters,
    which are plain integer increments.
    """

    COUNTERS = (
        'messages_sent',
        'messages_acked',
        'messages_failed',
        'batches_created',
        'batches_dispatched',
        'batches_acked',
        'batches_retried',
        'batches_failed',
    )

    def __init__(self, event_cb: Optional[EventCallback] = None):
        self._event_cb = event_cb
        self._counters = dict.fromkeys(self.COUNTERS, 0)

    def record(self, counter, n=1):
        self._counters[counter] += n

    def emit(self, event, **attrs):
        """Invoke the user's event callback, never letting it break the engine"""
        if self._event_cb is None:
            return
        try:
            self._event_cb(event, **attrs)
        except Exception:
            logger.error("Error in event_cb for event %s", event, exc_info=True)

    def snapshot(self):
        """
        Returns:
            dict: Copy of all counters
        """
        return dict(self._counters)

    def __getitem__(self, counter):
        return self._counters[counter]
