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

"""
Common type definitions for the streams_producer package.
"""

from typing import Any, Awaitable, Callable, Optional, Tuple

# (topic, partition)
TopicPartitionKey = Tuple[str, int]

# (error, RecordMetadata) -> None, may also be an ``async def``
DeliveryCallback = Callable[[Optional[BaseException], Any], Any]

# (event_name, **attributes) -> None
EventCallback = Callable[..., None]

# Anything the transport hands back from dispatch()
DispatchResult = Awaitable[Any]
