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

from copy import copy


class Config(object):
    """
    Property bag with declared defaults.

    The source dict is copied, never mutated. Subclasses declare their
    properties and defaults in ``properties`` and check values in
    ``validate()``; any key left over is reported as unrecognized.

    Attributes:
        properties (dict): Property names mapped to their defaults

    Keyword Args:
        - data (dict): source configuration dict
        - prefix (str, optional): optional config property prefix.

    Raises:
        ValueError if there are any unrecognized properties or the provided
            properties violate one of the validation tests.

    """
    properties = {}

    def __init__(self, data=None, prefix=''):
        if len(prefix) > 1 and not prefix.endswith('.'):
            prefix += '.'

        self.prefix = prefix
        self.data = {}

        # shallow copy to keep referenced types in tact
        _data = {} if data is None else data.copy()

        self.update(_data)
        self.validate()

        # Raise ValueError if any properties remain
        if len(_data) > 0:
            raise ValueError("Unrecognized propert{} {}".format(
                "y" if len(_data) == 1 else "ies",
                [k for k in _data.keys()]))

    def __getitem__(self, key):
        return self.data[key]

    def __setitem__(self, key, value):
        if key in self.data:
            raise TypeError("{} Property {} already set".format(self, key))
        self.data[key] = value

    def __contains__(self, key):
        return key in self.data

    def get(self, key, default=None):
        return self.data.get(key, default)

    def update(self, data):
        """
        Updates only known values from source dict. If the key can't be found
        the default value defined in Config.properties will be used.

        This method intentionally mutates the source dict. If called directly
        be sure to copy the original first.

        Args:
            data (dict): Source dictionary

        Raises:
            TypeError for duplicate configuration properties.

        """
        for prop, value in self.properties.items():
            self[prop] = data.pop(self.prefix + prop, value)

    def validate(self):
        """
        Validate configuration values are correct.

        Raises:
             ValueError if Validation tests fail.

        """
        pass

    def to_dict(self):
        return copy(self.data)


class EngineConfig(Config):
    """
    Configures a ProducerEngine instance.

    Durations are expressed in seconds (floats), sizes in bytes.

    Keyword Args:
        topic_name (str): Topic created on start() and produced to by default.

        num_partitions (int): Partition count of ``topic_name``.

        replication_factor (int): Replication factor of ``topic_name``.

        max_batch_bytes (int): A batch is closed once it holds this many bytes.

        message_max_bytes (int): Absolute cap for a single message.

        max_batch_linger (float): Maximum age of an open batch.

        max_in_flight_per_partition (int): Dispatched, unacknowledged batches
            allowed per partition.

        base_retry_delay (float): Initial retry backoff.

        max_retry_delay (float): Upper bound for the retry backoff.

        retry_jitter (float): Fraction of the backoff randomly shaved off
            each delay (0 disables jitter).

        max_retries (int): Retries allowed after the initial attempt.

        delivery_timeout (float): Timeout applied to each dispatch attempt.

        event_cb (callable, optional): ``event_cb(event, **attrs)`` invoked for
            every batch level event.

    """
    properties = {
        'topic_name': None,
        'num_partitions': 1,
        'replication_factor': 1,
        'max_batch_bytes': 16384,
        'message_max_bytes': 1048576,
        'max_batch_linger': 0.005,
        'max_in_flight_per_partition': 5,
        'base_retry_delay': 0.1,
        'max_retry_delay': 1.0,
        'retry_jitter': 0.2,
        'max_retries': 5,
        'delivery_timeout': 30.0,
        'event_cb': None,
    }

    _positive_ints = ('num_partitions', 'replication_factor', 'max_batch_bytes',
                      'message_max_bytes', 'max_in_flight_per_partition')
    _non_negative_numbers = ('max_batch_linger', 'base_retry_delay', 'max_retry_delay')

    def validate(self):
        topic_name = self.data['topic_name']
        if not isinstance(topic_name, str) or not topic_name:
            raise ValueError("topic_name must be a non-empty string")

        for prop in self._positive_ints:
            value = self.data[prop]
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError("{} must be an instance of int".format(prop))
            if value <= 0:
                raise ValueError("{} must be > 0".format(prop))

        max_retries = self.data['max_retries']
        if isinstance(max_retries, bool) or not isinstance(max_retries, int):
            raise TypeError("max_retries must be an instance of int")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        for prop in self._non_negative_numbers:
            value = self.data[prop]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError("{} must be a number".format(prop))
            if value < 0:
                raise ValueError("{} must be >= 0".format(prop))

        if self.data['max_retry_delay'] < self.data['base_retry_delay']:
            raise ValueError("max_retry_delay must be >= base_retry_delay")

        jitter = self.data['retry_jitter']
        if isinstance(jitter, bool) or not isinstance(jitter, (int, float)) or not 0 <= jitter <= 1:
            raise ValueError("retry_jitter must be a number between 0 and 1")

        timeout = self.data['delivery_timeout']
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float))
                                    or timeout <= 0):
            raise ValueError("delivery_timeout must be None or a number > 0")

        event_cb = self.data['event_cb']
        if event_cb is not None and not callable(event_cb):
            raise TypeError("event_cb must be callable")
