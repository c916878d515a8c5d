#!/usr/bin/env python
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
# Creates a topic and produces a number of sequential messages to it:
# key "<i>", value "Message <i>".
#
# Without --bootstrap-servers the in-memory MockTransport is used.
#

import argparse
import asyncio
import logging

from streams_producer import ProducerEngine
from streams_producer.transport import KafkaTransport, MockTransport

logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger('producer_demo')
logger.setLevel(logging.INFO)


async def run(args):
    if args.bootstrap_servers:
        transport = KafkaTransport({'bootstrap.servers': args.bootstrap_servers})
    else:
        transport = MockTransport()

    conf = {
        'topic_name': args.topic,
        'num_partitions': args.num_partitions,
        'replication_factor': args.replication_factor,
        'max_batch_bytes': args.batch_bytes,
        'max_batch_linger': args.linger_ms / 1000.0,
    }

    async with ProducerEngine(conf, transport) as engine:
        logger.info("Sending: %d", args.number_of_events)
        futures = [await engine.send(key=str(i), value="Message {}".format(i))
                   for i in range(args.number_of_events)]

        result = await engine.flush(timeout=args.flush_timeout)
        if not result.complete:
            logger.warning("%d message(s) still pending after %ss", len(result.pending), args.flush_timeout)

        failed = sum(1 for f in futures if f.done() and f.exception() is not None)
        logger.info("Delivered %d, failed %d", len(futures) - failed - len(result.pending), failed)
        logger.info("Stats: %s", engine.stats())


def main():
    parser = argparse.ArgumentParser(description="Sequential message producer demo")
    parser.add_argument('-b', dest="bootstrap_servers", default=None,
                        help="Bootstrap broker(s) (host[:port]), in-memory transport if omitted")
    parser.add_argument('-t', dest="topic", default="strings", help="Topic name")
    parser.add_argument('-n', dest="number_of_events", type=int, default=100000,
                        help="Number of messages to produce")
    parser.add_argument('-p', dest="num_partitions", type=int, default=5, help="Topic partition count")
    parser.add_argument('-r', dest="replication_factor", type=int, default=1,
                        help="Topic replication factor")
    parser.add_argument('--batch-bytes', dest="batch_bytes", type=int, default=16384,
                        help="Maximum batch size in bytes")
    parser.add_argument('--linger-ms', dest="linger_ms", type=float, default=5.0,
                        help="Maximum batch linger in milliseconds")
    parser.add_argument('--flush-timeout', dest="flush_timeout", type=float, default=60.0,
                        help="Seconds to wait for outstanding deliveries")

    asyncio.run(run(parser.parse_args()))


if __name__ == '__main__':
    main()
