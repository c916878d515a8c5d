#!/usr/bin/env python
# -*- coding: utf-8 -*-
import asyncio
from unittest.mock import Mock

import pytest

from streams_producer import (
    AdminError,
    AuthorizationError,
    BatchAck,
    EngineClosed,
    FlushResult,
    InvalidPartition,
    MessageTooLarge,
    ProducerEngine,
    ProducerError,
    RecordMetadata,
    TerminalFailure,
    UnknownTopicError,
    murmur2,
)
from streams_producer.transport import MockTransport


class _ShortAckTransport(MockTransport):
    """Acknowledges a single offset whatever the batch size"""

    async def dispatch(self, batch):
        ack = await super().dispatch(batch)
        return BatchAck(ack.base_offset, ack.timestamp, (ack.base_offset,))


def _config(**overrides):
    conf = {
        'topic_name': 'topic',
        'num_partitions': 4,
        'max_batch_linger': 0.001,
        'base_retry_delay': 0.001,
        'max_retry_delay': 0.005,
        'retry_jitter': 0,
    }
    conf.update(overrides)
    return conf


class TestProducerEngine:
    """Unit tests for ProducerEngine class."""

    @pytest.fixture
    def transport(self):
        return MockTransport()

    @pytest.mark.asyncio
    async def test_send_and_flush(self, transport):
        async with ProducerEngine(_config(), transport) as engine:
            futures = [await engine.send(value='Message %d' % i, key=str(i), partition=0)
                       for i in range(10)]
            result = await engine.flush()

            assert isinstance(result, FlushResult)
            assert result.complete
            assert [f.result().offset for f in futures] == list(range(10))
            assert all(f.result().partition == 0 for f in futures)
            assert [m.value for m in transport.messages('topic', 0)] == [
                b'Message %d' % i for i in range(10)]
        assert transport.closed

    @pytest.mark.asyncio
    async def test_start_creates_topic_once(self, transport):
        engine = ProducerEngine(_config(replication_factor=3), transport)
        await engine.start()
        await engine.start()
        assert transport.create_topic_calls == [('topic', 4, 3)]
        await engine.close()

    @pytest.mark.asyncio
    async def test_start_admin_error(self):
        transport = MockTransport(admin_error=AdminError("no brokers"))
        engine = ProducerEngine(_config(), transport)
        with pytest.raises(AdminError):
            await engine.start()
        await engine.close()

    @pytest.mark.asyncio
    async def test_add_topic(self, transport):
        async with ProducerEngine(_config(), transport) as engine:
            with pytest.raises(UnknownTopicError):
                await engine.send('other', b'value')

            await engine.add_topic('other', 2)
            future = await engine.send('other', b'value', partition=1)
            metadata = await future

            assert metadata == RecordMetadata('other', 1, 0, metadata.timestamp)
            assert transport.topics['other'] == (2, 1)

    @pytest.mark.asyncio
    async def test_linger_closes_batch_without_flush(self, transport):
        async with ProducerEngine(_config(max_batch_linger=0.01), transport) as engine:
            future = await engine.send(value=b'value', partition=2)
            metadata = await asyncio.wait_for(future, 1)
            assert (metadata.topic, metadata.partition, metadata.offset) == ('topic', 2, 0)

    @pytest.mark.asyncio
    async def test_batch_sizes(self, transport):
        conf = _config(max_batch_bytes=100, max_batch_linger=10)
        async with ProducerEngine(conf, transport) as engine:
            for _ in range(3):
                await engine.send(value=b'x' * 40, partition=0)
            await engine.flush()

            assert [r.size for r in transport.dispatched] == [2, 1]
            assert [r.size_bytes for r in transport.dispatched] == [80, 40]

    @pytest.mark.asyncio
    async def test_oversized_message_dispatched_alone(self, transport):
        conf = _config(max_batch_bytes=100, max_batch_linger=10)
        async with ProducerEngine(conf, transport) as engine:
            await engine.send(value=b'x' * 10, partition=0)
            await engine.send(value=b'x' * 250, partition=0)
            await engine.flush()

            assert [r.size for r in transport.dispatched] == [1, 1]
            for record in transport.dispatched:
                assert record.size_bytes <= 100 or record.size == 1

    @pytest.mark.asyncio
    async def test_message_too_large_rejected(self, transport):
        async with ProducerEngine(_config(message_max_bytes=100), transport) as engine:
            with pytest.raises(MessageTooLarge):
                await engine.send(value=b'x' * 101)
            assert len(engine) == 0
            assert engine.stats()['messages_sent'] == 0

    @pytest.mark.asyncio
    async def test_invalid_partition_admits_nothing(self, transport):
        async with ProducerEngine(_config(), transport) as engine:
            with pytest.raises(InvalidPartition) as exc:
                await engine.send(value=b'value', partition=7)
            assert exc.value.partition == 7
            assert len(engine) == 0
            await engine.flush()
        assert transport.dispatched == []

    @pytest.mark.asyncio
    async def test_invalid_value_type(self, transport):
        async with ProducerEngine(_config(), transport) as engine:
            with pytest.raises(TypeError):
                await engine.send(value=42)

    @pytest.mark.asyncio
    async def test_keyed_messages_share_partition(self, transport):
        async with ProducerEngine(_config(), transport) as engine:
            futures = [await engine.send(value=b'v', key='user-1') for _ in range(5)]
            await engine.flush()
        expected = murmur2(b'user-1', 4)
        assert {f.result().partition for f in futures} == {expected}

    @pytest.mark.asyncio
    async def test_keyless_messages_round_robin(self, transport):
        async with ProducerEngine(_config(), transport) as engine:
            futures = [await engine.send(value=b'v') for _ in range(8)]
            await engine.flush()
        assert [f.result().partition for f in futures] == [0, 1, 2, 3, 0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_order_preserved_under_reordering(self):
        def latency(batch):
            # Even sequence numbers complete last on their first attempt
            if batch.sequence_number % 2 == 0 and batch.attempt_count == 1:
                return 0.02
            return 0
        transport = MockTransport(latency=latency)
        transport.fail_next(times=3, partition=0)

        order = {0: [], 1: []}
        async with ProducerEngine(_config(max_batch_bytes=1, num_partitions=2), transport) as engine:
            for i in range(20):
                partition = i % 2
                await engine.send(value=b'v%d' % i, partition=partition,
                                  on_delivery=lambda err, md, i=i, p=partition: order[p].append(i))
            result = await engine.flush()
            assert result.complete

        assert order[0] == list(range(0, 20, 2))
        assert order[1] == list(range(1, 20, 2))

    @pytest.mark.asyncio
    async def test_in_flight_cap(self):
        transport = MockTransport(latency=0.01)
        conf = _config(max_batch_bytes=1, max_in_flight_per_partition=2)
        async with ProducerEngine(conf, transport) as engine:
            for i in range(10):
                await engine.send(value=b'v%d' % i, partition=0)
            assert engine.stats()['in_flight_batches'] == 2
            assert engine.stats()['waiting_batches'] == 8
            await engine.flush()

        assert transport.max_concurrent[('topic', 0)] == 2
        assert len(transport.messages('topic', 0)) == 10

    @pytest.mark.asyncio
    async def test_transient_failures_then_success(self, transport):
        transport.fail_next(times=2)
        async with ProducerEngine(_config(max_retries=5), transport) as engine:
            future = await engine.send(value=b'value', partition=0)
            metadata = await future

            assert metadata.offset == 0
            assert [r.attempt for r in transport.dispatched] == [1, 2, 3]
            assert engine.stats()['batches_retried'] == 2
            assert engine.stats()['messages_acked'] == 1

    @pytest.mark.asyncio
    async def test_retry_ceiling(self, transport):
        transport.fail_always()
        async with ProducerEngine(_config(max_retries=2), transport) as engine:
            future = await engine.send(value=b'value', partition=0)
            with pytest.raises(TerminalFailure) as exc:
                await future

            assert exc.value.attempts == 3
            assert len(transport.dispatched) == 3
            assert engine.stats()['messages_failed'] == 1

    @pytest.mark.asyncio
    async def test_non_retriable_fails_immediately(self, transport):
        transport.fail_next(AuthorizationError("denied"))
        async with ProducerEngine(_config(), transport) as engine:
            future = await engine.send(value=b'value', partition=0)
            with pytest.raises(AuthorizationError):
                await future
            assert len(transport.dispatched) == 1

    @pytest.mark.asyncio
    async def test_delivery_timeout_retried(self):
        def latency(batch):
            return 1 if batch.attempt_count == 1 else 0
        transport = MockTransport(latency=latency)
        async with ProducerEngine(_config(delivery_timeout=0.02), transport) as engine:
            future = await engine.send(value=b'value', partition=0)
            await asyncio.wait_for(future, 1)

        assert [r.attempt for r in transport.dispatched] == [1, 2]
        assert len(transport.messages('topic', 0)) == 1

    @pytest.mark.asyncio
    async def test_failure_surfaces_after_lower_sequence(self):
        def latency(batch):
            return 0.02 if batch.sequence_number == 0 else 0
        transport = MockTransport(latency=latency)
        transport.fail_next(AuthorizationError("denied"), partition=0)
        order = []
        async with ProducerEngine(_config(max_batch_bytes=1), transport) as engine:
            # seq 1 finishes first and takes the injected failure
            first = await engine.send(value=b'a', partition=0,
                                      on_delivery=lambda err, md: order.append(('a', err)))
            second = await engine.send(value=b'b', partition=0,
                                       on_delivery=lambda err, md: order.append(('b', err)))
            await engine.flush()

        assert first.result().offset == 0
        assert isinstance(second.exception(), AuthorizationError)
        assert order == [('a', None), ('b', second.exception())]

    @pytest.mark.asyncio
    async def test_malformed_ack_fails_every_message(self):
        transport = _ShortAckTransport()
        async with ProducerEngine(_config(), transport) as engine:
            futures = [await engine.send(value=b'v%d' % i, partition=0) for i in range(2)]
            result = await engine.flush(timeout=1)

            assert result.complete
            for future in futures:
                assert isinstance(future.exception(), ProducerError)
                assert not future.exception().retriable()
            assert len(transport.dispatched) == 1
            assert engine.stats()['messages_failed'] == 2

    @pytest.mark.asyncio
    async def test_flush_is_idempotent(self, transport):
        async with ProducerEngine(_config(), transport) as engine:
            await engine.send(value=b'value')
            first = await engine.flush()
            dispatched = len(transport.dispatched)

            waiter = engine.flush()
            assert len(waiter) == 0
            second = await waiter

            assert first.complete and second.complete
            assert len(transport.dispatched) == dispatched

    @pytest.mark.asyncio
    async def test_flush_timeout(self):
        transport = MockTransport(latency=0.2)
        async with ProducerEngine(_config(), transport) as engine:
            future = await engine.send(value=b'value', partition=1)
            result = await engine.flush(timeout=0.01)

            assert result.timed_out
            assert not result.cancelled
            assert [m.value for m in result.pending] == [b'value']
            assert not future.done()

            assert (await engine.flush()).complete
            assert future.done()

    @pytest.mark.asyncio
    async def test_flush_cancel(self):
        transport = MockTransport(latency=0.2)
        async with ProducerEngine(_config(), transport) as engine:
            future = await engine.send(value=b'value', partition=1)
            waiter = engine.flush()
            task = asyncio.ensure_future(waiter.wait())
            await asyncio.sleep(0.01)

            waiter.cancel()
            result = await asyncio.wait_for(task, 1)

            assert result.cancelled
            assert not result.timed_out
            assert len(result.pending) == 1
            assert not future.done()
            assert len(engine) == 1

    @pytest.mark.asyncio
    async def test_flush_ignores_later_sends(self):
        transport = MockTransport(latency=0.02)
        async with ProducerEngine(_config(), transport) as engine:
            await engine.send(value=b'first', partition=0)
            waiter = engine.flush()
            await engine.send(value=b'second', partition=0)

            assert len(waiter) == 1
            assert (await waiter).complete

    @pytest.mark.asyncio
    async def test_close_rejects_sends(self, transport):
        engine = ProducerEngine(_config(), transport)
        await engine.start()
        future = await engine.send(value=b'value')
        await engine.close()

        assert future.done()
        assert engine.closed
        assert transport.closed
        with pytest.raises(EngineClosed):
            await engine.send(value=b'value')
        with pytest.raises(EngineClosed):
            await engine.add_topic('other', 1)

        await engine.close()

    @pytest.mark.asyncio
    async def test_on_delivery_callbacks(self, transport):
        sync_cb = Mock()
        received = []

        async def async_cb(err, metadata):
            received.append((err, metadata))

        async with ProducerEngine(_config(), transport) as engine:
            f1 = await engine.send(value=b'one', partition=0, on_delivery=sync_cb)
            f2 = await engine.send(value=b'two', partition=0, on_delivery=async_cb)

        sync_cb.assert_called_once_with(None, f1.result())
        assert received == [(None, f2.result())]

    @pytest.mark.asyncio
    async def test_on_delivery_error_does_not_break_engine(self, transport):
        async with ProducerEngine(_config(), transport) as engine:
            await engine.send(value=b'one', on_delivery=Mock(side_effect=ValueError("user bug")))
            future = await engine.send(value=b'two')
            await engine.flush()
        assert future.result().offset == 0

    @pytest.mark.asyncio
    async def test_stats_and_event_cb(self, transport):
        events = []
        conf = _config(event_cb=lambda event, **attrs: events.append((event, attrs)))
        transport.fail_next()
        async with ProducerEngine(conf, transport) as engine:
            for i in range(4):
                await engine.send(value=b'v%d' % i, partition=0)
            await engine.flush()
            stats = engine.stats()

        assert stats['messages_sent'] == 4
        assert stats['messages_acked'] == 4
        assert stats['batches_retried'] == 1
        assert stats['pending_messages'] == 0
        assert stats['in_flight_batches'] == 0
        names = [name for name, _ in events]
        assert 'batch_dispatched' in names
        assert 'batch_retry' in names
        assert 'batch_acked' in names
        retry = next(attrs for name, attrs in events if name == 'batch_retry')
        assert retry['partition'] == 0
        assert retry['attempt'] == 1
