#!/usr/bin/env python
# -*- coding: utf-8 -*-
import pytest

from streams_producer import AdminError, BatchAck, DispatchError, Message, ProducerError
from streams_producer.producer._message_batch import MessageBatch
from streams_producer.transport import DispatchRecord, MockTransport


def _batch(topic='topic', partition=0, seq=0, n=2):
    batch = MessageBatch(topic, partition, seq)
    for i in range(n):
        batch.append(Message(topic, None, b'm%d' % i, partition), None)
    batch.attempt_count = 1
    return batch


class TestMockTransport:
    """Unit tests for MockTransport class."""

    @pytest.mark.asyncio
    async def test_create_topic_idempotent(self):
        transport = MockTransport()
        await transport.create_topic('topic', 3, 1)
        await transport.create_topic('topic', 3, 1)
        assert transport.topics == {'topic': (3, 1)}
        assert len(transport.create_topic_calls) == 2

    @pytest.mark.asyncio
    async def test_create_topic_admin_error(self):
        transport = MockTransport(admin_error=AdminError("no brokers"))
        with pytest.raises(AdminError):
            await transport.create_topic('topic', 1, 1)

    @pytest.mark.asyncio
    async def test_dispatch_appends_to_log(self):
        transport = MockTransport()
        await transport.create_topic('topic', 2, 1)

        ack1 = await transport.dispatch(_batch(n=2))
        ack2 = await transport.dispatch(_batch(seq=1, n=3))

        assert isinstance(ack1, BatchAck)
        assert ack1.base_offset == 0
        assert ack2.base_offset == 2
        assert [m.value for m in transport.messages('topic', 0)] == [b'm0', b'm1', b'm0', b'm1', b'm2']
        assert transport.dispatched[0] == DispatchRecord('topic', 0, 0, 1, 2, 4)

    @pytest.mark.asyncio
    async def test_fail_next(self):
        transport = MockTransport()
        transport.fail_next(times=2)

        for _ in range(2):
            with pytest.raises(DispatchError):
                await transport.dispatch(_batch())
        await transport.dispatch(_batch())

        assert len(transport.dispatched) == 3
        assert len(transport.messages('topic', 0)) == 2

    @pytest.mark.asyncio
    async def test_fail_next_filters_partition(self):
        transport = MockTransport()
        error = ProducerError("custom")
        transport.fail_next(error, partition=1)

        await transport.dispatch(_batch(partition=0))
        with pytest.raises(ProducerError) as exc:
            await transport.dispatch(_batch(partition=1))
        assert exc.value is error

    @pytest.mark.asyncio
    async def test_fail_always_and_clear(self):
        transport = MockTransport()
        transport.fail_always()
        for _ in range(3):
            with pytest.raises(DispatchError):
                await transport.dispatch(_batch())
        transport.clear_failures()
        await transport.dispatch(_batch())

    @pytest.mark.asyncio
    async def test_unknown_partition(self):
        transport = MockTransport()
        await transport.create_topic('topic', 2, 1)
        with pytest.raises(ProducerError) as exc:
            await transport.dispatch(_batch(partition=5))
        assert not exc.value.retriable()

    @pytest.mark.asyncio
    async def test_unknown_topic_without_auto_create(self):
        transport = MockTransport(auto_create_topics=False)
        with pytest.raises(DispatchError):
            await transport.dispatch(_batch(topic='missing'))

    @pytest.mark.asyncio
    async def test_close(self):
        transport = MockTransport()
        await transport.close()
        assert transport.closed is True
