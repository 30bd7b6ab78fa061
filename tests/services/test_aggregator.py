"""Tests for MessageAggregator."""

import asyncio
import random

import pytest

from relay.exceptions import ConfigurationMissingError
from relay.models.enums import MessageStatus, RequestTaskStatus
from relay.services.aggregator import (
    BATCH_SEPARATOR,
    build_aggregated_content,
    split_aggregated_content
)

from conftest import activate_config


async def _wait_for(predicate, timeout: float = 2.0):
    """Poll until predicate() is true or fail after timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestAggregatedContent:
    """SUT: build_aggregated_content / split_aggregated_content"""

    def test_join_in_order(self):
        """Texts should be joined with the separator in arrival order."""
        assert build_aggregated_content(["A", "B", "C"]) == "A\n\nB\n\nC"

    def test_single_message(self):
        """A one-message batch should be the message text itself."""
        assert build_aggregated_content(["only"]) == "only"

    def test_split_recovers_texts(self):
        """Splitting on the separator should recover the ordered texts."""
        texts = ["first line", "second\nwith newline", "third"]
        assert split_aggregated_content(build_aggregated_content(texts)) == texts
        assert BATCH_SEPARATOR not in "".join(texts)


class TestMessageAggregator:
    """Tests for MessageAggregator."""

    class TestPush:
        """SUT: MessageAggregator.push"""

        async def test_requires_configuration(self, aggregator, store):
            """Pushing without an active configuration should fail and store nothing."""
            with pytest.raises(ConfigurationMissingError):
                await aggregator.push("x", "A")
            assert store.conversations.get("x") is None
            assert aggregator.pending_count("x") == 0

        async def test_stores_pending_message(self, aggregator, store, config):
            """A pushed message should be stored pending and buffered."""
            message = await aggregator.push("x", "A")
            stored = store.messages.get(message.id)
            assert stored.status == MessageStatus.PENDING
            assert stored.request_task_id is None
            assert store.conversations.get("x") is not None
            assert aggregator.pending_count("x") == 1

        async def test_threshold_two_seals_one_task(self, aggregator, store, provider):
            """Pushing A then B with threshold 2 should create exactly one task 'A<sep>B'."""
            activate_config(provider, batch_threshold=2)

            await aggregator.push("x", "A")
            assert store.tasks.list_by_conversation("x") == []
            await aggregator.push("x", "B")

            tasks = store.tasks.list_by_conversation("x")
            assert len(tasks) == 1
            assert tasks[0].aggregated_content == "A" + BATCH_SEPARATOR + "B"
            assert tasks[0].message_count == 2
            assert aggregator.pending_count("x") == 0

            members = store.messages.get_by_task(tasks[0].task_id)
            assert [m.content for m in members] == ["A", "B"]

        async def test_below_threshold_does_not_seal(self, aggregator, store, provider):
            """Fewer messages than the threshold should stay buffered."""
            activate_config(provider, batch_threshold=3)
            await aggregator.push("x", "A")
            await aggregator.push("x", "B")
            assert store.tasks.list_by_conversation("x") == []
            assert aggregator.pending_count("x") == 2

        async def test_sealed_task_is_dispatched(self, aggregator, store, provider, dispatcher, backend):
            """A sealed task should be handed to the dispatcher."""
            activate_config(provider, batch_threshold=2)
            await aggregator.push("x", "A")
            await aggregator.push("x", "B")
            await dispatcher.drain()

            task = store.tasks.list_by_conversation("x")[0]
            assert task.status == RequestTaskStatus.COMPLETED
            assert backend.queries == ["A\n\nB"]

        async def test_conversations_are_independent(self, aggregator, store, provider):
            """Buffers of different conversations should not mix."""
            activate_config(provider, batch_threshold=2)
            await aggregator.push("x", "A")
            await aggregator.push("y", "B")
            assert aggregator.pending_count("x") == 1
            assert aggregator.pending_count("y") == 1
            await aggregator.push("y", "C")
            assert [t.aggregated_content for t in store.tasks.list_by_conversation("y")] == ["B\n\nC"]
            assert store.tasks.list_by_conversation("x") == []

    class TestTimer:
        """SUT: MessageAggregator.flush_expired / start"""

        async def test_window_flush_without_traffic(self, aggregator, store, provider, clock):
            """A lone message should be sealed once the window passes, with no further pushes."""
            activate_config(provider, batch_threshold=5, batch_time_window=30)
            await aggregator.push("y", "A")
            aggregator.start()

            clock.advance(29)
            await asyncio.sleep(0.05)
            assert store.tasks.list_by_conversation("y") == []

            clock.advance(2)
            await _wait_for(lambda: len(store.tasks.list_by_conversation("y")) == 1)

            tasks = store.tasks.list_by_conversation("y")
            assert len(tasks) == 1
            assert tasks[0].aggregated_content == "A"
            assert tasks[0].message_count == 1
            assert tasks[0].metadata["trigger"] == "time"

        async def test_window_measured_from_oldest(self, aggregator, store, provider, clock):
            """Later pushes should not extend the window of the oldest message."""
            activate_config(provider, batch_threshold=5, batch_time_window=30)
            await aggregator.push("y", "A")
            clock.advance(20)
            await aggregator.push("y", "B")
            clock.advance(10)

            sealed = await aggregator.flush_expired()
            assert len(sealed) == 1
            assert sealed[0].aggregated_content == "A\n\nB"

        async def test_window_restarts_after_size_flush(self, aggregator, store, provider, clock):
            """After a size flush the next batch's window starts at its own first message."""
            activate_config(provider, batch_threshold=2, batch_time_window=30)
            await aggregator.push("y", "A")
            await aggregator.push("y", "B")
            clock.advance(20)
            await aggregator.push("y", "C")
            clock.advance(15)

            assert await aggregator.flush_expired() == []
            clock.advance(16)
            sealed = await aggregator.flush_expired()
            assert [t.aggregated_content for t in sealed] == ["C"]

        async def test_no_configuration_keeps_buffers(self, aggregator, provider, store, clock):
            """Without an active configuration expired buffers should be kept."""
            activate_config(provider, batch_time_window=1)
            await aggregator.push("y", "A")
            store.settings.deactivate_all()
            clock.advance(100)
            assert await aggregator.flush_expired() == []
            assert aggregator.pending_count("y") == 1

        async def test_time_until_next_flush(self, aggregator, provider, clock):
            """Remaining time should count down from the oldest message."""
            activate_config(provider, batch_time_window=30)
            assert aggregator.time_until_next_flush("y") is None
            await aggregator.push("y", "A")
            clock.advance(12)
            assert aggregator.time_until_next_flush("y") == pytest.approx(18)
            clock.advance(40)
            assert aggregator.time_until_next_flush("y") == 0

        async def test_start_stop(self, aggregator):
            """The timer should report whether it runs."""
            assert aggregator.is_running is False
            aggregator.start()
            assert aggregator.is_running is True
            await aggregator.stop()
            assert aggregator.is_running is False

    class TestFlush:
        """SUT: MessageAggregator.flush"""

        async def test_empty_is_noop(self, aggregator, store, config):
            """Flushing an empty buffer should create nothing."""
            assert await aggregator.flush("x") is None
            assert store.tasks.list_pending(include_retrying=True) == []

        async def test_manual_flush(self, aggregator, store, config):
            """A manual flush should seal whatever is buffered."""
            await aggregator.push("x", "A")
            task = await aggregator.flush("x")
            assert task.aggregated_content == "A"
            assert task.metadata["trigger"] == "manual"
            assert aggregator.pending_count("x") == 0

        async def test_concurrent_flushes_do_not_overlap(self, aggregator, store, config):
            """Two concurrent flushes of one conversation should seal the buffer once."""
            await aggregator.push("x", "A")
            await aggregator.push("x", "B")
            results = await asyncio.gather(aggregator.flush("x"), aggregator.flush("x"))
            assert len([r for r in results if r is not None]) == 1
            assert len(store.tasks.list_by_conversation("x")) == 1

        async def test_requires_configuration(self, aggregator):
            """Flushing without an active configuration should fail."""
            with pytest.raises(ConfigurationMissingError):
                await aggregator.flush("x")

    class TestForceProcess:
        """SUT: MessageAggregator.force_process"""

        async def test_flushes_every_buffer(self, aggregator, store, config):
            """Every non-empty buffer should become a task."""
            await aggregator.push("x", "A")
            await aggregator.push("y", "B")
            await aggregator.push("y", "C")
            sealed = await aggregator.force_process()
            assert sorted(t.aggregated_content for t in sealed) == ["A", "B\n\nC"]
            assert aggregator.buffered_conversations() == []

        async def test_locks_released(self, aggregator, config):
            """Conversation locks should not outlive the operations holding them."""
            await aggregator.push("x", "A")
            await aggregator.push("y", "B")
            await aggregator.force_process()
            assert len(aggregator._locks) == 0

    class TestResetAndReload:
        """SUT: MessageAggregator.reset / reload_pending"""

        async def test_reset_keeps_messages_pending(self, aggregator, store, config):
            """reset() should drop buffers without creating tasks."""
            first = await aggregator.push("x", "A")
            await aggregator.push("x", "B")
            assert aggregator.reset() == 2
            assert aggregator.pending_count("x") == 0
            assert store.tasks.list_by_conversation("x") == []
            assert store.messages.get(first.id).status == MessageStatus.PENDING

        async def test_reload_after_reset(self, aggregator, store, config):
            """Reloaded messages should be sealed in their original order."""
            await aggregator.push("x", "A")
            await aggregator.push("x", "B")
            aggregator.reset()

            assert aggregator.reload_pending() == 2
            task = await aggregator.flush("x")
            assert task.aggregated_content == "A\n\nB"

        async def test_reload_skips_buffered(self, aggregator, config):
            """Messages already buffered should not be buffered twice."""
            await aggregator.push("x", "A")
            assert aggregator.reload_pending() == 0
            assert aggregator.pending_count("x") == 1

    class TestNoLossNoDuplication:
        """SUT: MessageAggregator (message accounting)"""

        async def test_every_message_in_exactly_one_place(self, aggregator, store, provider, clock):
            """Tasks plus buffers should hold every pushed message exactly once."""
            activate_config(provider, batch_threshold=3, batch_time_window=10)
            rng = random.Random(7)
            pushed = {cid: [] for cid in ("a", "b", "c")}

            for i in range(60):
                cid = rng.choice(list(pushed))
                message = await aggregator.push(cid, f"{cid}-{i}")
                pushed[cid].append(message.id)
                clock.advance(rng.uniform(0, 3))
                if i % 7 == 0:
                    await aggregator.flush_expired()
                if i % 11 == 0:
                    await aggregator.flush(rng.choice(list(pushed)))

            for cid, ids in pushed.items():
                in_tasks = []
                for task in store.tasks.list_by_conversation(cid):
                    members = store.messages.get_by_task(task.task_id)
                    assert len(members) == task.message_count
                    in_tasks.extend(m.id for m in members)
                buffered = [entry.message_id for entry in aggregator._buffers.get(cid, [])]

                combined = in_tasks + buffered
                assert len(combined) == len(set(combined))
                assert sorted(combined) == sorted(ids)
