"""
Unit tests for the timelock queue.
"""

import pytest

from icovault.blockchain.vesting_schedule import VestingKind, VestingSchedule
from icovault.core.exceptions import (
    InvalidRecordTypeError,
    NoMatchingQueuedInstructionError,
    QueuedInstructionNotReadyError,
)
from icovault.wallet.timelock_queue import (
    PostLaunchInvestment,
    ReserveTransfer,
    TimelockEntry,
    TimelockQueue,
    operation_from_dict,
)

DELAY = 5
T0 = 1_000


@pytest.fixture
def queue():
    return TimelockQueue()


class TestReadiness:
    def test_ready_exactly_at_delay(self):
        entry = TimelockEntry(T0, ReserveTransfer("Reserve", "target", 100))
        assert not entry.is_ready(T0 + DELAY - 1, DELAY)
        assert entry.is_ready(T0 + DELAY, DELAY)


class TestConsume:
    def test_not_ready_keeps_entry(self, queue):
        op = ReserveTransfer("Reserve", "target", 100)
        queue.enqueue(op, T0)
        with pytest.raises(QueuedInstructionNotReadyError) as excinfo:
            queue.consume(op, T0 + 1, DELAY)
        assert excinfo.value.recoverable is True
        assert len(queue) == 1

    def test_consumed_exactly_once(self, queue):
        op = ReserveTransfer("Reserve", "target", 100)
        queue.enqueue(op, T0)
        entry = queue.consume(op, T0 + DELAY, DELAY)
        assert entry.operation == op
        with pytest.raises(NoMatchingQueuedInstructionError):
            queue.consume(op, T0 + DELAY, DELAY)

    def test_amount_must_match(self, queue):
        queue.enqueue(ReserveTransfer("Reserve", "target", 100), T0)
        with pytest.raises(NoMatchingQueuedInstructionError):
            queue.consume(ReserveTransfer("Reserve", "target", 99), T0 + DELAY, DELAY)

    def test_source_is_part_of_match(self, queue):
        queue.enqueue(ReserveTransfer("Reserve", "target", 100), T0)
        with pytest.raises(NoMatchingQueuedInstructionError):
            queue.consume(ReserveTransfer("Marketing", "target", 100), T0 + DELAY, DELAY)

    def test_other_entries_keep_order(self, queue):
        a = ReserveTransfer("Reserve", "a", 1)
        b = ReserveTransfer("Reserve", "b", 2)
        c = ReserveTransfer("Reserve", "c", 3)
        for op in (a, b, c):
            queue.enqueue(op, T0)
        queue.consume(b, T0 + DELAY, DELAY)
        assert [e.operation for e in queue.entries] == [a, c]

    def test_identical_entries_consumed_first_in_first_out(self, queue):
        op = ReserveTransfer("Reserve", "target", 100)
        queue.enqueue(op, T0)
        queue.enqueue(op, T0 + 10)
        first = queue.consume(op, T0 + DELAY, DELAY)
        assert first.creation_time == T0
        # The second one is still waiting
        with pytest.raises(QueuedInstructionNotReadyError):
            queue.consume(op, T0 + DELAY, DELAY)
        assert queue.consume(op, T0 + 10 + DELAY, DELAY).creation_time == T0 + 10

    def test_custom_predicate(self, queue):
        queue.enqueue(ReserveTransfer("Reserve", "target", 100), T0)
        queue.enqueue(PostLaunchInvestment("investor", 50), T0)
        entry = queue.consume_matching(
            lambda op: isinstance(op, PostLaunchInvestment), T0 + DELAY, DELAY
        )
        assert entry.operation.investor == "investor"
        assert len(queue) == 1

    def test_post_launch_custom_schedule_is_part_of_match(self, queue):
        custom = VestingSchedule(VestingKind.ADVISERS_PARTNERS, 1, 2, 50000, 0, 50000)
        queue.enqueue(PostLaunchInvestment("investor", 50, custom), T0)
        with pytest.raises(NoMatchingQueuedInstructionError):
            queue.consume(PostLaunchInvestment("investor", 50), T0 + DELAY, DELAY)
        queue.consume(PostLaunchInvestment("investor", 50, custom), T0 + DELAY, DELAY)


class TestRecordForm:
    def test_queue_dict_form(self, queue):
        custom = VestingSchedule(VestingKind.ADVISERS_PARTNERS, 1, 2, 50000, 0, 50000)
        queue.enqueue(ReserveTransfer("Reserve", "target", 100), T0)
        queue.enqueue(PostLaunchInvestment("investor", 50, custom), T0 + 1)
        assert TimelockQueue.from_dict(queue.to_dict()) == queue

    def test_unknown_operation_type(self):
        with pytest.raises(InvalidRecordTypeError):
            operation_from_dict({"type": "Mint"})
