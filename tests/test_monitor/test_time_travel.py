"""
Tests for the time travel controller.

Tests cover:
- Offset arithmetic (settling compensation, reference block time, clamping)
- Argument validation
- Successful jumps and the approximate elapsed time returned
- Retrying jumps until production resumes
- Giving up after the retry ceiling
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from chainharness.config import HarnessConfig
from chainharness.errors import InvalidArgumentError, TimeJumpError
from chainharness.monitor import BlockProductionMonitor
from chainharness.time_travel import TimeTravelController, compute_offset

from tests.conftest import GENESIS_TIME, FakeNode

PORT = 4242


@pytest.fixture
def controller(fake_chain, fake_node, harness_config) -> TimeTravelController:
    monitor = BlockProductionMonitor(fake_chain, harness_config)
    return TimeTravelController(fake_node, PORT, fake_chain, monitor, harness_config)


# =============================================================================
# compute_offset
# =============================================================================


class TestComputeOffset:
    """Tests for the offset arithmetic."""

    def test_discounts_settling_blocks(self) -> None:
        assert compute_offset(10, elapsed_blocks=2, block_interval=0.5, start_ms=0) == 9

    def test_floors_fractional_seconds(self) -> None:
        assert compute_offset(10, elapsed_blocks=3, block_interval=0.5, start_ms=0) == 8

    def test_reference_time_gap(self) -> None:
        offset = compute_offset(
            30, elapsed_blocks=2, block_interval=0.5, start_ms=50_000, from_ms=30_000
        )
        assert offset == 9

    def test_clamped_at_zero(self) -> None:
        assert compute_offset(1, elapsed_blocks=4, block_interval=0.5, start_ms=0) == 0

    def test_reference_far_in_past(self) -> None:
        offset = compute_offset(
            5, elapsed_blocks=2, block_interval=0.5, start_ms=100_000, from_ms=0
        )
        assert offset == 0


# =============================================================================
# add_time
# =============================================================================


class TestAddTime:
    """Tests for TimeTravelController.add_time."""

    async def test_negative_rejected(self, controller, fake_chain, fake_node) -> None:
        with pytest.raises(InvalidArgumentError):
            await controller.add_time(-1)

        assert controller.time_added == 0
        assert fake_chain.block == fake_chain.start_block
        assert fake_node.jumps == []

    async def test_negative_is_value_error(self, controller) -> None:
        with pytest.raises(ValueError):
            await controller.add_time(-0.5)

    async def test_add_ten_seconds(self, controller, fake_chain, fake_node, no_sleep) -> None:
        before = fake_chain.head_time()

        elapsed_ms = await controller.add_time(10)

        assert elapsed_ms >= 10_000
        assert controller.time_added == 9
        assert fake_node.jumps == [(PORT, 9)]
        assert fake_chain.head_time() >= before

    async def test_zero_offset_skips_jump(self, controller, fake_node, no_sleep) -> None:
        assert await controller.add_time(0) == 0
        assert await controller.add_time(1) == 0

        assert fake_node.jumps == []
        assert controller.time_added == 0

    async def test_offsets_accumulate(self, controller, fake_node, no_sleep) -> None:
        await controller.add_time(10)
        await controller.add_time(60)

        assert controller.time_added == 9 + 59
        # the node receives the cumulative offset, not the delta
        assert fake_node.jumps == [(PORT, 9), (PORT, 68)]

    async def test_from_block_time(self, controller, fake_chain, fake_node, no_sleep) -> None:
        reference = GENESIS_TIME - timedelta(seconds=19.5)

        elapsed_ms = await controller.add_time(30, from_block_time=reference)

        # settling started 20s after the reference and took 2 blocks
        assert fake_node.jumps == [(PORT, 9)]
        assert elapsed_ms >= 30_000

    async def test_from_block_time_string(self, controller, fake_node, no_sleep) -> None:
        await controller.add_time(30, from_block_time="2023-12-31T23:59:40.500")

        assert fake_node.jumps == [(PORT, 9)]

    async def test_retries_until_production_resumes(
        self, fake_chain, harness_config, no_sleep
    ) -> None:
        node = FakeNode(fake_chain, stall_jumps=2)
        monitor = BlockProductionMonitor(fake_chain, harness_config)
        controller = TimeTravelController(node, PORT, fake_chain, monitor, harness_config)

        await controller.add_time(10)

        assert node.jumps == [(PORT, 9)] * 3
        assert controller.time_added == 9

    async def test_gives_up_after_max_tries(self, fake_chain, harness_config, no_sleep) -> None:
        node = FakeNode(fake_chain, stall_jumps=1000)
        monitor = BlockProductionMonitor(fake_chain, harness_config)
        controller = TimeTravelController(node, PORT, fake_chain, monitor, harness_config)

        with pytest.raises(TimeJumpError) as exc_info:
            await controller.add_time(10)

        assert exc_info.value.attempts == 10
        assert exc_info.value.offset_seconds == 9
        assert len(node.jumps) == 10
        assert controller.time_added == 0

    async def test_custom_ceiling(self, fake_chain, no_sleep) -> None:
        config = HarnessConfig(_env_file=None, time_jump_max_tries=3)
        node = FakeNode(fake_chain, stall_jumps=1000)
        monitor = BlockProductionMonitor(fake_chain, config)
        controller = TimeTravelController(node, PORT, fake_chain, monitor, config)

        with pytest.raises(TimeJumpError):
            await controller.add_time(10)

        assert len(node.jumps) == 3

    async def test_never_decreases(self, controller, fake_chain, no_sleep) -> None:
        seen = [controller.time_added]
        for seconds in (0, 5, 1, 120, 0.2):
            before = fake_chain.head_time()
            await controller.add_time(seconds)
            assert fake_chain.head_time() >= before
            seen.append(controller.time_added)

        assert seen == sorted(seen)

    async def test_waits_after_each_jump(self, controller, no_sleep) -> None:
        await controller.add_time(10)

        assert 1.0 in [c.args[0] for c in no_sleep.await_args_list]
