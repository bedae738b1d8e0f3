"""
Time Travel

Moves a node's clock forward while keeping block production alive.

The node controller can only set the clock to an absolute offset from its
baseline; it cannot advance it smoothly. Jumping while transactions are
still settling, or to an offset the producer cannot schedule against, can
stall production, so every jump is bracketed by settling waits and
confirmed by a production probe, retrying a bounded number of times.

Time only ever moves forward. The returned elapsed time is approximate:
expect it to be a few seconds larger than requested and never rely on
sub-block precision.
"""

import asyncio
import math
from datetime import datetime

import structlog

from .chains.rpc_client import ChainRpcClient
from .config import HarnessConfig, get_harness_config
from .errors import InvalidArgumentError, TimeJumpError
from .models import block_time_to_ms
from .monitor import BlockProductionMonitor
from .node import NodeController

logger = structlog.get_logger(__name__)


def compute_offset(
    seconds: float,
    elapsed_blocks: int,
    block_interval: float,
    start_ms: int,
    from_ms: int | None = None,
) -> int:
    """
    Compute the whole seconds of clock offset still needed.

    Time that already passed while settling (elapsed blocks times the block
    interval) and, when a reference time is given, the gap between that
    reference and the settling start are subtracted from the request.
    Never negative.
    """
    already_passed = elapsed_blocks * block_interval
    if from_ms is not None:
        already_passed += (start_ms - from_ms) / 1000
    return math.floor(max(0.0, seconds - already_passed))


class TimeTravelController:
    """
    Advances the virtual clock of one node instance.

    time_added is the cumulative offset in seconds applied to the node. It
    only grows, and only after a jump has been confirmed.
    """

    def __init__(
        self,
        node: NodeController,
        port: int,
        rpc: ChainRpcClient,
        monitor: BlockProductionMonitor,
        config: HarnessConfig | None = None,
    ) -> None:
        self.node = node
        self.port = port
        self.rpc = rpc
        self.monitor = monitor
        self.config = config or get_harness_config()
        self.time_added = 0

    async def add_time(
        self,
        seconds: float,
        from_block_time: str | datetime | None = None,
    ) -> int:
        """
        Increase the chain time.

        You will increase time by at least the number of seconds requested,
        but likely a few seconds more. Give tests a few seconds of leeway
        when checking behaviour that must NOT exceed some time span. It works
        well for exceeding timeouts or making large leaps.

        Args:
            seconds: Seconds to add to the chain time
            from_block_time: Optional block time the target is measured from.
                             Without it, seconds are added to the current
                             chain time.

        Returns:
            Approximate milliseconds between the reference time and the
            head block time once the jump has settled. 0 if no jump was
            needed.

        Raises:
            InvalidArgumentError: If seconds is negative
            TimeJumpError: If production does not resume after the jump
        """
        if seconds < 0:
            raise InvalidArgumentError("Time to add must be greater than or equal to zero")

        # Let pending transactions land before touching the clock
        settled = await self.monitor.wait_for_next_blocks(self.config.settle_blocks)
        start_ms = settled.starting_block.head_block_time_ms
        from_ms = block_time_to_ms(from_block_time) if from_block_time else None

        adding = compute_offset(
            seconds,
            settled.elapsed_blocks,
            self.config.block_interval_seconds,
            start_ms,
            from_ms,
        )
        if adding == 0:
            logger.debug("time_jump_skipped", port=self.port, requested=seconds)
            return 0

        target = self.time_added + adding
        max_tries = self.config.time_jump_max_tries
        tries = 0
        while True:
            if tries >= max_tries:
                raise TimeJumpError(
                    f"Exceeded {max_tries} tries to change the blockchain time. "
                    "Test cannot proceed.",
                    attempts=tries,
                    offset_seconds=target,
                )
            await self.node.jump_time(self.port, target)
            tries += 1
            logger.debug("time_jump_attempt", port=self.port, offset_seconds=target, attempt=tries)
            await asyncio.sleep(self.config.time_jump_settle)
            if await self.monitor.is_producing_block():
                break

        self.time_added = target
        await self.monitor.wait_for_next_blocks(self.config.settle_blocks)

        end_ms = (await self.rpc.get_info()).head_block_time_ms
        elapsed_ms = end_ms - (from_ms if from_ms is not None else start_ms)
        logger.info(
            "chain_time_advanced",
            port=self.port,
            added_seconds=adding,
            time_added=self.time_added,
            elapsed_ms=elapsed_ms,
            attempts=tries,
        )
        return elapsed_ms
