"""
Block Production Monitor

The node has no push notification for new blocks, so every synchronization
point here is a polling loop over get_info. Probes (is_producing_block,
is_system_contract_initialized) treat RPC failures as "not yet" and never
raise; bounded waits raise a ReadinessTimeoutError once their retry budget
is spent; raw block-height waits are unbounded unless the caller passes a
timeout.
"""

import asyncio

import structlog

from .chains.rpc_client import ChainRpcClient
from .config import HarnessConfig, get_harness_config
from .errors import ChainClientError, ChainStartTimeoutError, SystemContractTimeoutError
from .models import SettleResult

logger = structlog.get_logger(__name__)


class BlockProductionMonitor:
    """Polls a node's head state to detect and wait for block production."""

    def __init__(self, rpc: ChainRpcClient, config: HarnessConfig | None = None) -> None:
        self.rpc = rpc
        self.config = config or get_harness_config()

    async def is_producing_block(self) -> bool:
        """
        Check whether the node is currently producing blocks.

        Samples the head block number twice, production_probe_interval
        apart, and reports whether it increased. An RPC failure counts as
        not producing.
        """
        try:
            first = await self.rpc.head_block_num()
            await asyncio.sleep(self.config.production_probe_interval)
            second = await self.rpc.head_block_num()
        except ChainClientError as e:
            logger.debug("production_probe_failed", error=str(e))
            return False
        return second > first

    async def wait_until_block_height(
        self,
        target: int,
        timeout: float | None = None,
    ) -> int:
        """
        Poll until the head block number reaches target.

        Args:
            target: Block number to wait for
            timeout: Optional deadline in seconds. Without one the wait is
                     unbounded and only ends on success or cancellation.

        Returns:
            The head block number observed when the wait ended (>= target)

        Raises:
            TimeoutError: If timeout elapses first
        """
        async with asyncio.timeout(timeout):
            height = await self.rpc.head_block_num()
            while height < target:
                await asyncio.sleep(self.config.block_poll_interval)
                height = await self.rpc.head_block_num()
        return height

    async def wait_for_next_blocks(
        self,
        num_blocks: int = 1,
        timeout: float | None = None,
    ) -> SettleResult:
        """
        Wait until num_blocks more blocks have been produced.

        Returns the head snapshot taken before waiting and the number of
        blocks that actually elapsed, which can exceed num_blocks because of
        polling granularity.
        """
        starting_block = await self.rpc.get_info()
        height = await self.wait_until_block_height(
            starting_block.head_block_num + num_blocks,
            timeout=timeout,
        )
        return SettleResult(
            starting_block=starting_block,
            elapsed_blocks=height - starting_block.head_block_num,
        )

    async def wait_for_production(
        self,
        max_retries: int | None = None,
        interval: float | None = None,
    ) -> None:
        """
        Wait for the node to start producing blocks.

        Raises:
            ChainStartTimeoutError: If production is not observed within
                                    max_retries extra attempts
        """
        max_retries = max_retries if max_retries is not None else self.config.chain_start_max_retries
        interval = interval if interval is not None else self.config.chain_start_interval

        retries = 0
        while not await self.is_producing_block():
            await asyncio.sleep(interval)
            if retries == max_retries:
                raise ChainStartTimeoutError(
                    f"Chain did not start producing blocks after {retries + 1} attempts",
                    attempts=retries + 1,
                )
            retries += 1
        logger.debug("chain_producing", attempts=retries + 1)

    async def is_system_contract_initialized(self) -> bool:
        """
        Check whether the system contract has been set up.

        The RAM market table is populated by system contract init, so any
        row in it means the contract is ready. RPC failures count as not
        ready.
        """
        system = self.config.system_account
        try:
            rows = await self.rpc.get_table_rows(system, "rammarket", system)
        except ChainClientError as e:
            logger.debug("system_contract_probe_failed", error=str(e))
            return False
        return bool(rows)

    async def wait_for_system_contract(
        self,
        max_retries: int | None = None,
        interval: float | None = None,
        settle: float | None = None,
    ) -> None:
        """
        Wait for the system contract to be initialized, then settle.

        Raises:
            SystemContractTimeoutError: If the contract is not ready within
                                        max_retries extra attempts
        """
        max_retries = max_retries if max_retries is not None else self.config.system_ready_max_retries
        interval = interval if interval is not None else self.config.system_ready_interval
        settle = settle if settle is not None else self.config.system_ready_settle

        retries = 0
        while not await self.is_system_contract_initialized():
            await asyncio.sleep(interval)
            if retries == max_retries:
                raise SystemContractTimeoutError(
                    f"System contract not initialized after {retries + 1} attempts",
                    attempts=retries + 1,
                )
            retries += 1
        await asyncio.sleep(settle)
        logger.debug("system_contract_ready", attempts=retries + 1)
