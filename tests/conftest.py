"""
Chain Harness - Test Fixtures

Shared fixtures for the unit tests. Nothing here talks to Docker or a real
node: FakeChain stands in for the RPC client and FakeNode for the container
controller, and asyncio.sleep is patched out wherever polling would wait.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from chainharness import session as session_module
from chainharness.config import HarnessConfig, configure_harness
from chainharness.errors import RpcConnectionError
from chainharness.models import ChainInfo, TransactResult

GENESIS_TIME = datetime(2024, 1, 1, tzinfo=UTC)


# =============================================================================
# Fakes
# =============================================================================


class FakeChain:
    """
    Scripted stand-in for ChainRpcClient.

    Every get_info call produces one block (0.5s of chain time) unless the
    chain is stalled. Time offsets applied through FakeNode shift the head
    block time.
    """

    def __init__(self, start_block: int = 100) -> None:
        self.start_block = start_block
        self.block = start_block
        self.offset_seconds = 0
        self.stalled = False
        self.fail = False
        self.get_table_rows = AsyncMock(return_value=[])
        self.get_currency_balance = AsyncMock(return_value=["100.00000000 WAX"])
        self.get_account = AsyncMock()
        self.transact = AsyncMock(return_value=TransactResult(transaction_id="abc"))
        self.initialize = AsyncMock()
        self.close = AsyncMock()

    def head_time(self) -> datetime:
        produced = (self.block - self.start_block) * 0.5
        return GENESIS_TIME + timedelta(seconds=produced + self.offset_seconds)

    async def get_info(self) -> ChainInfo:
        if self.fail:
            raise RpcConnectionError("connection refused")
        if not self.stalled:
            self.block += 1
        return ChainInfo(
            head_block_num=self.block,
            head_block_time=self.head_time(),
            chain_id="cf057bbfb72640471fd910bcb67639c22df9f92470936cddc1ade0e2f2e7dc4f",
        )

    async def head_block_num(self) -> int:
        return (await self.get_info()).head_block_num


class FakeNode:
    """
    Stand-in for a NodeController.

    stall_jumps makes that many time jumps leave the chain stalled before
    production resumes.
    """

    def __init__(self, chain: FakeChain | None = None, stall_jumps: int = 0) -> None:
        self.chain = chain
        self.stall_jumps = stall_jumps
        self.jumps: list[tuple[int, int]] = []
        self.start = AsyncMock()
        self.stop = AsyncMock()
        self.resolve_address = AsyncMock(return_value="172.17.0.2")

    async def jump_time(self, port: int, offset_seconds: int) -> None:
        self.jumps.append((port, offset_seconds))
        if self.chain is None:
            return
        self.chain.offset_seconds = offset_seconds
        if self.stall_jumps > 0:
            self.stall_jumps -= 1
            self.chain.stalled = True
        else:
            self.chain.stalled = False


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def harness_config() -> HarnessConfig:
    """Default configuration, isolated from the environment."""
    config = HarnessConfig(_env_file=None)
    configure_harness(config)
    yield config
    configure_harness(None)


@pytest.fixture
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def fake_node(fake_chain: FakeChain) -> FakeNode:
    return FakeNode(fake_chain)


@pytest.fixture
def mock_signer() -> Any:
    signer = AsyncMock()
    signer.available_keys = ["EOS6MRyAjQq8ud7hVNYcfnVPJqcVpscN5So8BhtHuGYqET5GDW5CV"]
    signer.sign = AsyncMock(return_value=["SIG_K1_test"])
    return signer


@pytest.fixture
def no_sleep():
    """Patch asyncio.sleep so polling loops run without waiting."""
    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


@pytest.fixture(autouse=True)
def release_session_ports():
    """Sessions left open by a failing test must not leak their ports."""
    yield
    session_module._active_ports.clear()
