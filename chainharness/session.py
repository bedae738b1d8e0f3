"""
Chain Session

Owns one ephemeral node instance for the duration of a test: starts the
container, waits for block production (and optionally for the system
contract), provisions the default test accounts, and then exposes
transaction submission and time control until teardown.

Usage:
    async with await ChainSession.setup(system_setup=True) as chain:
        alice = chain.accounts[0]
        await alice.push_action("mycontract", "doit", {"who": alice.name})
        await chain.add_time(3600)
"""

import random
from datetime import datetime
from typing import Any

import structlog

from .accounts import Account, AccountProvisioner
from .chains.rpc_client import ChainRpcClient
from .chains.signer import KeosdSigner, TransactionSigner
from .config import HarnessConfig, get_harness_config
from .errors import InvalidArgumentError, PortInUseError
from .models import Action, ChainInfo, CoreToken, SettleResult, TransactOptions, TransactResult
from .monitor import BlockProductionMonitor
from .monitoring.logging import log_duration
from .node import DockerNodeController, NodeController
from .time_travel import TimeTravelController

logger = structlog.get_logger(__name__)

# Ports owned by live sessions in this process
_active_ports: set[int] = set()


def _claim_port(port: int) -> None:
    if port in _active_ports:
        raise PortInUseError(f"Port {port} is owned by another session", port=port)
    _active_ports.add(port)


def _release_port(port: int) -> None:
    _active_ports.discard(port)


class ChainSession:
    """
    A running node instance under test.

    Sessions are independent: each has its own port, node, RPC client,
    signer and retry state. Nothing is shared between them.
    """

    def __init__(
        self,
        rpc: ChainRpcClient,
        node: NodeController,
        port: int,
        system_setup: bool = False,
        config: HarnessConfig | None = None,
        public_key: str | None = None,
    ) -> None:
        self.rpc = rpc
        self.node = node
        self.port = port
        self.system_setup = system_setup
        self.config = config or get_harness_config()
        self.core_token = CoreToken(
            symbol=self.config.core_token_symbol,
            precision=self.config.core_token_precision,
        )
        self.accounts: list[Account] = []
        self.monitor = BlockProductionMonitor(rpc, self.config)
        self.time_travel = TimeTravelController(node, port, rpc, self.monitor, self.config)
        self.provisioner = AccountProvisioner(
            rpc, self.core_token, public_key or self.config.test_public_key, self.config
        )
        self.log = logger.bind(port=port)

    @classmethod
    async def setup(
        cls,
        system_setup: bool = False,
        *,
        config: HarnessConfig | None = None,
        node: NodeController | None = None,
        signer: TransactionSigner | None = None,
        port: int | None = None,
    ) -> "ChainSession":
        """
        Start a node and return a fully initialized session.

        Args:
            system_setup: Also wait for the system contract to be initialized
            config: Harness configuration (global config if omitted)
            node: Node controller (Docker if omitted)
            signer: Transaction signer (keosd wallet if omitted)
            port: Host port to use (random in the configured range if omitted)

        Returns:
            The ready session, with the default test accounts provisioned

        Raises:
            PortInUseError: If the port is taken. Retry with another port.
            ChainStartTimeoutError: If the chain never produces blocks
            SystemContractTimeoutError: If system_setup and the system
                                        contract never initializes
            InvalidArgumentError: If the signer holds no keys
            ProvisioningError: If a test account cannot be created
        """
        config = config or get_harness_config()
        node = node or DockerNodeController(config)
        signer = signer or KeosdSigner(
            config.wallet_url, [config.test_public_key], timeout=config.rpc_timeout
        )
        # Test accounts must be controlled by a key the signer can sign with
        signer_keys = signer.available_keys
        if not signer_keys:
            raise InvalidArgumentError("Signer has no available keys to create test accounts with")
        public_key = signer_keys[0]
        if port is None:
            port = random.randrange(config.port_range_min, config.port_range_max)

        _claim_port(port)
        try:
            await node.start(port)
        except BaseException:
            _release_port(port)
            raise

        rpc: ChainRpcClient | None = None
        try:
            address = await node.resolve_address(port)
            if config.use_container_ip:
                endpoint = f"http://{address}:{config.node_rpc_container_port}"
            else:
                endpoint = f"http://{config.rpc_host}:{port}"
            rpc = ChainRpcClient(endpoint, signer, timeout=config.rpc_timeout)
            await rpc.initialize()

            session = cls(
                rpc, node, port, system_setup=system_setup, config=config, public_key=public_key
            )
            with log_duration(session.log, "chain_session_setup", system_setup=system_setup):
                await session.monitor.wait_for_production()
                if system_setup:
                    await session.monitor.wait_for_system_contract()
                session.accounts = await session.provisioner.create_test_accounts(session)
        except BaseException:
            await cls._abandon(node, port, rpc)
            raise

        return session

    @staticmethod
    async def _abandon(node: NodeController, port: int, rpc: ChainRpcClient | None) -> None:
        """Clean up after a failed setup without masking the original error."""
        try:
            await node.stop(port)
        except Exception as e:
            logger.warning("chain_session_cleanup_failed", port=port, error=str(e))
        finally:
            _release_port(port)
        if rpc is not None:
            try:
                await rpc.close()
            except Exception as e:
                logger.warning("rpc_client_close_failed", port=port, error=str(e))

    async def teardown(self) -> None:
        """
        Stop and remove the node instance.

        Not idempotent: calling it again after the node is gone raises.
        """
        try:
            await self.node.stop(self.port)
        finally:
            _release_port(self.port)
            await self.rpc.close()
        self.log.info("chain_session_torn_down")

    async def __aenter__(self) -> "ChainSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.teardown()

    # ==================== Chain State ====================

    @property
    def time_added(self) -> int:
        """Cumulative seconds added to the chain clock."""
        return self.time_travel.time_added

    async def get_info(self) -> ChainInfo:
        return await self.rpc.get_info()

    async def head_block_num(self) -> int:
        return await self.rpc.head_block_num()

    async def is_producing_block(self) -> bool:
        return await self.monitor.is_producing_block()

    async def wait_for_next_blocks(
        self, num_blocks: int = 1, timeout: float | None = None
    ) -> SettleResult:
        return await self.monitor.wait_for_next_blocks(num_blocks, timeout=timeout)

    async def wait_until_block_height(self, target: int, timeout: float | None = None) -> int:
        return await self.monitor.wait_until_block_height(target, timeout=timeout)

    async def get_table_rows(
        self, code: str, table: str, scope: str, **kwargs: Any
    ) -> list[dict[str, Any]]:
        return await self.rpc.get_table_rows(code, table, scope, **kwargs)

    # ==================== Transactions ====================

    def _options(self, options: TransactOptions | None) -> TransactOptions:
        return options or TransactOptions(
            expire_seconds=self.config.tx_expire_seconds,
            blocks_behind=self.config.tx_blocks_behind,
        )

    async def push_action(
        self,
        action: Action | dict[str, Any],
        options: TransactOptions | None = None,
    ) -> TransactResult:
        """Submit one action. Failures are raised as-is, without retry."""
        return await self.rpc.transact([action], self._options(options))

    async def push_actions(
        self,
        actions: list[Action | dict[str, Any]],
        options: TransactOptions | None = None,
    ) -> TransactResult:
        """Submit several actions in one transaction. Failures are raised as-is."""
        return await self.rpc.transact(actions, self._options(options))

    # ==================== Accounts ====================

    async def create_account(
        self,
        name: str,
        supply_amount: float | None = None,
        ram_bytes: int | None = None,
    ) -> Account:
        return await self.provisioner.create_account(self, name, supply_amount, ram_bytes)

    async def create_accounts(
        self,
        names: list[str],
        supply_amount: float | None = None,
    ) -> list[Account]:
        return await self.provisioner.create_accounts(self, names, supply_amount)

    # ==================== Time ====================

    async def add_time(
        self,
        seconds: float,
        from_block_time: str | datetime | None = None,
    ) -> int:
        """
        Move the chain clock forward by at least seconds.

        See TimeTravelController.add_time for the accuracy caveats.
        """
        return await self.time_travel.add_time(seconds, from_block_time)
