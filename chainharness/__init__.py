"""
Chain Harness

Integration-test harness for ephemeral EOSIO-family nodes: start a node in
Docker, wait for it to produce, fund test accounts, submit transactions and
move the chain clock forward on demand.

Usage:
    from chainharness import ChainSession

    async def test_expiry():
        async with await ChainSession.setup() as chain:
            await chain.add_time(24 * 3600)
"""

from .accounts import Account, AccountProvisioner, default_account_names
from .chains import ChainRpcClient, KeosdSigner, TransactionSigner
from .config import HarnessConfig, configure_harness, get_harness_config
from .errors import (
    ChainClientError,
    ChainHarnessError,
    ChainStartTimeoutError,
    InvalidArgumentError,
    NodeControllerError,
    PortInUseError,
    ProvisioningError,
    ReadinessTimeoutError,
    RpcConnectionError,
    RpcError,
    SigningError,
    SystemContractTimeoutError,
    TimeJumpError,
    TransactionFailedError,
)
from .models import (
    AccountResources,
    Action,
    Authority,
    ChainInfo,
    CoreToken,
    PermissionLevel,
    SettleResult,
    TransactOptions,
    TransactResult,
)
from .monitor import BlockProductionMonitor
from .node import DockerNodeController, NodeController
from .session import ChainSession
from .time_travel import TimeTravelController

__version__ = "0.1.0"

__all__ = [
    # Session
    "ChainSession",
    "Account",
    "AccountProvisioner",
    "default_account_names",
    # Components
    "BlockProductionMonitor",
    "TimeTravelController",
    "ChainRpcClient",
    "KeosdSigner",
    "TransactionSigner",
    "DockerNodeController",
    "NodeController",
    # Config
    "HarnessConfig",
    "get_harness_config",
    "configure_harness",
    # Models
    "AccountResources",
    "Action",
    "Authority",
    "ChainInfo",
    "CoreToken",
    "PermissionLevel",
    "SettleResult",
    "TransactOptions",
    "TransactResult",
    # Errors
    "ChainHarnessError",
    "InvalidArgumentError",
    "ReadinessTimeoutError",
    "ChainStartTimeoutError",
    "SystemContractTimeoutError",
    "TimeJumpError",
    "ProvisioningError",
    "ChainClientError",
    "RpcConnectionError",
    "RpcError",
    "TransactionFailedError",
    "SigningError",
    "NodeControllerError",
    "PortInUseError",
]
