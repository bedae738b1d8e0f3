"""
Test Accounts

Creates and funds the identities tests act as. Every account is created by
one transaction of four system actions (newaccount, buyrambytes, delegatebw
and a token transfer) paid for by the privileged funding identity, so an
account either exists fully funded or not at all.

Accounts are created one at a time. All of them are authorized by the same
funding identity, and submitting its actions concurrently risks duplicate
transaction rejections.
"""

from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog

from .chains.rpc_client import ChainRpcClient
from .config import HarnessConfig, get_harness_config
from .errors import ChainHarnessError, ProvisioningError
from .models import (
    AccountResources,
    Action,
    Authority,
    CoreToken,
    PermissionLevel,
    TransactOptions,
    TransactResult,
)

if TYPE_CHECKING:
    from .session import ChainSession

logger = structlog.get_logger(__name__)


def default_account_names(
    count: int,
    prefix: str = "acc",
    suffix: str = ".test",
    group_size: int = 5,
) -> list[str]:
    """
    Deterministic test account names.

    Index i maps to group i // group_size + 1 and slot i % group_size + 1,
    so the default batch of 10 is acc11.test ... acc15.test, acc21.test ...
    acc25.test. Digits stay within 1-5, which keeps names valid on chain.
    """
    return [
        f"{prefix}{i // group_size + 1}{i % group_size + 1}{suffix}"
        for i in range(count)
    ]


class Account:
    """
    A funded test identity on a session's chain.

    Only valid for the session that created it. It is never destroyed on
    its own; it goes away with the session's node.
    """

    def __init__(self, session: "ChainSession", name: str, public_key: str) -> None:
        self.session = session
        self.name = name
        self.public_key = public_key

    def __repr__(self) -> str:
        return f"Account({self.name!r})"

    def action(
        self,
        contract: str,
        name: str,
        data: dict[str, Any],
        permission: str = "active",
    ) -> Action:
        """Build an action authorized by this account."""
        return Action(
            account=contract,
            name=name,
            authorization=[PermissionLevel(actor=self.name, permission=permission)],
            data=data,
        )

    async def push_action(
        self,
        contract: str,
        name: str,
        data: dict[str, Any],
        permission: str = "active",
        options: TransactOptions | None = None,
    ) -> TransactResult:
        """Submit a single action authorized by this account."""
        return await self.session.push_action(
            self.action(contract, name, data, permission), options
        )

    async def get_balance(self, symbol: str | None = None) -> Decimal:
        """Native token balance (or another symbol on the token contract)."""
        token = self.session.core_token
        symbol = symbol or token.symbol
        balances = await self.session.rpc.get_currency_balance(
            self.session.config.token_contract, self.name, symbol
        )
        for balance in balances:
            amount, _, balance_symbol = balance.partition(" ")
            if balance_symbol == symbol:
                return Decimal(amount)
        return Decimal(0)

    async def get_resources(self) -> AccountResources:
        """RAM, NET and CPU allocations for this account."""
        return AccountResources.from_rpc(await self.session.rpc.get_account(self.name))


class AccountProvisioner:
    """Creates funded test accounts through the privileged funding identity."""

    def __init__(
        self,
        rpc: ChainRpcClient,
        core_token: CoreToken,
        public_key: str,
        config: HarnessConfig | None = None,
    ) -> None:
        self.rpc = rpc
        self.core_token = core_token
        self.public_key = public_key
        self.config = config or get_harness_config()

    def build_create_actions(
        self,
        name: str,
        supply_amount: float | None = None,
        ram_bytes: int | None = None,
    ) -> list[Action]:
        """
        The four actions that create and fund one account, in order.

        1. newaccount: owner and active set to the shared test key
        2. buyrambytes: RAM paid by the funding identity
        3. delegatebw: NET/CPU stake, ownership transferred to the account
        4. transfer: native tokens from the funding identity
        """
        system = self.config.system_account
        auth = [PermissionLevel(actor=system, permission="active")]
        authority = Authority.single_key(self.public_key).model_dump()
        supply = supply_amount if supply_amount is not None else self.config.account_supply_amount

        return [
            Action(
                account=system,
                name="newaccount",
                authorization=auth,
                data={
                    "creator": system,
                    "name": name,
                    "owner": authority,
                    "active": authority,
                },
            ),
            Action(
                account=system,
                name="buyrambytes",
                authorization=auth,
                data={
                    "payer": system,
                    "receiver": name,
                    "bytes": ram_bytes if ram_bytes is not None else self.config.account_ram_bytes,
                },
            ),
            Action(
                account=system,
                name="delegatebw",
                authorization=auth,
                data={
                    "from": system,
                    "receiver": name,
                    "stake_net_quantity": self.core_token.quantity(self.config.account_stake_net),
                    "stake_cpu_quantity": self.core_token.quantity(self.config.account_stake_cpu),
                    "transfer": 1,
                },
            ),
            Action(
                account=self.config.token_contract,
                name="transfer",
                authorization=auth,
                data={
                    "from": system,
                    "to": name,
                    "quantity": self.core_token.quantity(supply),
                    "memo": self.config.supply_memo,
                },
            ),
        ]

    async def create_account(
        self,
        session: "ChainSession",
        name: str,
        supply_amount: float | None = None,
        ram_bytes: int | None = None,
    ) -> Account:
        """
        Create and fund one account in a single transaction.

        Raises:
            ProvisioningError: If the transaction fails. No partial account
                               is cleaned up; the transaction is atomic.
        """
        actions = self.build_create_actions(name, supply_amount, ram_bytes)
        try:
            await self.rpc.transact(
                actions,
                TransactOptions(
                    expire_seconds=self.config.tx_expire_seconds,
                    blocks_behind=self.config.tx_blocks_behind,
                ),
            )
        except ChainHarnessError as e:
            raise ProvisioningError(f"Failed to create account {name}: {e}", account=name) from e

        logger.debug("test_account_created", account=name)
        return Account(session, name, self.public_key)

    async def create_accounts(
        self,
        session: "ChainSession",
        names: list[str],
        supply_amount: float | None = None,
    ) -> list[Account]:
        """Create accounts one after another. The first failure aborts the batch."""
        accounts: list[Account] = []
        for name in names:
            accounts.append(await self.create_account(session, name, supply_amount))
        return accounts

    async def create_test_accounts(
        self,
        session: "ChainSession",
        count: int | None = None,
    ) -> list[Account]:
        """Create the default, deterministically named test account batch."""
        names = default_account_names(
            count if count is not None else self.config.test_account_count,
            prefix=self.config.test_account_prefix,
            suffix=self.config.test_account_suffix,
            group_size=self.config.test_account_group_size,
        )
        accounts = await self.create_accounts(session, names)
        logger.info("test_accounts_created", count=len(accounts))
        return accounts
