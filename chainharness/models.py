"""
Chain Harness Models

Data structures exchanged with the node RPC and handed back to test code:
chain head snapshots, native token quantities, authorities and actions,
transaction results and account resource summaries.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def parse_block_time(value: str | datetime) -> datetime:
    """
    Parse a node block timestamp.

    nodeos reports block times as naive ISO strings in UTC
    (e.g. "2024-05-01T12:00:00.500"). Naive values are treated as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.rstrip("Z"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def block_time_to_ms(value: str | datetime) -> int:
    """Convert a block timestamp to epoch milliseconds."""
    return int(parse_block_time(value).timestamp() * 1000)


class ChainInfo(BaseModel):
    """Snapshot of the node's head state as returned by get_info."""

    model_config = ConfigDict(extra="allow")

    head_block_num: int = Field(description="Most recent block known to the node")
    head_block_time: datetime = Field(description="Timestamp of the head block (UTC)")
    head_block_id: str = Field(default="", description="Head block id")
    chain_id: str = Field(default="", description="Chain id used when signing")
    last_irreversible_block_num: int = Field(default=0, description="LIB number")

    @field_validator("head_block_time", mode="before")
    @classmethod
    def validate_head_block_time(cls, v: Any) -> datetime:
        return parse_block_time(v)

    @property
    def head_block_time_ms(self) -> int:
        """Head block time as epoch milliseconds."""
        return block_time_to_ms(self.head_block_time)


class CoreToken(BaseModel):
    """The chain's native token."""

    symbol: str = Field(default="WAX", description="Token symbol")
    precision: int = Field(default=8, description="Decimal places")

    def quantity(self, amount: float | int | Decimal) -> str:
        """Format an amount as an asset string, e.g. '100.00000000 WAX'."""
        value = Decimal(str(amount)).quantize(Decimal(1).scaleb(-self.precision))
        return f"{value:.{self.precision}f} {self.symbol}"

    def parse(self, asset: str) -> Decimal:
        """Parse an asset string into its amount. The symbol must match."""
        amount, _, symbol = asset.strip().partition(" ")
        if symbol != self.symbol:
            raise ValueError(f"Expected {self.symbol} asset, got '{asset}'")
        return Decimal(amount)


class PermissionLevel(BaseModel):
    """An actor@permission pair authorizing an action."""

    actor: str
    permission: str = "active"


class KeyWeight(BaseModel):
    """A weighted public key within an authority."""

    key: str
    weight: int = 1


class Authority(BaseModel):
    """Account permission authority."""

    threshold: int = 1
    keys: list[KeyWeight] = Field(default_factory=list)
    accounts: list[dict[str, Any]] = Field(default_factory=list)
    waits: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def single_key(cls, public_key: str) -> "Authority":
        """Threshold-1 authority satisfied by one key."""
        return cls(threshold=1, keys=[KeyWeight(key=public_key, weight=1)])


class Action(BaseModel):
    """A contract action to be included in a transaction."""

    account: str = Field(description="Contract account")
    name: str = Field(description="Action name")
    authorization: list[PermissionLevel] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)


class TransactOptions(BaseModel):
    """Options controlling how a transaction is built and submitted."""

    broadcast: bool = True
    sign: bool = True
    expire_seconds: int = 120
    blocks_behind: int = 3


class TransactResult(BaseModel):
    """
    Outcome of a transaction submission.

    For broadcast transactions, transaction_id and processed come from the
    node's receipt. For non-broadcast calls, only the envelope is set.
    """

    transaction_id: str | None = None
    processed: dict[str, Any] | None = None
    envelope: dict[str, Any] | None = None


class AccountResources(BaseModel):
    """Resource summary for an account, built from get_account."""

    account_name: str
    ram_quota: int = 0
    net_weight: int = 0
    cpu_weight: int = 0
    core_liquid_balance: str | None = None

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "AccountResources":
        return cls(
            account_name=data["account_name"],
            ram_quota=int(data.get("ram_quota", 0)),
            net_weight=int(data.get("net_weight", 0)),
            cpu_weight=int(data.get("cpu_weight", 0)),
            core_liquid_balance=data.get("core_liquid_balance"),
        )


class SettleResult(BaseModel):
    """Result of waiting for a number of blocks to pass."""

    starting_block: ChainInfo
    elapsed_blocks: int
