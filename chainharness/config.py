"""
Chain Harness Configuration

This module defines all configuration settings for the chain test harness:
the node container image, the RPC and wallet endpoints, the funding
parameters used for test accounts, and every retry ceiling and polling
interval used while waiting on the node.

Configuration is loaded from environment variables with defaults that match
a local single-producer development node.
"""

from pydantic import Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings


# Well-known EOSIO development key. Test accounts are created with it so the
# dev wallet can sign for every one of them.
DEFAULT_TEST_PUBLIC_KEY = "EOS6MRyAjQq8ud7hVNYcfnVPJqcVpscN5So8BhtHuGYqET5GDW5CV"


class HarnessConfig(BaseSettings):
    """
    Main configuration class for the chain harness.

    All settings can be overridden via environment variables prefixed with
    CHAIN_HARNESS_. For example, CHAIN_HARNESS_NODE_IMAGE sets node_image.
    """

    # Node container
    node_image: str = Field(
        default="waxteam/waxnode:latest",
        description="Docker image that runs a single-producer node with libfaketime",
    )
    node_rpc_container_port: int = Field(
        default=8888, description="HTTP RPC port inside the node container"
    )
    container_name_prefix: str = Field(
        default="chain-harness", description="Prefix for node container names"
    )
    faketime_file: str = Field(
        default="/etc/faketimerc",
        description="libfaketime control file inside the node container",
    )

    # Session ports
    port_range_min: int = Field(default=100, description="Lowest host port for a session")
    port_range_max: int = Field(
        default=10000, description="Upper bound (exclusive) for session host ports"
    )

    # RPC
    rpc_host: str = Field(default="127.0.0.1", description="Host used to reach the node RPC")
    use_container_ip: bool = Field(
        default=False,
        description="Reach the node via its container IP instead of rpc_host",
    )
    rpc_timeout: float = Field(default=30.0, description="HTTP timeout for RPC calls (seconds)")

    # Signing
    wallet_url: str = Field(
        default="http://127.0.0.1:8900", description="keosd wallet endpoint used for signing"
    )
    test_public_key: str = Field(
        default=DEFAULT_TEST_PUBLIC_KEY,
        description="Key the default keosd signer signs with; must be unlocked in the wallet",
    )

    # Chain accounts
    system_account: str = Field(default="eosio", description="Privileged funding identity")
    token_contract: str = Field(default="eosio.token", description="Native token contract")
    core_token_symbol: str = Field(default="WAX", description="Native token symbol")
    core_token_precision: int = Field(default=8, description="Native token decimal places")

    # Test account provisioning
    account_ram_bytes: int = Field(
        default=1024 * 1024, description="RAM bytes bought for each test account"
    )
    account_stake_net: float = Field(default=10, description="NET stake delegated per account")
    account_stake_cpu: float = Field(default=10, description="CPU stake delegated per account")
    account_supply_amount: float = Field(
        default=100, description="Native tokens transferred to each test account"
    )
    supply_memo: str = Field(default="supply to test account", description="Funding memo")
    test_account_count: int = Field(default=10, description="Default test account batch size")
    test_account_prefix: str = Field(default="acc", description="Test account name prefix")
    test_account_suffix: str = Field(default=".test", description="Test namespace marker")
    test_account_group_size: int = Field(
        default=5, description="Accounts per name group (second digit wraps at this size)"
    )

    # Retry ceilings
    chain_start_max_retries: int = Field(
        default=10, description="Attempts to observe block production after start"
    )
    chain_start_interval: float = Field(
        default=1.0, description="Delay between chain start attempts (seconds)"
    )
    system_ready_max_retries: int = Field(
        default=15, description="Attempts to observe an initialized system contract"
    )
    system_ready_interval: float = Field(
        default=2.0, description="Delay between system contract checks (seconds)"
    )
    system_ready_settle: float = Field(
        default=1.0, description="Settle delay once the system contract is ready (seconds)"
    )
    time_jump_max_tries: int = Field(
        default=10, description="Time jumps attempted before giving up"
    )
    time_jump_settle: float = Field(
        default=1.0, description="Delay after each time jump before probing (seconds)"
    )

    # Polling
    production_probe_interval: float = Field(
        default=0.6, description="Gap between the two head samples of a production probe"
    )
    block_poll_interval: float = Field(
        default=0.5, description="Head block polling interval (seconds)"
    )
    block_interval_seconds: float = Field(
        default=0.5,
        description="Nominal block interval, used to discount time that passes while settling",
    )
    settle_blocks: int = Field(
        default=2, description="Blocks waited before and after a time jump"
    )

    # Transactions
    tx_expire_seconds: int = Field(default=120, description="Transaction expiration window")
    tx_blocks_behind: int = Field(default=3, description="TAPOS reference depth")

    # Logging
    log_level: str = Field(default="INFO", description="Log level for configure_logging")
    log_json: bool = Field(default=False, description="Render logs as JSON")

    @field_validator(
        "chain_start_max_retries",
        "system_ready_max_retries",
        "time_jump_max_tries",
        "settle_blocks",
        "test_account_group_size",
    )
    @classmethod
    def validate_positive_count(cls, v: int, info: ValidationInfo) -> int:
        """Retry ceilings and block counts must allow at least one attempt."""
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    @field_validator(
        "chain_start_interval",
        "system_ready_interval",
        "time_jump_settle",
        "production_probe_interval",
        "block_poll_interval",
        "block_interval_seconds",
        "rpc_timeout",
    )
    @classmethod
    def validate_positive_interval(cls, v: float, info: ValidationInfo) -> float:
        """Intervals must be positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be greater than zero")
        return v

    @model_validator(mode="after")
    def validate_port_range(self) -> "HarnessConfig":
        """The session port range must be non-empty and inside 1..65535."""
        if not 1 <= self.port_range_min < self.port_range_max <= 65536:
            raise ValueError(
                f"Invalid port range [{self.port_range_min}, {self.port_range_max})"
            )
        return self

    model_config = {
        "env_prefix": "CHAIN_HARNESS_",
        "env_file": ".env",
        "extra": "ignore",
    }


# Singleton instance for global access
_config: HarnessConfig | None = None


def get_harness_config() -> HarnessConfig:
    """
    Get the global harness configuration instance.

    Loaded from the environment on first use.
    """
    global _config
    if _config is None:
        _config = HarnessConfig()
    return _config


def configure_harness(config: HarnessConfig | None) -> None:
    """
    Set a custom configuration instance.

    Useful for testing or when configuration needs to be loaded from a
    non-standard source. Passing None resets to environment loading.
    """
    global _config
    _config = config
