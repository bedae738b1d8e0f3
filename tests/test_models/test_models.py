"""
Tests for harness models and configuration.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from chainharness.config import HarnessConfig, configure_harness, get_harness_config
from chainharness.errors import RpcError
from chainharness.models import (
    AccountResources,
    Authority,
    ChainInfo,
    CoreToken,
    block_time_to_ms,
    parse_block_time,
)


class TestBlockTime:
    """Tests for block timestamp parsing."""

    def test_naive_string_is_utc(self) -> None:
        assert parse_block_time("2024-05-01T12:00:00.500") == datetime(
            2024, 5, 1, 12, 0, 0, 500000, tzinfo=UTC
        )

    def test_trailing_z(self) -> None:
        assert parse_block_time("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 12, tzinfo=UTC)

    def test_to_ms(self) -> None:
        assert block_time_to_ms("1970-01-01T00:00:01.500") == 1500
        assert block_time_to_ms(datetime(1970, 1, 1, 0, 0, 2, tzinfo=UTC)) == 2000

    def test_chain_info(self) -> None:
        info = ChainInfo(head_block_num=7, head_block_time="1970-01-01T00:00:03.000")

        assert info.head_block_time.tzinfo is UTC
        assert info.head_block_time_ms == 3000


class TestCoreToken:
    """Tests for native token formatting."""

    def test_quantity(self) -> None:
        token = CoreToken(symbol="WAX", precision=8)

        assert token.quantity(100) == "100.00000000 WAX"
        assert token.quantity(0.5) == "0.50000000 WAX"
        assert token.quantity(Decimal("1.23")) == "1.23000000 WAX"

    def test_quantity_precision_four(self) -> None:
        assert CoreToken(symbol="EOS", precision=4).quantity(10) == "10.0000 EOS"

    def test_parse(self) -> None:
        token = CoreToken()

        assert token.parse("100.00000000 WAX") == Decimal("100")

    def test_parse_wrong_symbol(self) -> None:
        with pytest.raises(ValueError):
            CoreToken().parse("1.0000 EOS")


class TestAuthority:
    def test_single_key(self) -> None:
        assert Authority.single_key("EOS_KEY").model_dump() == {
            "threshold": 1,
            "keys": [{"key": "EOS_KEY", "weight": 1}],
            "accounts": [],
            "waits": [],
        }


class TestAccountResources:
    def test_from_rpc_defaults(self) -> None:
        resources = AccountResources.from_rpc({"account_name": "acc11.test"})

        assert resources.ram_quota == 0
        assert resources.core_liquid_balance is None


class TestRpcError:
    def test_without_body(self) -> None:
        error = RpcError("boom", status_code=502)

        assert error.code is None
        assert error.detail_messages == []


class TestHarnessConfig:
    """Tests for HarnessConfig."""

    def test_defaults(self) -> None:
        config = HarnessConfig(_env_file=None)

        assert config.chain_start_max_retries == 10
        assert config.chain_start_interval == 1.0
        assert config.system_ready_max_retries == 15
        assert config.system_ready_interval == 2.0
        assert config.time_jump_max_tries == 10
        assert config.block_interval_seconds == 0.5
        assert config.settle_blocks == 2
        assert config.test_account_count == 10
        assert config.account_supply_amount == 100
        assert (config.port_range_min, config.port_range_max) == (100, 10000)

    def test_env_override(self, monkeypatch) -> None:
        monkeypatch.setenv("CHAIN_HARNESS_TIME_JUMP_MAX_TRIES", "3")
        monkeypatch.setenv("CHAIN_HARNESS_NODE_IMAGE", "eosio/eos:v2.0.13")

        config = HarnessConfig(_env_file=None)

        assert config.time_jump_max_tries == 3
        assert config.node_image == "eosio/eos:v2.0.13"

    def test_invalid_retry_ceiling(self) -> None:
        with pytest.raises(ValidationError):
            HarnessConfig(_env_file=None, chain_start_max_retries=0)

    def test_invalid_interval(self) -> None:
        with pytest.raises(ValidationError):
            HarnessConfig(_env_file=None, block_poll_interval=0)

    def test_invalid_port_range(self) -> None:
        with pytest.raises(ValidationError):
            HarnessConfig(_env_file=None, port_range_min=5000, port_range_max=5000)

    def test_singleton(self) -> None:
        config = HarnessConfig(_env_file=None, log_level="DEBUG")
        configure_harness(config)
        try:
            assert get_harness_config() is config
        finally:
            configure_harness(None)
