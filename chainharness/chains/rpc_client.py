"""
Node RPC Client

Thin async wrapper over a single node's HTTP RPC (chain_api_plugin). It
issues read queries, builds TAPOS-referenced transactions, has them signed
by the injected signer and pushes them.

The client holds no chain state and never retries. Transport failures raise
RpcConnectionError, node-reported errors raise RpcError (or
TransactionFailedError for pushes) and it is up to the caller to decide
whether to retry.
"""

from datetime import timedelta
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from ..errors import RpcConnectionError, RpcError, TransactionFailedError
from ..models import Action, ChainInfo, TransactOptions, TransactResult
from .signer import TransactionSigner

logger = structlog.get_logger(__name__)


class ChainRpcClient:
    """
    Client for one running node instance.

    Usage:
        async with ChainRpcClient("http://127.0.0.1:8888", signer) as rpc:
            info = await rpc.get_info()
            await rpc.transact([action])
    """

    def __init__(
        self,
        endpoint: str,
        signer: TransactionSigner,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the RPC client.

        Args:
            endpoint: Base URL of the node, e.g. http://127.0.0.1:8888
            signer: Signer used for every transaction this client submits
            timeout: HTTP timeout in seconds
            http_client: Optional pre-built client (tests inject a mock transport)
        """
        self.endpoint = endpoint.rstrip("/")
        self.signer = signer
        self._timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

    async def initialize(self) -> None:
        """Create the HTTP client if one was not injected."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.endpoint,
                timeout=self._timeout,
            )
            self._owns_client = True

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "ChainRpcClient":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _call(
        self,
        path: str,
        body: Any = None,
        error_class: type[RpcError] = RpcError,
    ) -> Any:
        """POST body to path and return the decoded JSON response."""
        if self._http_client is None:
            await self.initialize()
        client: Any = self._http_client

        url = f"{self.endpoint}{path}"
        try:
            response = await client.post(url, json=body if body is not None else {})
        except httpx.TransportError as e:
            raise RpcConnectionError(f"Node at {self.endpoint} unreachable: {e}") from e

        if response.status_code >= 400:
            try:
                error_body = response.json()
            except ValueError:
                error_body = {"message": response.text}
            if not isinstance(error_body, dict):
                error_body = {"message": response.text}
            error = error_body.get("error")
            if not isinstance(error, dict):
                error = {}
            message = error.get("what") or error_body.get("message") or response.text
            details = "; ".join(
                d.get("message", "") for d in error.get("details") or [] if isinstance(d, dict)
            )
            if details:
                message = f"{message}: {details}"
            raise error_class(
                f"{path} failed (HTTP {response.status_code}): {message}",
                status_code=response.status_code,
                body=error_body,
            )

        try:
            return response.json()
        except ValueError as e:
            raise error_class(
                f"{path} returned a non-JSON response (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from e

    # ==================== Read Operations ====================

    async def get_info(self) -> ChainInfo:
        """Get the node's head block number and time."""
        result = await self._call("/v1/chain/get_info")
        try:
            return ChainInfo.model_validate(result)
        except ValidationError as e:
            raise RpcError(f"/v1/chain/get_info returned an unexpected body: {e}") from e

    async def head_block_num(self) -> int:
        """Get the current head block number."""
        return (await self.get_info()).head_block_num

    async def get_block(self, block_num_or_id: int | str) -> dict[str, Any]:
        """Get a block by number or id."""
        result: dict[str, Any] = await self._call(
            "/v1/chain/get_block", {"block_num_or_id": block_num_or_id}
        )
        return result

    async def get_table_rows(
        self,
        code: str,
        table: str,
        scope: str,
        *,
        json: bool = True,
        limit: int = 10,
        lower_bound: str | None = None,
        upper_bound: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Get the raw rows of a contract table.

        Args:
            code: Contract account owning the table
            table: Table name
            scope: Table scope
            json: Ask the node to decode rows with the contract ABI
            limit: Maximum rows to return
            lower_bound: Optional primary key lower bound
            upper_bound: Optional primary key upper bound

        Returns:
            The rows as returned by the node
        """
        body: dict[str, Any] = {
            "json": json,
            "code": code,
            "table": table,
            "scope": scope,
            "limit": limit,
        }
        if lower_bound is not None:
            body["lower_bound"] = lower_bound
        if upper_bound is not None:
            body["upper_bound"] = upper_bound

        result = await self._call("/v1/chain/get_table_rows", body)
        if not isinstance(result, dict):
            raise RpcError("/v1/chain/get_table_rows returned an unexpected body", body={})
        rows: list[dict[str, Any]] = result.get("rows", [])
        return rows

    async def get_account(self, name: str) -> dict[str, Any]:
        """Get an account's permissions and resource limits."""
        result: dict[str, Any] = await self._call(
            "/v1/chain/get_account", {"account_name": name}
        )
        return result

    async def get_currency_balance(
        self,
        code: str,
        account: str,
        symbol: str | None = None,
    ) -> list[str]:
        """Get an account's token balances on a token contract."""
        body: dict[str, Any] = {"code": code, "account": account}
        if symbol:
            body["symbol"] = symbol
        balances: list[str] = await self._call("/v1/chain/get_currency_balance", body)
        return balances

    async def abi_json_to_bin(self, code: str, action: str, args: dict[str, Any]) -> str:
        """Serialize action data to hex using the contract ABI on the node."""
        result = await self._call(
            "/v1/chain/abi_json_to_bin",
            {"code": code, "action": action, "args": args},
        )
        binargs: str = result["binargs"]
        return binargs

    # ==================== Transactions ====================

    async def push_transaction(self, envelope: dict[str, Any]) -> dict[str, Any]:
        """Push a signed transaction envelope."""
        result: dict[str, Any] = await self._call(
            "/v1/chain/push_transaction",
            envelope,
            error_class=TransactionFailedError,
        )
        return result

    async def transact(
        self,
        actions: list[Action | dict[str, Any]],
        options: TransactOptions | None = None,
    ) -> TransactResult:
        """
        Build, sign and (optionally) broadcast a transaction.

        TAPOS fields reference the block `blocks_behind` below head, and the
        expiration is head block time plus `expire_seconds`.

        Args:
            actions: Actions to include, in order
            options: Build/submit options (defaults to broadcast + sign)

        Returns:
            TransactResult with the receipt, or only the envelope when
            broadcast is disabled
        """
        options = options or TransactOptions()
        info = await self.get_info()

        ref_block_num = max(info.head_block_num - options.blocks_behind, 1)
        ref_block = await self.get_block(ref_block_num)
        expiration = info.head_block_time + timedelta(seconds=options.expire_seconds)

        serialized = []
        for raw in actions:
            action = raw if isinstance(raw, Action) else Action.model_validate(raw)
            serialized.append({
                "account": action.account,
                "name": action.name,
                "authorization": [p.model_dump() for p in action.authorization],
                "data": await self.abi_json_to_bin(action.account, action.name, action.data),
            })

        transaction: dict[str, Any] = {
            "expiration": expiration.strftime("%Y-%m-%dT%H:%M:%S"),
            "ref_block_num": ref_block["block_num"] & 0xFFFF,
            "ref_block_prefix": ref_block["ref_block_prefix"],
            "max_net_usage_words": 0,
            "max_cpu_usage_ms": 0,
            "delay_sec": 0,
            "context_free_actions": [],
            "actions": serialized,
            "transaction_extensions": [],
        }

        signatures: list[str] = []
        if options.sign:
            signatures = await self.signer.sign(transaction, info.chain_id)

        envelope = {
            "signatures": signatures,
            "compression": "none",
            "packed_context_free_data": "",
            "transaction": transaction,
        }

        if not options.broadcast:
            return TransactResult(envelope=envelope)

        receipt = await self.push_transaction(envelope)
        logger.debug(
            "transaction_pushed",
            transaction_id=receipt.get("transaction_id"),
            actions=[f"{a['account']}::{a['name']}" for a in serialized],
        )
        return TransactResult(
            transaction_id=receipt.get("transaction_id"),
            processed=receipt.get("processed"),
            envelope=envelope,
        )
