"""
Node RPC Package

Async client for a single node's HTTP RPC plus the signer abstraction it
uses to authorize transactions.

Usage:
    from chainharness.chains import ChainRpcClient, KeosdSigner

    async def example():
        signer = KeosdSigner("http://127.0.0.1:8900", [public_key])
        async with ChainRpcClient("http://127.0.0.1:8888", signer) as rpc:
            head = await rpc.head_block_num()
"""

from .rpc_client import ChainRpcClient
from .signer import KeosdSigner, TransactionSigner

__all__ = [
    "ChainRpcClient",
    "KeosdSigner",
    "TransactionSigner",
]
