"""
Chain Harness Exceptions

Every failure the harness surfaces derives from ChainHarnessError so tests
can catch harness problems separately from their own assertions.

Readiness and time-jump errors are raised only after a bounded retry budget
is exhausted. RPC and transaction errors are raised as soon as they occur.
"""

from typing import Any


class ChainHarnessError(Exception):
    """Base exception for chain harness errors."""
    pass


class InvalidArgumentError(ChainHarnessError, ValueError):
    """Raised when an operation is called with an argument it cannot accept."""
    pass


class ReadinessTimeoutError(ChainHarnessError):
    """Raised when the node does not become ready within its retry budget."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class ChainStartTimeoutError(ReadinessTimeoutError):
    """Raised when the node never starts producing blocks."""
    pass


class SystemContractTimeoutError(ReadinessTimeoutError):
    """Raised when the system contract never finishes initializing."""
    pass


class TimeJumpError(ChainHarnessError):
    """
    Raised when block production does not resume after a time jump.

    The session's time control is unusable after this. The attempted offset
    is not rolled back on the node.
    """

    def __init__(self, message: str, attempts: int, offset_seconds: int) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.offset_seconds = offset_seconds


class ProvisioningError(ChainHarnessError):
    """Raised when a test account could not be created and funded."""

    def __init__(self, message: str, account: str) -> None:
        super().__init__(message)
        self.account = account


# ==================== RPC Errors ====================


class ChainClientError(ChainHarnessError):
    """Base exception for node RPC errors."""
    pass


class RpcConnectionError(ChainClientError):
    """Raised when the node RPC cannot be reached."""
    pass


class RpcError(ChainClientError):
    """
    Raised when the node answers an RPC call with an error.

    nodeos error bodies look like:
        {"code": 500, "message": "...",
         "error": {"code": 3050003, "name": "eosio_assert_message_exception",
                   "what": "...", "details": [{"message": "..."}]}}
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body or {}
        error = self.body.get("error")
        if not isinstance(error, dict):
            error = {}
        self.code: int | None = error.get("code")
        self.error_name: str | None = error.get("name")
        self.what: str | None = error.get("what")
        self.details: list[dict[str, Any]] = error.get("details") or []

    @property
    def detail_messages(self) -> list[str]:
        """The human-readable detail messages reported by the node."""
        return [d.get("message", "") for d in self.details if isinstance(d, dict)]


class TransactionFailedError(RpcError):
    """Raised when the node rejects a pushed transaction."""
    pass


class SigningError(ChainHarnessError):
    """Raised when the wallet fails to sign a transaction."""
    pass


# ==================== Node Controller Errors ====================


class NodeControllerError(ChainHarnessError):
    """Raised when the node container cannot be started, stopped or driven."""
    pass


class PortInUseError(NodeControllerError):
    """Raised when a session port is already taken. Retry setup with a new port."""

    def __init__(self, message: str, port: int) -> None:
        super().__init__(message)
        self.port = port
