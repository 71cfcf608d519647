"""
Exceptions for the InsureChain SDK.
"""
import re
from typing import Any, Optional

_REVERT_RE = re.compile(r"revert(?:ed)?:?\s*(?P<reason>.*)$", re.IGNORECASE)


class InsureChainError(Exception):
    """Base exception for all InsureChain SDK errors."""
    pass


class RpcTransportError(InsureChainError):
    """Raised when the node cannot be reached or answers with garbage.

    These failures are transient by nature and may be retried by the caller.
    """

    retryable = True

    def __init__(self, message: str, method: Optional[str] = None):
        self.method = method
        super().__init__(message)


class RpcProtocolError(InsureChainError):
    """Raised when the node returns a JSON-RPC ``error`` member.

    Contract reverts land here; retrying them is never correct.
    """

    retryable = False

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Any = None,
        method: Optional[str] = None
    ):
        self.message = message
        self.code = code
        self.data = data
        self.method = method
        self.revert_reason = self._find_revert_reason(message, data)
        super().__init__(message)

    @staticmethod
    def _find_revert_reason(message: str, data: Any) -> Optional[str]:
        """
        Pull a revert reason out of the node's error payload.

        Ganache reports ``{"<txhash>": {"error": "revert", "reason": "..."}}``
        in ``data``; geth-like nodes put it in the message.
        """
        if isinstance(data, dict):
            if isinstance(data.get("reason"), str):
                return data["reason"]
            for entry in data.values():
                if isinstance(entry, dict) and isinstance(entry.get("reason"), str):
                    return entry["reason"]

        match = _REVERT_RE.search(message or "")
        if match:
            reason = match.group("reason").strip()
            return reason or None
        return None

    def __str__(self) -> str:
        base = super().__str__()
        if self.code is not None:
            return f"{base} (code {self.code})"
        return base


class EncodingError(InsureChainError, ValueError):
    """Raised when a value cannot be ABI-encoded for its declared type."""

    def __init__(self, message: str, abi_type: Optional[str] = None, value: Any = None):
        self.abi_type = abi_type
        self.value = value
        super().__init__(message)


class DecodingError(InsureChainError, ValueError):
    """Raised when ABI data returned by the node cannot be decoded."""

    def __init__(self, message: str, abi_type: Optional[str] = None):
        self.abi_type = abi_type
        super().__init__(message)


class TransactionTimeoutError(InsureChainError):
    """Raised when a transaction is not mined within the polling bound."""

    def __init__(self, tx_hash: str, attempts: int, elapsed: float):
        self.tx_hash = tx_hash
        self.attempts = attempts
        self.elapsed = elapsed
        super().__init__(
            f"Transaction {tx_hash} not mined after {attempts} attempts ({elapsed:.1f}s)"
        )


class WaitCancelledError(InsureChainError):
    """Raised when the caller cancels a pending receipt wait."""

    def __init__(self, tx_hash: str, attempts: int):
        self.tx_hash = tx_hash
        self.attempts = attempts
        super().__init__(f"Wait for transaction {tx_hash} cancelled after {attempts} attempts")


class TransactionRevertedError(InsureChainError):
    """Raised when a transaction was mined but its receipt reports failure."""

    def __init__(self, tx_hash: str, receipt: Any = None):
        self.tx_hash = tx_hash
        self.receipt = receipt
        super().__init__(f"Transaction {tx_hash} was mined with status 0")


class ConversionError(InsureChainError, ValueError):
    """Raised when a monetary amount cannot be converted safely."""

    def __init__(self, message: str, amount: Any = None):
        self.amount = amount
        super().__init__(message)
