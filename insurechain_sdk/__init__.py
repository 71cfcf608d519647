"""
InsureChain SDK - client for an Ethereum-compatible insurance contract.
"""
from .client import InsuranceClient
from .config import ClientConfig, ContractInterface
from .currency import CurrencyConverter, ether_to_wei, wei_to_ether
from .exceptions import (
    InsureChainError, RpcTransportError, RpcProtocolError, EncodingError, DecodingError,
    TransactionTimeoutError, WaitCancelledError, TransactionRevertedError, ConversionError
)
from .models import (
    TxReceipt, LogEntry, EncodedCall, Policy, Claim,
    PolicyCreation, PremiumPayment, ClaimFiling, ClaimAdjudication
)
from .orchestrator import TransactionOrchestrator
from .transport import HttpRpcTransport, RpcTransport
from .waiter import ReceiptWaiter, SystemClock
from .version import __version__

__all__ = [
    "InsuranceClient",
    "ClientConfig",
    "ContractInterface",
    "CurrencyConverter",
    "ether_to_wei",
    "wei_to_ether",
    "InsureChainError",
    "RpcTransportError",
    "RpcProtocolError",
    "EncodingError",
    "DecodingError",
    "TransactionTimeoutError",
    "WaitCancelledError",
    "TransactionRevertedError",
    "ConversionError",
    "TxReceipt",
    "LogEntry",
    "EncodedCall",
    "Policy",
    "Claim",
    "PolicyCreation",
    "PremiumPayment",
    "ClaimFiling",
    "ClaimAdjudication",
    "TransactionOrchestrator",
    "HttpRpcTransport",
    "RpcTransport",
    "ReceiptWaiter",
    "SystemClock",
    "__version__",
]
