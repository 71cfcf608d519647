"""
Transaction submission, receipt polling and log queries against the
insurance contract.
"""
import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Union

from web3 import Web3

from . import abi
from .config import ClientConfig, ContractInterface
from .exceptions import RpcTransportError, TransactionRevertedError
from .models import LogEntry, TxReceipt
from .transport import RpcTransport
from .waiter import Clock, ReceiptWaiter

BlockRef = Union[int, str, None]


def to_quantity(value: int) -> str:
    """Hex-encode a non-negative integer the way JSON-RPC expects quantities."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"Quantity must be a non-negative integer, got {value!r}")
    return hex(value)


def _block_param(block: BlockRef, default: str) -> str:
    if block is None:
        return default
    if isinstance(block, str):
        return block
    return to_quantity(block)


class TransactionOrchestrator:
    """
    Builds, submits and tracks transactions to the configured contract.

    All state is the injected configuration and transport; the orchestrator
    keeps no ledger and takes no locks. Ordering of concurrent transactions
    is left to the node.
    """

    def __init__(
        self,
        transport: RpcTransport,
        config: ClientConfig,
        contract: Optional[ContractInterface] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the orchestrator

        Args:
            transport: JSON-RPC transport
            config: Immutable client configuration
            contract: Contract interface (defaults to the bundled insurance ABI)
            clock: Time source for receipt polling
            logger: Optional logger instance
        """
        self.transport = transport
        self.config = config
        self.contract = contract or ContractInterface.default()
        self.logger = logger or logging.getLogger(__name__)
        self.waiter = ReceiptWaiter(
            self.get_receipt,
            clock=clock,
            max_attempts=config.receipt_max_attempts,
            poll_interval=config.receipt_poll_interval,
            deadline=config.receipt_deadline,
            logger=self.logger,
        )

    @property
    def contract_address(self) -> str:
        return self.config.contract_address

    def resolve_sender(self, sender: Optional[str] = None) -> str:
        """
        Pick the ``from`` account for a transaction.

        Order: explicit sender, configured default account, first node account.

        Raises:
            ValueError: If no account can be found or the address is malformed
        """
        if sender:
            if not Web3.is_address(sender):
                raise ValueError(f"Invalid sender address: {sender}")
            return sender
        if self.config.default_account:
            return self.config.default_account
        accounts = self.transport.call("eth_accounts", []) or []
        if not accounts:
            raise ValueError("No accounts found on the node")
        return accounts[0]

    def encode(self, function_name: str, args: Sequence[Any]) -> str:
        """Resolve a function by name (or full signature) and return its calldata."""
        signature = self.contract.signature(function_name)
        return abi.encode_call(signature, args).calldata

    def submit(
        self,
        function_name: str,
        args: Sequence[Any],
        sender: Optional[str] = None,
        value: Optional[int] = None,
        gas_limit: Optional[int] = None
    ) -> str:
        """
        Send a contract transaction through ``eth_sendTransaction``

        Args:
            function_name: ABI function name or full signature
            args: Arguments in declaration order
            sender: Unlocked account to send from
            value: Wei to attach (only for payable calls such as premiums)
            gas_limit: Gas limit override

        Returns:
            Transaction hash

        Raises:
            EncodingError: If the arguments cannot be encoded
            RpcTransportError: If the node cannot be reached
            RpcProtocolError: If the node rejects the transaction
        """
        # Encode first so bad input never reaches the node
        data = self.encode(function_name, args)
        transaction: Dict[str, str] = {
            "from": self.resolve_sender(sender),
            "to": self.contract_address,
            "data": data,
            "gas": to_quantity(gas_limit if gas_limit is not None else self.config.gas_limit),
        }
        if value:
            transaction["value"] = to_quantity(int(value))

        tx_hash = self.transport.call("eth_sendTransaction", [transaction])
        self.logger.info(f"Transaction sent: {tx_hash} ({function_name})")
        return tx_hash

    def get_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Raw receipt for a transaction, or None while it is pending."""
        return self.transport.call("eth_getTransactionReceipt", [tx_hash])

    def await_mined(
        self,
        tx_hash: str,
        max_attempts: Optional[int] = None,
        poll_interval: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> TxReceipt:
        """
        Wait until a transaction is mined

        Args:
            tx_hash: Transaction hash returned by ``submit``
            max_attempts: Override the configured polling bound
            poll_interval: Override the configured interval in seconds
            cancel_event: Event that aborts the wait when set

        Returns:
            The parsed receipt

        Raises:
            TransactionTimeoutError: If no receipt appears within the bound
            WaitCancelledError: If the wait was cancelled
            TransactionRevertedError: If the receipt reports status 0
        """
        raw = self.waiter.wait(
            tx_hash,
            max_attempts=max_attempts,
            poll_interval=poll_interval,
            cancel_event=cancel_event,
        )
        receipt = TxReceipt.model_validate(raw)
        if not receipt.succeeded:
            self.logger.error(f"Transaction {tx_hash} reverted in block {receipt.block_number}")
            raise TransactionRevertedError(tx_hash, receipt)
        return receipt

    @staticmethod
    def extract_indexed_id(receipt: TxReceipt, log_index: int = 0, topic_index: int = 1) -> Optional[int]:
        """
        Read an entity id from an indexed event parameter.

        By contract convention the first indexed parameter of every domain
        event is the policy or claim id, so the default is ``logs[0].topics[1]``.

        Returns:
            The id, or None when the receipt has no such log or topic
        """
        if log_index < 0 or log_index >= len(receipt.logs):
            return None
        return abi.topic_to_int(receipt.logs[log_index], topic_index)

    def read(self, function_name: str, args: Sequence[Any]) -> str:
        """
        Side-effect free ``eth_call`` against the contract

        Returns:
            Raw hex result as returned by the node
        """
        data = self.encode(function_name, args)
        return self.transport.call("eth_call", [{"to": self.contract_address, "data": data}, "latest"])

    def get_logs(
        self,
        topics: Sequence[Optional[str]],
        from_block: BlockRef = None,
        to_block: BlockRef = None
    ) -> List[LogEntry]:
        """
        Query contract logs with ``eth_getLogs``

        Args:
            topics: Topic filter (topic0 first)
            from_block: Start block (default: genesis)
            to_block: End block (default: latest)

        Returns:
            Parsed log entries
        """
        log_filter = {
            "address": self.contract_address,
            "fromBlock": _block_param(from_block, "0x0"),
            "toBlock": _block_param(to_block, "latest"),
            "topics": list(topics),
        }
        raw_logs = self.transport.call("eth_getLogs", [log_filter]) or []
        if not isinstance(raw_logs, list):
            raise RpcTransportError(
                f"Malformed eth_getLogs result: expected a list, got {type(raw_logs).__name__}",
                method="eth_getLogs",
            )
        return [LogEntry.model_validate(entry) for entry in raw_logs]
