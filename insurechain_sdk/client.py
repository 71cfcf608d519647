"""
InsuranceClient - domain operations for the on-chain insurance contract.
"""
import logging
import threading
from datetime import datetime
from typing import Any, List, Optional, Sequence, Union

from pydantic import ValidationError
from web3 import Web3

from . import abi
from ._rate_limited_log import rate_limited_log
from .config import ClientConfig, ContractInterface
from .currency import Amount, CurrencyConverter
from .exceptions import DecodingError, InsureChainError, RpcProtocolError, RpcTransportError
from .models import (
    Claim, ClaimAdjudication, ClaimFiling, LogEntry, Policy, PolicyCreation, PremiumPayment
)
from .orchestrator import BlockRef, TransactionOrchestrator
from .transport import HttpRpcTransport, RpcTransport
from .waiter import Clock

POLICY_CREATED_EVENT = "PolicyCreated(uint256,address,uint256,uint256,uint256)"

# Return layouts used when the loaded ABI does not declare outputs
DEFAULT_POLICY_TYPES = ["address", "uint256", "uint256", "uint256", "uint256", "bool", "uint256"]
DEFAULT_CLAIM_TYPES = ["uint256", "address", "uint256", "string", "bool", "bool"]

Timestamp = Union[int, datetime]


def _check_id(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def _check_address(value: Any, name: str) -> str:
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValueError(f"{name} is not a valid address: {value!r}")
    return value


def _to_epoch(value: Timestamp) -> int:
    if isinstance(value, datetime):
        return int(value.timestamp())
    return _check_id(value, "timestamp")


class InsuranceClient:
    """
    Client for the insurance smart contract.

    This client handles:
    1. Opening policies and topping up premiums
    2. Filing and adjudicating claims
    3. Reading policies and claims back from the chain
    4. Scanning ``PolicyCreated`` events

    Each write returns a result model carrying the transaction hash, the
    on-chain id (when the contract emits one) and the receipt, for the
    caller's system of record. The client never writes to a database and
    never rolls back off-chain state.
    """

    def __init__(
        self,
        config: ClientConfig,
        contract: Optional[ContractInterface] = None,
        transport: Optional[RpcTransport] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the InsuranceClient

        Args:
            config: Immutable client configuration
            contract: Contract interface (defaults to the bundled insurance ABI)
            transport: JSON-RPC transport (defaults to HTTP against config.rpc_url)
            clock: Time source for receipt polling (defaults to the system clock)
            logger: Optional logger instance to use for debug/info logging
        """
        self.config = config
        self.contract = contract or ContractInterface.default()
        self.logger = logger or logging.getLogger(__name__)
        self.transport = transport or HttpRpcTransport(
            config.rpc_url,
            timeout=config.request_timeout,
            allow_insecure=config.allow_insecure,
            logger=self.logger,
        )
        self.converter = CurrencyConverter(config.exchange_rate)
        self.orchestrator = TransactionOrchestrator(
            self.transport, config, self.contract, clock=clock, logger=self.logger
        )

    @property
    def contract_address(self) -> str:
        return self.config.contract_address

    # ── Connectivity ────────────────────────────────────────────────────────

    def client_version(self) -> str:
        return self.transport.call("web3_clientVersion", [])

    def is_connected(self) -> bool:
        """True if the node answers ``web3_clientVersion``"""
        try:
            self.client_version()
            return True
        except (RpcTransportError, RpcProtocolError) as e:
            self.logger.debug(f"Node not reachable: {e}")
            return False

    def get_accounts(self) -> List[str]:
        return self.transport.call("eth_accounts", []) or []

    def get_balance(self, address: str) -> int:
        """Balance of ``address`` in wei"""
        _check_address(address, "address")
        return abi.word_to_int(self.transport.call("eth_getBalance", [address, "latest"]))

    # ── Writes ──────────────────────────────────────────────────────────────

    def open_policy(
        self,
        coverage_amount: Amount,
        premium: Amount,
        duration_seconds: int,
        payer: str,
        cancel_event: Optional[threading.Event] = None
    ) -> PolicyCreation:
        """
        Open a policy, paying the first premium with the transaction

        Args:
            coverage_amount: Coverage in display currency
            premium: Premium in display currency, sent as the transaction value
            duration_seconds: Policy duration
            payer: Unlocked account of the insured
            cancel_event: Optional event to abort the receipt wait

        Returns:
            PolicyCreation with the transaction hash, policy id and receipt

        Raises:
            ConversionError: If an amount is negative, non-finite or a float
            RpcProtocolError: If the contract rejects the call
                (e.g. insufficient premium, zero coverage)
            TransactionTimeoutError: If the transaction is not mined in time
        """
        _check_address(payer, "payer")
        _check_id(duration_seconds, "duration_seconds")
        coverage_wei = int(self.converter.to_base_unit(coverage_amount))
        premium_wei = int(self.converter.to_base_unit(premium))

        try:
            tx_hash = self.orchestrator.submit(
                "createPolicy",
                [coverage_wei, premium_wei, duration_seconds],
                sender=payer,
                value=premium_wei,
            )
            receipt = self.orchestrator.await_mined(tx_hash, cancel_event=cancel_event)
        except InsureChainError as e:
            self.logger.error(f"Failed to create policy on blockchain: {e}")
            raise

        policy_id = self.orchestrator.extract_indexed_id(receipt)
        if policy_id is None:
            self.logger.warning(f"No policyId found in logs of {tx_hash}")

        self.logger.info(
            f"Policy created on blockchain: tx={tx_hash} policy_id={policy_id}",
            extra={"tx_hash": tx_hash, "policy_id": policy_id, "gas_used": receipt.gas_used},
        )
        return PolicyCreation(
            transaction_hash=tx_hash,
            policy_id=policy_id,
            coverage_amount_wei=coverage_wei,
            premium_wei=premium_wei,
            receipt=receipt,
        )

    def open_policy_for_period(
        self,
        coverage_amount: Amount,
        premium: Amount,
        start: Timestamp,
        end: Timestamp,
        payer: str,
        cancel_event: Optional[threading.Event] = None
    ) -> PolicyCreation:
        """
        Open a policy covering ``start``..``end`` (datetimes or epoch seconds).

        Raises:
            ValueError: If the period is empty or reversed
        """
        duration = _to_epoch(end) - _to_epoch(start)
        if duration <= 0:
            raise ValueError(f"Policy end must be after start (duration {duration}s)")
        return self.open_policy(coverage_amount, premium, duration, payer, cancel_event=cancel_event)

    def pay_premium(
        self,
        policy_id: int,
        amount: Amount,
        payer: str,
        cancel_event: Optional[threading.Event] = None
    ) -> PremiumPayment:
        """
        Pay a premium into an existing policy

        Args:
            policy_id: On-chain policy id
            amount: Premium in display currency
            payer: Unlocked account of the insured

        Returns:
            PremiumPayment with the transaction hash and receipt
        """
        _check_id(policy_id, "policy_id")
        _check_address(payer, "payer")
        amount_wei = int(self.converter.to_base_unit(amount))

        try:
            tx_hash = self.orchestrator.submit("payPremium", [policy_id], sender=payer, value=amount_wei)
            receipt = self.orchestrator.await_mined(tx_hash, cancel_event=cancel_event)
        except InsureChainError as e:
            self.logger.error(f"Failed to pay premium for policy {policy_id}: {e}")
            raise

        self.logger.info(
            f"Premium paid on blockchain: tx={tx_hash} policy_id={policy_id}",
            extra={"tx_hash": tx_hash, "policy_id": policy_id, "amount_wei": amount_wei},
        )
        return PremiumPayment(
            transaction_hash=tx_hash,
            policy_id=policy_id,
            amount_wei=amount_wei,
            receipt=receipt,
        )

    def file_claim(
        self,
        policy_id: int,
        amount_claimed: Amount,
        proof_reference: str,
        claimant: str,
        cancel_event: Optional[threading.Event] = None
    ) -> ClaimFiling:
        """
        Declare a claim against a policy

        Args:
            policy_id: On-chain policy id
            amount_claimed: Claimed amount in display currency
            proof_reference: Opaque content address of the proof documents
            claimant: Unlocked account of the insured

        Returns:
            ClaimFiling with the transaction hash, claim id and receipt

        Raises:
            ValueError: If the proof reference is empty
            RpcProtocolError: If the contract rejects the claim
                (e.g. amount exceeds coverage, caller is not the insured)
        """
        _check_id(policy_id, "policy_id")
        _check_address(claimant, "claimant")
        if not isinstance(proof_reference, str) or not proof_reference:
            raise ValueError("proof_reference must be a non-empty string")
        amount_wei = int(self.converter.to_base_unit(amount_claimed))

        try:
            tx_hash = self.orchestrator.submit(
                "declareClaim",
                [policy_id, amount_wei, proof_reference],
                sender=claimant,
            )
            receipt = self.orchestrator.await_mined(tx_hash, cancel_event=cancel_event)
        except InsureChainError as e:
            self.logger.error(f"Failed to declare claim on policy {policy_id}: {e}")
            raise

        claim_id = self.orchestrator.extract_indexed_id(receipt)
        self.logger.info(
            f"Claim declared on blockchain: tx={tx_hash} policy_id={policy_id} claim_id={claim_id}",
            extra={"tx_hash": tx_hash, "policy_id": policy_id, "claim_id": claim_id},
        )
        return ClaimFiling(
            transaction_hash=tx_hash,
            claim_id=claim_id,
            policy_id=policy_id,
            amount_claimed_wei=amount_wei,
            proof_reference=proof_reference,
            receipt=receipt,
        )

    def adjudicate_claim(
        self,
        claim_id: int,
        approved: bool,
        adjudicator: str,
        cancel_event: Optional[threading.Event] = None
    ) -> ClaimAdjudication:
        """
        Approve or reject a claim

        An approved claim is paid out by the contract in the same
        transaction; no separate payment is submitted.

        Args:
            claim_id: On-chain claim id
            approved: Decision
            adjudicator: Unlocked account allowed to validate claims

        Returns:
            ClaimAdjudication with the transaction hash and receipt
        """
        _check_id(claim_id, "claim_id")
        _check_address(adjudicator, "adjudicator")
        if not isinstance(approved, bool):
            raise ValueError(f"approved must be a bool, got {approved!r}")

        try:
            tx_hash = self.orchestrator.submit("validateClaim", [claim_id, approved], sender=adjudicator)
            receipt = self.orchestrator.await_mined(tx_hash, cancel_event=cancel_event)
        except InsureChainError as e:
            self.logger.error(f"Failed to validate claim {claim_id}: {e}")
            raise

        self.logger.info(
            f"Claim validated on blockchain: tx={tx_hash} claim_id={claim_id} approved={approved}",
            extra={"tx_hash": tx_hash, "claim_id": claim_id, "approved": approved},
        )
        return ClaimAdjudication(
            transaction_hash=tx_hash,
            claim_id=claim_id,
            approved=approved,
            receipt=receipt,
        )

    # ── Reads ───────────────────────────────────────────────────────────────

    def _return_types(self, function_name: str, fallback: Sequence[str]) -> List[str]:
        declared = self.contract.outputs(function_name) if function_name in self.contract.functions else []
        return declared or list(fallback)

    def _decode_struct(self, function_name: str, raw: str, fallback: Sequence[str]) -> Sequence[Any]:
        types = self._return_types(function_name, fallback)
        values = abi.decode_values(types, raw)
        # A struct return comes back as a single tuple
        if len(values) == 1 and isinstance(values[0], tuple):
            values = values[0]
        if len(values) != len(fallback):
            raise DecodingError(
                f"{function_name} returned {len(values)} fields, expected {len(fallback)}",
                abi_type=",".join(types),
            )
        return values

    def get_policy_raw(self, policy_id: int) -> str:
        """Undecoded ``getPolicy`` result"""
        _check_id(policy_id, "policy_id")
        return self.orchestrator.read("getPolicy", [policy_id])

    def get_claim_raw(self, claim_id: int) -> str:
        """Undecoded ``getClaim`` result"""
        _check_id(claim_id, "claim_id")
        return self.orchestrator.read("getClaim", [claim_id])

    def get_policy(self, policy_id: int) -> Policy:
        """
        Read a policy from the contract

        Raises:
            RpcProtocolError: If the call reverts (e.g. unknown policy)
            DecodingError: If the returned data does not match the ABI
        """
        try:
            raw = self.get_policy_raw(policy_id)
            fields = self._decode_struct("getPolicy", raw, DEFAULT_POLICY_TYPES)
        except InsureChainError as e:
            self.logger.error(f"Failed to get policy {policy_id} from blockchain: {e}")
            raise
        insured, coverage, premium, start, end, active, balance = fields
        return Policy(
            policy_id=policy_id,
            insured=insured,
            coverage_amount=coverage,
            premium=premium,
            start_date=start,
            end_date=end,
            is_active=active,
            balance=balance,
        )

    def get_claim(self, claim_id: int) -> Claim:
        """
        Read a claim from the contract

        Raises:
            RpcProtocolError: If the call reverts (e.g. unknown claim)
            DecodingError: If the returned data does not match the ABI
        """
        try:
            raw = self.get_claim_raw(claim_id)
            fields = self._decode_struct("getClaim", raw, DEFAULT_CLAIM_TYPES)
        except InsureChainError as e:
            self.logger.error(f"Failed to get claim {claim_id} from blockchain: {e}")
            raise
        policy_id, claimant, amount, proof_reference, validated, paid = fields
        return Claim(
            claim_id=claim_id,
            policy_id=policy_id,
            claimant=claimant,
            amount_claimed=amount,
            proof_reference=proof_reference,
            is_validated=validated,
            is_paid=paid,
        )

    def scan_policy_created_events(
        self,
        from_block: BlockRef = None,
        to_block: BlockRef = None
    ) -> List[LogEntry]:
        """
        Fetch ``PolicyCreated`` logs emitted by the contract.

        This is a best-effort query: any node failure is logged (rate
        limited) and an empty list is returned instead of raising.

        Args:
            from_block: Start block (default: genesis)
            to_block: End block (default: latest)

        Returns:
            Matching log entries, possibly empty
        """
        topic = abi.event_topic(POLICY_CREATED_EVENT)
        try:
            return self.orchestrator.get_logs([topic], from_block=from_block, to_block=to_block)
        except (InsureChainError, ValidationError) as e:
            rate_limited_log(
                f"Failed to get PolicyCreated events: {e}",
                level="warning",
                logger_instance=self.logger,
            )
            return []
