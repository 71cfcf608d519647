"""
Data models for the InsureChain SDK.
"""
from typing import Any, Optional, List, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _quantity(value: Any) -> Any:
    """Convert a JSON-RPC hex quantity ("0x1a") to int, leave other values alone."""
    if isinstance(value, str) and value.startswith(("0x", "0X")):
        return int(value, 16) if len(value) > 2 else 0
    return value


class RpcRequest(BaseModel):
    """JSON-RPC 2.0 request envelope"""
    jsonrpc: str = "2.0"
    method: str
    params: List[Any] = Field(default_factory=list)
    id: int = 1


class RpcErrorDetail(BaseModel):
    """The ``error`` member of a failed JSON-RPC response"""
    code: int = 0
    message: str = ""
    data: Any = None


class RpcResponse(BaseModel):
    """JSON-RPC 2.0 response envelope"""
    model_config = ConfigDict(extra="ignore")

    jsonrpc: str = "2.0"
    id: Optional[Union[int, str]] = None
    result: Any = None
    error: Optional[RpcErrorDetail] = None


class EncodedCall(BaseModel):
    """A function selector plus its ABI-encoded argument words"""
    model_config = ConfigDict(frozen=True)

    signature: str
    selector: str
    argument_words: Tuple[str, ...] = ()

    @property
    def calldata(self) -> str:
        """Hex calldata ready for the ``data`` field of a transaction"""
        return self.selector + "".join(self.argument_words)


class LogEntry(BaseModel):
    """Event log emitted by a contract"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    address: str
    topics: List[str] = Field(default_factory=list)
    data: str = "0x"
    block_number: Optional[int] = Field(None, alias="blockNumber")
    transaction_hash: Optional[str] = Field(None, alias="transactionHash")
    log_index: Optional[int] = Field(None, alias="logIndex")

    @field_validator("block_number", "log_index", mode="before")
    @classmethod
    def parse_quantity(cls, value: Any) -> Any:
        return _quantity(value)


class TxReceipt(BaseModel):
    """Transaction receipt from the blockchain"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: Optional[str] = Field(None, alias="blockHash")
    gas_used: int = Field(0, alias="gasUsed")
    status: Optional[int] = None
    from_address: Optional[str] = Field(None, alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[LogEntry] = Field(default_factory=list)

    @field_validator("block_number", "gas_used", "status", mode="before")
    @classmethod
    def parse_quantity(cls, value: Any) -> Any:
        return _quantity(value)

    @property
    def succeeded(self) -> bool:
        """True unless the node reported status 0 (pre-Byzantium receipts have no status)"""
        return self.status is None or self.status == 1


class Policy(BaseModel):
    """On-chain view of an insurance policy. Amounts are in wei."""
    policy_id: int
    insured: str
    coverage_amount: int
    premium: int
    start_date: int
    end_date: int
    is_active: bool
    balance: int


class Claim(BaseModel):
    """On-chain view of a claim. Amounts are in wei."""
    claim_id: int
    policy_id: int
    claimant: str
    amount_claimed: int
    proof_reference: str
    is_validated: bool
    is_paid: bool


class PolicyCreation(BaseModel):
    """Outcome of opening a policy, handed to the system of record"""
    transaction_hash: str
    policy_id: Optional[int] = None
    coverage_amount_wei: int
    premium_wei: int
    receipt: TxReceipt


class PremiumPayment(BaseModel):
    """Outcome of a premium top-up"""
    transaction_hash: str
    policy_id: int
    amount_wei: int
    receipt: TxReceipt


class ClaimFiling(BaseModel):
    """Outcome of declaring a claim against a policy"""
    transaction_hash: str
    claim_id: Optional[int] = None
    policy_id: int
    amount_claimed_wei: int
    proof_reference: str
    receipt: TxReceipt


class ClaimAdjudication(BaseModel):
    """Outcome of approving or rejecting a claim"""
    transaction_hash: str
    claim_id: int
    approved: bool
    receipt: TxReceipt
