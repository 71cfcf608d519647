"""
Configuration for the InsureChain SDK.

Two immutable values are built once at startup and injected into the
client: :class:`ContractInterface` (the contract's functions, events and
deployed addresses) and :class:`ClientConfig` (endpoint, address, gas,
exchange rate and polling bounds).
"""
import functools
import json
import logging
import os
from decimal import Decimal, InvalidOperation
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator
from web3 import Web3

from .abi import canonical_signature, normalize_type
from .exceptions import EncodingError

logger = logging.getLogger(__name__)

DEFAULT_NETWORK_ID = "5777"
DEFAULT_GAS_LIMIT = 0x100000
ENV_PREFIX = "INSURECHAIN_"


@functools.lru_cache(maxsize=1)
def _bundled_artifact_text() -> str:
    """Raw JSON of the contract artifact shipped with the package."""
    return resources.files("insurechain_sdk").joinpath("data/InsuranceContract.json").read_text(encoding="utf-8")


def _abi_type(param: Dict[str, Any]) -> str:
    """Flatten an ABI JSON parameter to a type string; tuples become ``(t1,t2)``."""
    abi_type = param.get("type", "")
    if abi_type == "tuple":
        return "(" + ",".join(_abi_type(c) for c in param.get("components", [])) + ")"
    return normalize_type(abi_type)


class ContractInterface:
    """
    Read-only view over a contract's ABI and deployment addresses.

    Accepts the Truffle build artifact layout::

        {"abi": [...], "networks": {"5777": {"address": "0x..."}}}
    """

    def __init__(
        self,
        abi: List[Dict[str, Any]],
        networks: Optional[Dict[str, Dict[str, Any]]] = None,
        name: str = "InsuranceContract"
    ):
        self.name = name
        functions: Dict[str, Dict[str, Any]] = {}
        events: Dict[str, Dict[str, Any]] = {}
        for entry in abi:
            kind = entry.get("type", "function")
            if kind == "function" and "name" in entry:
                functions[entry["name"]] = entry
            elif kind == "event" and "name" in entry:
                events[entry["name"]] = entry
        self.functions: Mapping[str, Dict[str, Any]] = MappingProxyType(functions)
        self.events: Mapping[str, Dict[str, Any]] = MappingProxyType(events)
        self.networks: Mapping[str, Dict[str, Any]] = MappingProxyType(dict(networks or {}))

    @classmethod
    def from_artifact(cls, source: Union[str, Path, Dict[str, Any]]) -> "ContractInterface":
        """
        Load a contract interface from a build artifact.

        Args:
            source: Path to the artifact JSON, or the already-parsed document

        Returns:
            ContractInterface instance

        Raises:
            FileNotFoundError: If the artifact path does not exist
            ValueError: If the document has no ``abi`` list
        """
        if isinstance(source, dict):
            document = source
        else:
            path = Path(source)
            if not path.exists():
                raise FileNotFoundError(f"Contract artifact not found at: {path}")
            with open(path, "r", encoding="utf-8") as f:
                document = json.load(f)

        abi = document.get("abi")
        if not isinstance(abi, list):
            raise ValueError("Contract artifact is missing an 'abi' list")
        return cls(abi, document.get("networks"), document.get("contractName", "InsuranceContract"))

    @classmethod
    def default(cls) -> "ContractInterface":
        """The insurance contract interface bundled with the SDK."""
        return cls.from_artifact(json.loads(_bundled_artifact_text()))

    def _function(self, name: str) -> Dict[str, Any]:
        if name not in self.functions:
            available = ", ".join(sorted(self.functions))
            raise EncodingError(f"Function {name} not found in ABI. Available: {available}")
        return self.functions[name]

    def input_types(self, name: str) -> List[str]:
        return [_abi_type(p) for p in self._function(name).get("inputs", [])]

    def signature(self, name: str) -> str:
        """
        Canonical signature for a function.

        A full signature (``name(types)``) is returned as-is, so callers may
        bypass the ABI lookup entirely.
        """
        if "(" in name:
            return name
        return canonical_signature(name, self.input_types(name))

    def outputs(self, name: str) -> List[str]:
        """Declared return types of a function."""
        return [_abi_type(p) for p in self._function(name).get("outputs", [])]

    def event_signature(self, name: str) -> str:
        if name not in self.events:
            raise EncodingError(f"Event {name} not found in ABI")
        types = [_abi_type(p) for p in self.events[name].get("inputs", [])]
        return canonical_signature(name, types)

    def address_for(self, network_id: Union[str, int]) -> Optional[str]:
        """Deployed address recorded in the artifact for a network, if any."""
        network = self.networks.get(str(network_id)) or {}
        return network.get("address")


class ClientConfig(BaseModel):
    """
    Immutable configuration injected into the client.

    Nothing in the SDK reads environment variables or globals after this
    value is constructed.
    """
    model_config = ConfigDict(frozen=True)

    rpc_url: str
    contract_address: str
    network_id: str = DEFAULT_NETWORK_ID
    gas_limit: int = DEFAULT_GAS_LIMIT
    exchange_rate: Decimal = Decimal("2500000")
    default_account: Optional[str] = None
    request_timeout: float = 10.0
    receipt_max_attempts: int = 30
    receipt_poll_interval: float = 1.0
    receipt_deadline: Optional[float] = None
    allow_insecure: bool = False

    @field_validator("contract_address")
    @classmethod
    def check_contract_address(cls, value: str) -> str:
        if not Web3.is_address(value):
            raise ValueError(f"Invalid contract address: {value}")
        return Web3.to_checksum_address(value)

    @field_validator("default_account")
    @classmethod
    def check_default_account(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        if not Web3.is_address(value):
            raise ValueError(f"Invalid default account: {value}")
        return Web3.to_checksum_address(value)

    @field_validator("gas_limit", "receipt_max_attempts")
    @classmethod
    def check_positive_int(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"must be positive, got {value}")
        return value

    @field_validator("exchange_rate")
    @classmethod
    def check_rate(cls, value: Decimal) -> Decimal:
        if not value.is_finite() or value <= 0:
            raise ValueError(f"exchange_rate must be a positive number, got {value}")
        return value

    @field_validator("request_timeout")
    @classmethod
    def check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"request_timeout must be positive, got {value}")
        return value

    @field_validator("receipt_poll_interval", "receipt_deadline")
    @classmethod
    def check_non_negative(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value < 0:
            raise ValueError(f"must not be negative, got {value}")
        return value

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        artifact: Optional[ContractInterface] = None,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any
    ) -> "ClientConfig":
        """
        Build a configuration from environment variables.

        Reads ``<prefix>RPC_URL``, ``CONTRACT_ADDRESS``, ``NETWORK_ID``,
        ``GAS_LIMIT``, ``EXCHANGE_RATE`` and ``DEFAULT_ACCOUNT``. When no
        contract address is set, the artifact's address for the network is
        used. Keyword overrides win over the environment.

        Raises:
            ValueError: If no RPC URL or contract address can be resolved
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        for field, key in (
            ("rpc_url", "RPC_URL"),
            ("contract_address", "CONTRACT_ADDRESS"),
            ("network_id", "NETWORK_ID"),
            ("default_account", "DEFAULT_ACCOUNT"),
        ):
            if env.get(prefix + key):
                values[field] = env[prefix + key]

        if env.get(prefix + "GAS_LIMIT"):
            values["gas_limit"] = int(env[prefix + "GAS_LIMIT"], 0)
        if env.get(prefix + "EXCHANGE_RATE"):
            try:
                values["exchange_rate"] = Decimal(env[prefix + "EXCHANGE_RATE"])
            except InvalidOperation:
                raise ValueError(f"{prefix}EXCHANGE_RATE is not a number: {env[prefix + 'EXCHANGE_RATE']}")

        values.update(overrides)

        if not values.get("rpc_url"):
            raise ValueError(f"{prefix}RPC_URL is required")
        if not values.get("contract_address") and artifact is not None:
            address = artifact.address_for(values.get("network_id", DEFAULT_NETWORK_ID))
            if address:
                logger.info(f"Using contract address {address} from artifact")
                values["contract_address"] = address
        if not values.get("contract_address"):
            raise ValueError(
                f"{prefix}CONTRACT_ADDRESS is required (no address in artifact for this network)"
            )

        return cls(**values)
