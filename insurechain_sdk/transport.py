"""
JSON-RPC over HTTP transport.

This module provides the single call primitive the rest of the SDK is
built on: send one request, parse one response, and surface node-level
errors as :class:`RpcProtocolError` and connectivity failures as
:class:`RpcTransportError`.
"""
import itertools
import logging
import threading
import urllib.parse
from typing import Any, Optional, Protocol, Sequence

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import RpcProtocolError, RpcTransportError
from .models import RpcRequest, RpcResponse

SUPPORTED_METHODS = frozenset({
    "web3_clientVersion",
    "net_version",
    "eth_accounts",
    "eth_blockNumber",
    "eth_getBalance",
    "eth_sendTransaction",
    "eth_call",
    "eth_getTransactionReceipt",
    "eth_getLogs",
})

# Hosts that may be reached over plain http (local development nodes)
LOCAL_HOSTS = ("localhost", "127.0.0.1", "ganache")

DEFAULT_TIMEOUT = 10.0


class RpcTransport(Protocol):
    """Anything that can execute a JSON-RPC call"""

    def call(self, method: str, params: Sequence[Any] = ()) -> Any:
        """Execute ``method`` with ``params`` and return the ``result`` member"""
        ...


def validate_rpc_url(rpc_url: str, allow_insecure: bool = False) -> str:
    """
    Check that an RPC URL is usable.

    Plain http is only accepted for local development hosts unless
    ``allow_insecure`` is set.

    Raises:
        ValueError: If the URL is malformed or insecure
    """
    parsed = urllib.parse.urlparse(rpc_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"rpc_url must be an http(s) URL (got: {rpc_url!r})")
    host = parsed.hostname or ""
    if parsed.scheme != "https" and host not in LOCAL_HOSTS and not allow_insecure:
        raise ValueError(f"rpc_url must use https:// for security (got: {parsed.scheme}://)")
    return rpc_url


class HttpRpcTransport:
    """
    Synchronous JSON-RPC 2.0 client over HTTP POST.

    Each call is independent: there is no implicit retry and no state other
    than the pooled ``requests.Session``. Every request carries a timeout.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        allow_insecure: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the transport

        Args:
            rpc_url: JSON-RPC endpoint URL (e.g., "http://ganache:8545")
            timeout: Per-call timeout in seconds
            session: Optional pre-configured requests session
            allow_insecure: Accept plain http for non-local hosts
            logger: Optional logger instance to use for debug/error logging

        Raises:
            ValueError: If the URL is invalid or the timeout is not positive
        """
        if timeout is None or timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.rpc_url = validate_rpc_url(rpc_url, allow_insecure)
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._ids = itertools.count(1)
        self._id_lock = threading.Lock()

        if session is None:
            session = requests.Session()
            # Retries are the caller's decision, never the transport's
            no_retry = Retry(total=0, connect=0, read=0, redirect=0, raise_on_status=False)
            session.mount("http://", HTTPAdapter(max_retries=no_retry))
            session.mount("https://", HTTPAdapter(max_retries=no_retry))
        self.session = session

    def _next_id(self) -> int:
        with self._id_lock:
            return next(self._ids)

    def call(self, method: str, params: Sequence[Any] = ()) -> Any:
        """
        Execute a JSON-RPC method

        Args:
            method: One of SUPPORTED_METHODS
            params: JSON-serializable parameters (hex strings for quantities)

        Returns:
            The ``result`` member of the response (may be None)

        Raises:
            ValueError: If the method is not supported
            RpcTransportError: On connection failure, timeout, HTTP error or bad JSON
            RpcProtocolError: If the node returns an ``error`` member
        """
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"Unsupported JSON-RPC method: {method}")

        request = RpcRequest(method=method, params=list(params), id=self._next_id())
        self.logger.debug(f"RPC request {request.id}: {method} {request.params}")

        try:
            response = self.session.post(
                self.rpc_url,
                json=request.model_dump(),
                timeout=self.timeout
            )
        except requests.Timeout as e:
            self.logger.error(f"RPC call {method} timed out after {self.timeout}s: {e}")
            raise RpcTransportError(f"RPC call {method} timed out after {self.timeout}s", method=method) from e
        except requests.RequestException as e:
            self.logger.error(f"RPC call {method} failed: {e}")
            raise RpcTransportError(f"RPC call {method} failed: {e}", method=method) from e

        try:
            body = response.json()
        except ValueError as e:
            self.logger.error(f"Invalid JSON from node for {method} (HTTP {response.status_code}): {e}")
            raise RpcTransportError(
                f"Invalid JSON response for {method} (HTTP {response.status_code})", method=method
            ) from e

        if not isinstance(body, dict):
            raise RpcTransportError(f"Unexpected response shape for {method}: {type(body).__name__}",
                                    method=method)

        # Nodes may pair a JSON-RPC error body with a 4xx/5xx status
        if "error" not in body and response.status_code >= 400:
            self.logger.error(f"RPC call {method} returned HTTP {response.status_code}")
            raise RpcTransportError(f"RPC call {method} returned HTTP {response.status_code}",
                                    method=method)

        try:
            parsed = RpcResponse.model_validate(body)
        except ValidationError as e:
            raise RpcTransportError(f"Malformed JSON-RPC response for {method}: {e}", method=method) from e
        if parsed.error is not None:
            error = parsed.error
            self.logger.error(f"RPC error for {method}: {error.code} {error.message}")
            raise RpcProtocolError(error.message, code=error.code, data=error.data, method=method)

        return parsed.result

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self) -> "HttpRpcTransport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
