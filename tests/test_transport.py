"""
Tests for the JSON-RPC HTTP transport.
"""
from unittest.mock import MagicMock

import pytest
import requests

from insurechain_sdk.exceptions import RpcProtocolError, RpcTransportError
from insurechain_sdk.transport import HttpRpcTransport, SUPPORTED_METHODS, validate_rpc_url

RPC_URL = "http://localhost:8545"


@pytest.fixture
def transport():
    return HttpRpcTransport(RPC_URL)


def test_call_returns_result(transport, requests_mock):
    requests_mock.post(RPC_URL, json={"jsonrpc": "2.0", "id": 1, "result": "Ganache/v7.9.0"})

    assert transport.call("web3_clientVersion") == "Ganache/v7.9.0"

    body = requests_mock.last_request.json()
    assert body == {"jsonrpc": "2.0", "method": "web3_clientVersion", "params": [], "id": 1}
    assert requests_mock.last_request.timeout == 10.0


def test_request_ids_increase(transport, requests_mock):
    requests_mock.post(RPC_URL, json={"jsonrpc": "2.0", "id": 1, "result": []})

    transport.call("eth_accounts")
    transport.call("eth_accounts")

    ids = [req.json()["id"] for req in requests_mock.request_history]
    assert ids == [1, 2]


def test_params_are_forwarded(transport, requests_mock):
    requests_mock.post(RPC_URL, json={"jsonrpc": "2.0", "id": 1, "result": "0x0"})

    transport.call("eth_getBalance", ("0x1234567890123456789012345678901234567890", "latest"))

    assert requests_mock.last_request.json()["params"] == [
        "0x1234567890123456789012345678901234567890", "latest"
    ]


def test_null_result(transport, requests_mock):
    requests_mock.post(RPC_URL, json={"jsonrpc": "2.0", "id": 1, "result": None})
    assert transport.call("eth_getTransactionReceipt", ["0xabc"]) is None


def test_unsupported_method_makes_no_request(transport, requests_mock):
    requests_mock.post(RPC_URL, json={"jsonrpc": "2.0", "id": 1, "result": None})

    with pytest.raises(ValueError):
        transport.call("eth_sign", ["0x00", "0x00"])
    assert requests_mock.call_count == 0
    assert "eth_sign" not in SUPPORTED_METHODS


def test_connection_error(transport, requests_mock):
    requests_mock.post(RPC_URL, exc=requests.exceptions.ConnectionError("refused"))

    with pytest.raises(RpcTransportError) as exc_info:
        transport.call("eth_accounts")

    assert exc_info.value.method == "eth_accounts"
    assert exc_info.value.retryable is True
    assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)


def test_timeout(transport, requests_mock):
    requests_mock.post(RPC_URL, exc=requests.exceptions.ReadTimeout)

    with pytest.raises(RpcTransportError, match="timed out"):
        transport.call("eth_blockNumber")


def test_non_json_body(transport, requests_mock):
    requests_mock.post(RPC_URL, text="<html>bad gateway</html>", status_code=502)

    with pytest.raises(RpcTransportError, match="Invalid JSON"):
        transport.call("eth_blockNumber")


def test_http_error_without_rpc_error(transport, requests_mock):
    requests_mock.post(RPC_URL, json={"message": "rate limited"}, status_code=429)

    with pytest.raises(RpcTransportError, match="HTTP 429"):
        transport.call("eth_blockNumber")


def test_unexpected_body_shape(transport, requests_mock):
    requests_mock.post(RPC_URL, json=[{"jsonrpc": "2.0", "id": 1, "result": "0x1"}])

    with pytest.raises(RpcTransportError):
        transport.call("eth_blockNumber")


def test_malformed_error_member(transport, requests_mock):
    requests_mock.post(RPC_URL, json={"jsonrpc": "2.0", "id": 1, "error": {"code": "not-a-number"}})

    with pytest.raises(RpcTransportError, match="Malformed"):
        transport.call("eth_blockNumber")


def test_rpc_error_member(transport, requests_mock):
    requests_mock.post(RPC_URL, json={
        "jsonrpc": "2.0",
        "id": 1,
        "error": {
            "code": -32000,
            "message": "VM Exception while processing transaction: revert Amount exceeds coverage",
            "data": {"0xabc": {"error": "revert", "reason": "Amount exceeds coverage"}},
        },
    })

    with pytest.raises(RpcProtocolError) as exc_info:
        transport.call("eth_sendTransaction", [{}])

    err = exc_info.value
    assert err.code == -32000
    assert err.method == "eth_sendTransaction"
    assert err.revert_reason == "Amount exceeds coverage"
    assert err.retryable is False
    assert str(err).endswith("(code -32000)")


def test_rpc_error_with_http_error_status(transport, requests_mock):
    requests_mock.post(
        RPC_URL,
        json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "Method not found"}},
        status_code=500,
    )

    with pytest.raises(RpcProtocolError) as exc_info:
        transport.call("net_version")
    assert exc_info.value.code == -32601


class TestUrlValidation:
    """Plain http is only allowed for local development nodes"""

    @pytest.mark.parametrize("url", [
        "http://localhost:8545",
        "http://127.0.0.1:7545",
        "http://ganache:8545",
        "https://rpc.example.com",
    ])
    def test_accepted(self, url):
        assert validate_rpc_url(url) == url

    def test_remote_http_rejected(self):
        with pytest.raises(ValueError, match="https"):
            HttpRpcTransport("http://rpc.example.com")

    def test_remote_http_allowed_when_insecure(self):
        transport = HttpRpcTransport("http://rpc.example.com", allow_insecure=True)
        assert transport.rpc_url == "http://rpc.example.com"

    @pytest.mark.parametrize("url", ["ftp://localhost", "localhost:8545", "", "http://"])
    def test_malformed(self, url):
        with pytest.raises(ValueError):
            validate_rpc_url(url)


@pytest.mark.parametrize("timeout", [0, -1, None])
def test_invalid_timeout(timeout):
    with pytest.raises(ValueError):
        HttpRpcTransport(RPC_URL, timeout=timeout)


def test_default_session_has_no_retries():
    transport = HttpRpcTransport(RPC_URL)
    adapter = transport.session.get_adapter(RPC_URL)
    assert adapter.max_retries.total == 0


def test_context_manager_closes_session():
    session = MagicMock(spec=requests.Session)
    with HttpRpcTransport(RPC_URL, session=session) as transport:
        assert transport.session is session
    session.close.assert_called_once()
