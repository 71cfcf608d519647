"""
Pytest fixtures for the InsureChain SDK tests.
"""
import pytest

from insurechain_sdk import _rate_limited_log
from insurechain_sdk.abi import event_topic
from insurechain_sdk.client import InsuranceClient, POLICY_CREATED_EVENT
from insurechain_sdk.config import ClientConfig

# Constants for testing
TEST_RPC_URL = "http://localhost:8545"
TEST_CONTRACT = "0x1234567890123456789012345678901234567890"
TEST_ACCOUNT = "0x1111111111111111111111111111111111111111"
TEST_ADJUDICATOR = "0x2222222222222222222222222222222222222222"
POLICY_CREATED_TOPIC = event_topic(POLICY_CREATED_EVENT)


def id_topic(value: int) -> str:
    return "0x" + format(value, "064x")


def make_log(*topics, data="0x", tx_hash=None):
    return {
        "address": TEST_CONTRACT,
        "topics": list(topics),
        "data": data,
        "blockNumber": "0x10",
        "transactionHash": tx_hash,
        "logIndex": "0x0",
    }


def make_receipt(tx_hash, status="0x1", logs=None, block_number="0x10"):
    return {
        "transactionHash": tx_hash,
        "blockNumber": block_number,
        "blockHash": "0x" + "ab" * 32,
        "gasUsed": "0x5208",
        "status": status,
        "from": TEST_ACCOUNT,
        "to": TEST_CONTRACT,
        "logs": logs or [],
    }


class FakeNode:
    """
    In-memory stand-in for a development node with unlocked accounts.

    ``responses`` overrides a method: an exception instance is raised, a
    callable is called with the params, anything else is returned as-is.
    """

    def __init__(self, accounts=None):
        self.calls = []
        self.accounts = list(accounts) if accounts is not None else [TEST_ACCOUNT]
        self.responses = {}
        self.pending_polls = 0
        self.receipt_status = "0x1"
        self.emitted_id = 1
        self._tx_count = 0

    def call(self, method, params=()):
        params = list(params)
        self.calls.append((method, params))

        if method in self.responses:
            response = self.responses[method]
            if isinstance(response, Exception):
                raise response
            if callable(response):
                return response(params)
            return response

        if method == "web3_clientVersion":
            return "FakeNode/v1.0.0"
        if method == "eth_accounts":
            return list(self.accounts)
        if method == "eth_sendTransaction":
            self._tx_count += 1
            return "0x" + format(self._tx_count, "064x")
        if method == "eth_getTransactionReceipt":
            if self.pending_polls > 0:
                self.pending_polls -= 1
                return None
            logs = []
            if self.emitted_id is not None:
                logs.append(make_log(POLICY_CREATED_TOPIC, id_topic(self.emitted_id), tx_hash=params[0]))
            return make_receipt(params[0], status=self.receipt_status, logs=logs)
        if method == "eth_getLogs":
            return []
        raise AssertionError(f"FakeNode has no handler for {method}")

    def params_of(self, method):
        """Params of every recorded call to ``method``, in order."""
        return [params for name, params in self.calls if name == method]

    def count(self, method):
        return len(self.params_of(method))


class FakeClock:
    """Deterministic clock: sleeping just advances ``now``."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds, cancel_event=None):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_rate_limited_log():
    """Each test starts with an empty suppression cache."""
    _rate_limited_log._default.reset()
    yield
    _rate_limited_log._default.reset()


@pytest.fixture
def fake_node():
    return FakeNode()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def config():
    return ClientConfig(rpc_url=TEST_RPC_URL, contract_address=TEST_CONTRACT)


@pytest.fixture
def client(config, fake_node, fake_clock):
    return InsuranceClient(config, transport=fake_node, clock=fake_clock)
