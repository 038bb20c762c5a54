from types import SimpleNamespace

import pytest

from chainsync.account_client import (
    AccountServiceError,
    ReturnCode,
    WalletChainAccountClient,
)


class FakeRpc:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def _answer(self, name, kwargs):
        self.calls.append((name, kwargs))
        if self.error is not None:
            raise self.error
        return self.reply

    def convert_address(self, **kwargs):
        return self._answer("convert_address", kwargs)

    def get_block_header_by_number(self, **kwargs):
        return self._answer("get_block_header_by_number", kwargs)

    def get_block_by_number(self, **kwargs):
        return self._answer("get_block_by_number", kwargs)

    def get_tx_by_hash(self, **kwargs):
        return self._answer("get_tx_by_hash", kwargs)

    def get_account(self, **kwargs):
        return self._answer("get_account", kwargs)

    def send_tx(self, **kwargs):
        return self._answer("send_tx", kwargs)


def _ok(**fields):
    return SimpleNamespace(code=ReturnCode.SUCCESS, msg="", **fields)


def _err():
    return SimpleNamespace(code=ReturnCode.ERROR, msg="failure")


ADDRESS = "0xD79053a14BC465d9C1434d4A4fAbdeA7b6a2A94b"


def test_export_address_success():
    rpc = FakeRpc(_ok(address=ADDRESS))
    client = WalletChainAccountClient(rpc, "Ethereum")
    assert client.export_address_by_pub_key("", "04abcd") == ADDRESS
    assert rpc.calls[0][1] == {"chain": "Ethereum", "type": "", "public_key": "04abcd"}


def test_export_address_error_code_returns_empty():
    client = WalletChainAccountClient(FakeRpc(_err()), "Ethereum")
    assert client.export_address_by_pub_key("", "04abcd") == ""


def test_export_address_exception_returns_empty():
    client = WalletChainAccountClient(FakeRpc(error=ConnectionError("down")), "Ethereum")
    assert client.export_address_by_pub_key("", "04abcd") == ""


@pytest.mark.parametrize("number, height", [(None, 0), (15, 15)])
def test_get_block_header_heights(number, height):
    reply = _ok(block_header=SimpleNamespace(number=str(height)))
    rpc = FakeRpc(reply)
    client = WalletChainAccountClient(rpc, "Ethereum")
    assert client.get_block_header(number) is reply
    assert rpc.calls[0][1] == {"chain": "Ethereum", "network": "mainnet", "height": height}


def test_get_block_header_error_raises():
    with pytest.raises(AccountServiceError):
        WalletChainAccountClient(FakeRpc(_err()), "Ethereum").get_block_header(None)


def test_get_block_info_requests_transactions():
    reply = _ok(transactions=[])
    rpc = FakeRpc(reply)
    assert WalletChainAccountClient(rpc, "Ethereum").get_block_info(12) is reply
    assert rpc.calls[0][1] == {"chain": "Ethereum", "height": 12, "view_tx": True}


def test_get_block_info_error_raises():
    with pytest.raises(AccountServiceError):
        WalletChainAccountClient(FakeRpc(_err()), "Ethereum").get_block_info(12)


def test_get_transaction_by_hash_returns_tx():
    tx = SimpleNamespace(hash="0xfeed", to=ADDRESS)
    rpc = FakeRpc(_ok(tx=tx))
    client = WalletChainAccountClient(rpc, "Ethereum")
    assert client.get_transaction_by_hash("0xfeed") is tx
    assert rpc.calls[0][1]["hash"] == "0xfeed"


def test_get_transaction_by_hash_error_raises():
    with pytest.raises(AccountServiceError):
        WalletChainAccountClient(FakeRpc(_err()), "Ethereum").get_transaction_by_hash("0x1")


def test_get_account_number():
    rpc = FakeRpc(_ok(account_number="42", sequence="0", balance="0"))
    assert WalletChainAccountClient(rpc, "Ethereum").get_account_number(ADDRESS) == 42


def test_get_account_number_invalid():
    rpc = FakeRpc(_ok(account_number="4x2", sequence="0", balance="0"))
    with pytest.raises(ValueError):
        WalletChainAccountClient(rpc, "Ethereum").get_account_number(ADDRESS)


def test_get_account_number_error_code():
    with pytest.raises(AccountServiceError):
        WalletChainAccountClient(FakeRpc(_err()), "Ethereum").get_account_number(ADDRESS)


def test_get_account_parses_fields():
    rpc = FakeRpc(_ok(account_number="3", sequence="17", balance="1000000000000000"))
    client = WalletChainAccountClient(rpc, "Ethereum")
    assert client.get_account(ADDRESS) == (3, 17, 1000000000000000)
    assert rpc.calls[0][1]["contract_address"] == "0x00"


@pytest.mark.parametrize(
    "rpc",
    [
        FakeRpc(_err()),
        FakeRpc(error=ConnectionError("down")),
        FakeRpc(_ok(account_number="1", sequence="abc", balance="0")),
        FakeRpc(_ok(account_number="1", sequence="2", balance="99999999999999999999")),
        FakeRpc(_ok(account_number=" 1", sequence="2", balance="3")),
    ],
)
def test_get_account_failures_give_zeros(rpc):
    assert WalletChainAccountClient(rpc, "Ethereum").get_account(ADDRESS) == (0, 0, 0)


def test_send_tx_returns_hash():
    rpc = FakeRpc(_ok(tx_hash="0xfeed"))
    client = WalletChainAccountClient(rpc, "Ethereum")
    assert client.send_tx("0xsigned") == "0xfeed"
    assert rpc.calls[0][1] == {"chain": "Ethereum", "network": "mainnet", "raw_tx": "0xsigned"}


@pytest.mark.parametrize("reply", [None, _err()])
def test_send_tx_failure_raises(reply):
    with pytest.raises(AccountServiceError):
        WalletChainAccountClient(FakeRpc(reply), "Ethereum").send_tx("0xsigned")