"""Wallet records and the wire shapes exchanged with business platforms."""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

ZERO_HASH = "0x" + "0" * 64
ZERO_ADDRESS = "0x" + "0" * 40


def _now() -> int:
    return int(time.time())


class TxStatus(str, Enum):
    """Lifecycle states of a wallet transaction."""

    CREATE_UNSIGNED = "create_unsigned"
    SIGNED = "signed"
    BROADCASTED = "broadcasted"
    WALLET_DONE = "wallet_done"
    NOTIFIED = "notified"
    SUCCESS = "success"


class TransactionType(str, Enum):
    """Direction of a transaction relative to the wallet's own addresses."""

    UNKNOWN = "unknow"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    COLLECTION = "collection"
    HOT2COLD = "hot2cold"
    COLD2HOT = "cold2hot"


class AddressType(str, Enum):
    """Role of a wallet address."""

    USER = "eoa"
    HOT = "hot"
    COLD = "cold"


class TokenType(str, Enum):
    """Kind of asset a transaction moves."""

    ETH = "ETH"
    ERC20 = "ERC20"


def parse_transaction_type(value: str) -> TransactionType:
    """Return the transaction type named by ``value``; raise ValueError if unknown."""
    try:
        parsed = TransactionType(value)
    except ValueError:
        parsed = TransactionType.UNKNOWN
    if parsed is TransactionType.UNKNOWN:
        raise ValueError(f"unknown transaction type: {value!r}")
    return parsed


def parse_address_type(value: str) -> AddressType:
    """Return the address type named by ``value``; raise ValueError if unknown."""
    try:
        return AddressType(value)
    except ValueError:
        raise ValueError(f"unknown address type: {value!r}") from None


@dataclass
class TxRecord:
    """A stored deposit, withdrawal or internal transfer."""

    guid: uuid.UUID = field(default_factory=uuid.uuid4)
    timestamp: int = field(default_factory=_now)
    status: TxStatus = TxStatus.CREATE_UNSIGNED
    block_hash: str = ZERO_HASH
    block_number: int = 0
    tx_hash: str = ZERO_HASH
    tx_type: TransactionType = TransactionType.UNKNOWN
    from_address: str = ZERO_ADDRESS
    to_address: str = ZERO_ADDRESS
    amount: int = 0
    gas_limit: int = 0
    max_fee_per_gas: str = ""
    max_priority_fee_per_gas: str = ""
    token_type: TokenType = TokenType.ETH
    token_address: str = ZERO_ADDRESS
    token_id: str = ""
    token_meta: str = ""
    tx_sign_hex: str = ""
    confirms: int = 0


@dataclass
class Balance:
    """Balance of one token held by one address."""

    address: str = ZERO_ADDRESS
    token_address: str = ZERO_ADDRESS
    address_type: AddressType = AddressType.USER
    balance: int = 0
    lock_balance: int = 0
    guid: uuid.UUID = field(default_factory=uuid.uuid4)
    timestamp: int = field(default_factory=_now)


@dataclass
class Business:
    """A registered business platform and where to notify it."""

    business_uid: str
    notify_url: str
    guid: uuid.UUID = field(default_factory=uuid.uuid4)
    timestamp: int = field(default_factory=_now)


@dataclass
class AddressRecord:
    """An address derived from a public key."""

    address: str
    address_type: AddressType
    public_key: str
    guid: uuid.UUID = field(default_factory=uuid.uuid4)
    timestamp: int = field(default_factory=_now)


@dataclass
class TokenRecord:
    """A token the wallet tracks, with its collection thresholds."""

    token_address: str
    decimals: int
    token_name: str
    collect_amount: int | None = None
    cold_amount: int | None = None
    guid: uuid.UUID = field(default_factory=uuid.uuid4)
    timestamp: int = field(default_factory=_now)


@dataclass
class Transaction:
    """One transaction as reported to a business platform."""

    block_hash: str
    block_number: int
    hash: str
    from_address: str
    to_address: str
    value: str
    fee: str
    tx_type: TransactionType
    confirms: int
    token_address: str
    token_id: str
    token_meta: str

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form of this transaction."""
        data = asdict(self)
        data["tx_type"] = TransactionType(self.tx_type).value
        return data


@dataclass
class NotifyRequest:
    """Batch of transactions sent to a business platform."""

    txn: list[Transaction] = field(default_factory=list)

    def to_json(self) -> str:
        """Serialise compactly; an empty batch is sent as ``null``."""
        items = [tx.to_dict() for tx in self.txn] or None
        return json.dumps({"txn": items}, separators=(",", ":"))


@dataclass
class NotifyResponse:
    """Reply of a business platform to a notification."""

    success: bool = False

    @classmethod
    def from_json(cls, data: str | bytes) -> NotifyResponse:
        """Parse a reply body; a missing or null ``success`` means False."""
        if isinstance(data, (bytes, bytearray)):
            data = data.decode("utf-8")
        parsed = json.loads(data)
        if not isinstance(parsed, dict):
            raise ValueError("notify response must be a JSON object")
        success = parsed.get("success")
        if success is None:
            return cls(False)
        if not isinstance(success, bool):
            raise ValueError(f"notify response 'success' is not a boolean: {success!r}")
        return cls(success)


@dataclass
class Eip1559DynamicFeeTx:
    """Parameters of an EIP-1559 transaction handed to the signing service."""

    chain_id: str
    nonce: int
    from_address: str
    to_address: str
    gas_limit: int
    max_fee_per_gas: str
    max_priority_fee_per_gas: str
    amount: str
    contract_address: str

    def to_json(self) -> bytes:
        """Return the compact JSON encoding of the transaction."""
        return json.dumps(asdict(self), separators=(",", ":")).encode("utf-8")