"""Service that registers business platforms and prepares their transactions."""

from __future__ import annotations

import base64
import logging
import re
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable

from chainsync.account_client import ReturnCode, WalletChainAccountClient
from chainsync.fees import (
    FeeInfo,
    determine_token_type,
    gas_and_contract_info,
    parse_fast_fee,
)
from chainsync.records import (
    ZERO_HASH,
    AddressRecord,
    Balance,
    Business,
    Eip1559DynamicFeeTx,
    TokenRecord,
    TransactionType,
    TxRecord,
    TxStatus,
    parse_address_type,
    parse_transaction_type,
)

logger = logging.getLogger(__name__)

CHAIN_NAME = "Ethereum"
NETWORK = "mainnet"
MAX_RECV_MESSAGE_SIZE = 1024 * 1024 * 300

_INTERNAL_TYPES = (
    TransactionType.COLLECTION,
    TransactionType.HOT2COLD,
    TransactionType.COLD2HOT,
)
_DECIMAL = re.compile(r"[+-]?[0-9]+")
_HEX_PAIRS = re.compile(r"(?:[0-9a-fA-F]{2})*")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _parse_decimal(text: str) -> int | None:
    if not _DECIMAL.fullmatch(text):
        return None
    return int(text)


def _atoi(text: str) -> int:
    value = _parse_decimal(text)
    if value is None or not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"invalid integer: {text!r}")
    return value


def _to_address(text: str) -> str:
    """Normalise hex text to a lower-case 20-byte address.

    Hex beyond 20 bytes keeps its rightmost bytes; shorter input is
    left-padded with zeros and decoding stops at the first bad digit.
    """
    digits = text[2:] if text[:2] in ("0x", "0X") else text
    if len(digits) % 2:
        digits = "0" + digits
    raw = bytes.fromhex(_HEX_PAIRS.match(digits).group())
    return "0x" + raw[-20:].rjust(20, b"\0").hex()


@dataclass
class BusinessMiddleConfig:
    """Where the service listens."""

    grpc_hostname: str
    grpc_port: int


@dataclass
class PublicKey:
    """A public key and the role of the address derived from it."""

    address_type: str
    public_key: str


@dataclass
class TokenSpec:
    """A token to track, with its amounts as decimal strings."""

    address: str
    decimals: int
    token_name: str
    collect_amount: str = ""
    cold_amount: str = ""


@dataclass
class UnsignTransactionRequest:
    """Request for a new transaction ready to be signed."""

    request_id: str
    chain_id: str
    from_address: str
    to_address: str
    value: str
    tx_type: str
    contract_address: str = "0x00"
    chain: str = ""
    token_id: str = ""
    token_meta: str = ""
    consumer_token: str = ""


@dataclass
class SignedTransactionRequest:
    """Request to attach a signature to a stored transaction."""

    request_id: str
    chain_id: str
    transaction_id: str
    signature: str
    tx_type: str
    chain: str = ""
    consumer_token: str = ""


@dataclass
class ServiceResponse:
    """Outcome of a service call."""

    code: ReturnCode = ReturnCode.ERROR
    msg: str = ""
    addresses: list[dict[str, str]] = field(default_factory=list)
    transaction_id: str = ""
    unsign_tx: str = ""
    signed_tx: str = ""


def validate_request(request: UnsignTransactionRequest | None) -> None:
    """Raise ValueError if a required field of ``request`` is missing."""
    if request is None:
        raise ValueError("request cannot be None")
    if not request.from_address:
        raise ValueError("from address cannot be empty")
    if not request.to_address:
        raise ValueError("to address cannot be empty")
    if not request.value:
        raise ValueError("value cannot be empty")


class BusinessMiddleWireServices:
    """Business-facing wallet operations.

    ``db`` provides ``create_business_tables(business_id)`` and the stores
    ``business``, ``addresses``, ``balances``, ``tokens``, ``deposits``,
    ``withdraws`` and ``internals``; store methods raise on failure.
    """

    def __init__(
        self,
        db: Any,
        config: BusinessMiddleConfig,
        account_client: WalletChainAccountClient,
    ) -> None:
        self.db = db
        self.config = config
        self.account_client = account_client
        self._stopped = threading.Event()

    def stop(self) -> None:
        """Mark the service as stopped."""
        self._stopped.set()

    def stopped(self) -> bool:
        """Return whether the service has been stopped."""
        return self._stopped.is_set()

    def business_register(self, request_id: str, notify_url: str) -> ServiceResponse:
        """Register a business platform and create its tables."""
        if not request_id or not notify_url:
            return ServiceResponse(ReturnCode.ERROR, "invalid params")
        business = Business(business_uid=request_id, notify_url=notify_url)
        try:
            self.db.business.store_business(business)
        except Exception:
            logger.exception("store business failed")
            return ServiceResponse(ReturnCode.ERROR, "store db fail")
        self.db.create_business_tables(request_id)
        return ServiceResponse(ReturnCode.SUCCESS, "config business success")

    def export_addresses_by_public_keys(
        self, request_id: str, public_keys: Iterable[PublicKey]
    ) -> ServiceResponse:
        """Derive, store and return an address for every public key."""
        exported: list[dict[str, str]] = []
        address_records: list[AddressRecord] = []
        balances: list[Balance] = []
        for key in public_keys:
            address = self.account_client.export_address_by_pub_key("", key.public_key)
            address_type = parse_address_type(key.address_type)
            normalised = _to_address(address)
            address_records.append(
                AddressRecord(
                    address=normalised,
                    address_type=address_type,
                    public_key=key.public_key,
                )
            )
            balances.append(Balance(address=normalised, address_type=address_type))
            exported.append({"type": key.address_type, "address": address})

        try:
            self.db.addresses.store_addresses(request_id, address_records)
        except Exception:
            logger.exception("store addresses failed")
            return ServiceResponse(ReturnCode.ERROR, "store address to db fail")
        try:
            self.db.balances.store_balances(request_id, balances)
        except Exception:
            logger.exception("store balances failed")
            return ServiceResponse(ReturnCode.ERROR, "store balance to db fail")
        return ServiceResponse(
            ReturnCode.SUCCESS, "generate address success", addresses=exported
        )

    def build_unsign_transaction(self, request: UnsignTransactionRequest) -> ServiceResponse:
        """Store a new transaction and return it unsigned."""
        response = ServiceResponse(ReturnCode.ERROR, unsign_tx="0x00")
        validate_request(request)
        tx_type = parse_transaction_type(request.tx_type)
        amount = _parse_decimal(request.value)
        if amount is None:
            raise ValueError(f"invalid amount value: {request.value}")
        guid = uuid.uuid4()

        nonce = self._account_nonce(request.from_address)
        fee = self._fee_info(request.from_address)
        gas_limit, contract_address = gas_and_contract_info(request.contract_address)

        record = self._new_record(request, guid, amount, gas_limit, fee, tx_type)
        if tx_type is TransactionType.DEPOSIT:
            self.db.deposits.store_deposits(request.request_id, [record])
        elif tx_type is TransactionType.WITHDRAW:
            self.db.withdraws.store_withdraw(request.request_id, record)
        elif tx_type in _INTERNAL_TYPES:
            self.db.internals.store_internal(request.request_id, record)
        else:
            response.msg = "Unsupported transaction type"
            return response

        fee_tx = Eip1559DynamicFeeTx(
            chain_id=request.chain_id,
            nonce=nonce,
            from_address=request.from_address,
            to_address=request.to_address,
            gas_limit=gas_limit,
            max_fee_per_gas=str(fee.max_priority_fee),
            max_priority_fee_per_gas=str(fee.multiplied_tip),
            amount=request.value,
            contract_address=contract_address,
        )
        reply = self.account_client.rpc.build_unsign_transaction(
            chain=CHAIN_NAME,
            network=NETWORK,
            base64_tx=base64.b64encode(fee_tx.to_json()).decode("ascii"),
        )
        response.code = ReturnCode.SUCCESS
        response.msg = "submit withdraw and build un sign tranaction success"
        response.transaction_id = str(guid)
        response.unsign_tx = reply.unsign_tx
        return response

    def build_signed_transaction(self, request: SignedTransactionRequest) -> ServiceResponse:
        """Combine a stored transaction with its signature and mark it signed."""
        response = ServiceResponse(ReturnCode.ERROR)
        tx_type = parse_transaction_type(request.tx_type)

        if tx_type is TransactionType.DEPOSIT:
            store, label = self.db.deposits, "Deposit"
            record = store.query_deposits_by_id(request.request_id, request.transaction_id)
        elif tx_type is TransactionType.WITHDRAW:
            store, label = self.db.withdraws, "Withdraw"
            record = store.query_withdraws_by_id(request.request_id, request.transaction_id)
        elif tx_type in _INTERNAL_TYPES:
            store, label = self.db.internals, "Internal"
            record = store.query_internals_by_id(request.request_id, request.transaction_id)
        else:
            response.msg = "Unsupported transaction type"
            response.signed_tx = "0x00"
            return response
        if record is None:
            response.msg = f"{label} transaction not found"
            return response

        nonce = self._account_nonce(record.from_address)
        fee_tx = Eip1559DynamicFeeTx(
            chain_id=request.chain_id,
            nonce=nonce,
            from_address=record.from_address,
            to_address=record.to_address,
            gas_limit=record.gas_limit,
            max_fee_per_gas=record.max_fee_per_gas,
            max_priority_fee_per_gas=record.max_priority_fee_per_gas,
            amount=str(record.amount),
            contract_address=record.token_address,
        )
        reply = self.account_client.rpc.build_signed_transaction(
            chain=CHAIN_NAME,
            network=NETWORK,
            signature=request.signature,
            base64_tx=base64.b64encode(fee_tx.to_json()).decode("ascii"),
        )

        signed = reply.signed_tx
        if tx_type is TransactionType.DEPOSIT:
            store.update_deposit_by_id(
                request.request_id, request.transaction_id, signed, TxStatus.SIGNED
            )
        elif tx_type is TransactionType.WITHDRAW:
            store.update_withdraw_by_id(
                request.request_id, request.transaction_id, signed, TxStatus.SIGNED
            )
        else:
            store.update_internal_by_id(
                request.request_id, request.transaction_id, signed, TxStatus.SIGNED
            )

        response.signed_tx = signed
        response.msg = "build signed tx success"
        response.code = ReturnCode.SUCCESS
        return response

    def set_token_address(self, request_id: str, tokens: Iterable[TokenSpec]) -> ServiceResponse:
        """Store the tokens a business tracks; malformed amounts become None."""
        records = [
            TokenRecord(
                token_address=_to_address(token.address),
                decimals=token.decimals & 0xFF,
                token_name=token.token_name,
                collect_amount=_parse_decimal(token.collect_amount),
                cold_amount=_parse_decimal(token.cold_amount),
            )
            for token in tokens
        ]
        self.db.tokens.store_tokens(request_id, records)
        return ServiceResponse(ReturnCode.SUCCESS, "set token address success")

    def _account_nonce(self, address: str) -> int:
        reply = self.account_client.rpc.get_account(
            chain=CHAIN_NAME,
            network=NETWORK,
            address=address,
            contract_address="0x00",
        )
        return _atoi(reply.sequence)

    def _fee_info(self, address: str) -> FeeInfo:
        reply = self.account_client.rpc.get_fee(
            chain=CHAIN_NAME, network=NETWORK, raw_tx="", address=address
        )
        return parse_fast_fee(reply.fast_fee)

    @staticmethod
    def _new_record(
        request: UnsignTransactionRequest,
        guid: uuid.UUID,
        amount: int,
        gas_limit: int,
        fee: FeeInfo,
        tx_type: TransactionType,
    ) -> TxRecord:
        return TxRecord(
            guid=guid,
            status=TxStatus.CREATE_UNSIGNED,
            block_hash=ZERO_HASH,
            block_number=1,
            tx_hash=ZERO_HASH,
            tx_type=tx_type,
            from_address=_to_address(request.from_address),
            to_address=_to_address(request.to_address),
            amount=amount,
            gas_limit=gas_limit,
            max_fee_per_gas=str(fee.max_priority_fee),
            max_priority_fee_per_gas=str(fee.multiplied_tip),
            token_type=determine_token_type(request.contract_address),
            token_address=_to_address(request.contract_address),
            token_id=request.token_id,
            token_meta=request.token_meta,
            tx_sign_hex="",
            confirms=0,
        )