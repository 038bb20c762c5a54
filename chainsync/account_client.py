"""Client for the chain account service that reads and writes the chain."""

from __future__ import annotations

import logging
import re
from enum import IntEnum
from typing import Any

logger = logging.getLogger(__name__)

NETWORK = "mainnet"
_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class ReturnCode(IntEnum):
    """Result code carried by every account service reply."""

    ERROR = 0
    SUCCESS = 1


class AccountServiceError(Exception):
    """The account service reported a failure."""


def _atoi(text: str) -> int:
    """Parse a signed 64-bit decimal integer, strictly."""
    if not _INT_PATTERN.fullmatch(text):
        raise ValueError(f"invalid integer: {text!r}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _failed(reply: Any) -> bool:
    return getattr(reply, "code", ReturnCode.SUCCESS) == ReturnCode.ERROR


class WalletChainAccountClient:
    """Wraps an account service stub for one chain.

    ``rpc`` exposes the service calls as methods taking keyword arguments
    and returning replies with attribute access.
    """

    def __init__(self, rpc: Any, chain_name: str) -> None:
        logger.info("new account chain rpc client chain=%s", chain_name)
        self.rpc = rpc
        self.chain_name = chain_name

    def export_address_by_pub_key(self, type_or_version: str, public_key: str) -> str:
        """Return the address for ``public_key``, or "" when conversion fails."""
        try:
            reply = self.rpc.convert_address(
                chain=self.chain_name, type=type_or_version, public_key=public_key
            )
        except Exception:
            logger.exception("convert address failed")
            return ""
        if _failed(reply):
            logger.error("convert address failed: %s", getattr(reply, "msg", ""))
            return ""
        return reply.address

    def get_block_header(self, number: int | None) -> Any:
        """Return the header at ``number``; ``None`` asks for the latest."""
        height = 0 if number is None else int(number)
        reply = self.rpc.get_block_header_by_number(
            chain=self.chain_name, network=NETWORK, height=height
        )
        if _failed(reply):
            raise AccountServiceError(f"get block header failed: {getattr(reply, 'msg', '')}")
        return reply

    def get_block_info(self, block_number: int) -> Any:
        """Return the block at ``block_number`` including its transactions."""
        reply = self.rpc.get_block_by_number(
            chain=self.chain_name, height=int(block_number), view_tx=True
        )
        if _failed(reply):
            raise AccountServiceError(f"get block info failed: {getattr(reply, 'msg', '')}")
        return reply

    def get_transaction_by_hash(self, tx_hash: str) -> Any:
        """Return the transaction message with hash ``tx_hash``."""
        reply = self.rpc.get_tx_by_hash(chain=self.chain_name, network=NETWORK, hash=tx_hash)
        if _failed(reply):
            raise AccountServiceError(f"get transaction failed: {getattr(reply, 'msg', '')}")
        return reply.tx

    def get_account_number(self, address: str) -> int:
        """Return the account number of ``address``."""
        reply = self.rpc.get_account(chain=self.chain_name, network=NETWORK, address=address)
        if _failed(reply):
            raise AccountServiceError(f"get account failed: {getattr(reply, 'msg', '')}")
        return _atoi(reply.account_number)

    def get_account(self, address: str) -> tuple[int, int, int]:
        """Return (account number, sequence, balance); all zero on any failure."""
        try:
            reply = self.rpc.get_account(
                chain=self.chain_name,
                network=NETWORK,
                address=address,
                contract_address="0x00",
            )
        except Exception:
            logger.info("get account failed", exc_info=True)
            return 0, 0, 0
        if _failed(reply):
            logger.info("get account info failed: %s", getattr(reply, "msg", ""))
            return 0, 0, 0
        try:
            return (
                _atoi(reply.account_number),
                _atoi(reply.sequence),
                _atoi(reply.balance),
            )
        except ValueError:
            logger.info("failed to convert account fields", exc_info=True)
            return 0, 0, 0

    def send_tx(self, raw_tx: str) -> str:
        """Broadcast a signed transaction and return its hash."""
        logger.info("send transaction chain=%s", self.chain_name)
        reply = self.rpc.send_tx(chain=self.chain_name, network=NETWORK, raw_tx=raw_tx)
        if reply is None:
            raise AccountServiceError("send tx failed: empty reply")
        if _failed(reply):
            raise AccountServiceError(f"send tx failed: {getattr(reply, 'msg', '')}")
        return reply.tx_hash