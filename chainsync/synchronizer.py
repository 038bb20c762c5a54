"""Block synchronisation: fetching blocks and classifying their transactions."""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Optional

from chainsync.account_client import WalletChainAccountClient
from chainsync.channel_bank import ChannelBank, TransactionChannel
from chainsync.notifier import ShutdownFn
from chainsync.records import AddressType, TransactionType

logger = logging.getLogger(__name__)

TX_HANDLE_TASK_BATCH_SIZE = 500


def classify_transaction(
    from_exists: bool,
    from_type: Optional[AddressType],
    to_exists: bool,
    to_type: Optional[AddressType],
) -> TransactionType:
    """Work out the direction of a transfer from the roles of its two ends."""
    from_hot = from_exists and from_type == AddressType.HOT
    from_user = from_exists and from_type == AddressType.USER
    from_cold = from_exists and from_type == AddressType.COLD
    to_hot = to_exists and to_type == AddressType.HOT
    to_user = to_exists and to_type == AddressType.USER
    to_cold = to_exists and to_type == AddressType.COLD

    if not from_exists and to_user:
        return TransactionType.DEPOSIT
    if from_hot and not to_exists:
        return TransactionType.WITHDRAW
    if from_user and to_hot:
        return TransactionType.COLLECTION
    if from_hot and to_cold:
        return TransactionType.HOT2COLD
    if from_cold and to_hot:
        return TransactionType.COLD2HOT
    return TransactionType.UNKNOWN


def _parse_block_number(text: Any) -> int:
    """Parse an unsigned block number; malformed input counts as zero."""
    try:
        value = int(str(text), 10)
    except ValueError:
        return 0
    return value if 0 <= value < 2**64 else 0


class BaseSynchronizer:
    """Fetches blocks in batches on a background thread.

    Each tick requests up to ``header_buffer_size`` blocks starting at
    ``from_block`` and moves ``from_block`` past the blocks it received.
    ``db`` provides ``business.query_business_list()`` and
    ``addresses.address_exist(business_id, address)`` returning
    ``(exists, address_type)``.
    """

    _name = "synchronizer"

    def __init__(
        self,
        db: Any,
        rpc_client: WalletChainAccountClient,
        from_block: int,
        loop_interval: float,
        header_buffer_size: int,
    ) -> None:
        self.db = db
        self.rpc_client = rpc_client
        self.from_block = from_block
        self.loop_interval = loop_interval
        self.header_buffer_size = header_buffer_size
        self._shutdown: Optional[ShutdownFn] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the fetch loop; a synchroniser starts only once."""
        if self._thread is not None:
            raise RuntimeError("already started")
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def close(self) -> None:
        """Stop the fetch loop and wait for it to finish."""
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join()
        logger.info("shutting down batch producer")

    def _run(self) -> None:
        while not self._stop.wait(self.loop_interval):
            try:
                self._tick()
            except Exception as exc:
                logger.error("%s tick failed: %s", self._name, exc)
                if self._shutdown is not None:
                    cause = RuntimeError(f"critical error in {self._name}: {exc}")
                    cause.__cause__ = exc
                    self._shutdown(cause)
                return

    def _tick(self) -> None:
        start = self.from_block
        try:
            blocks = self.batch_block_handle(start, start + self.header_buffer_size)
        except Exception:
            logger.exception("fetch blocks from %d failed", start)
            return
        self.from_block = start + len(blocks)

    def batch_block_handle(self, start_block: int, end_block: int) -> list[Any]:
        """Fetch the blocks in ``[start_block, end_block)`` in order."""
        blocks = []
        for height in range(start_block, end_block):
            try:
                blocks.append(self.rpc_client.get_block_info(height))
            except Exception:
                logger.error("get block info failed height=%d", height)
                raise
        return blocks

    def scan_block_transactions(
        self,
        tx_hashes: Iterable[str],
        block_number: int,
        block_hash: str,
        bank: ChannelBank,
    ) -> None:
        """Push every transaction that touches a business's addresses into ``bank``."""
        tx_hashes = list(tx_hashes)
        businesses = self.db.business.query_business_list()
        for business in businesses:
            business_id = business.business_uid
            for tx_hash in tx_hashes:
                tx = self.rpc_client.get_transaction_by_hash(tx_hash)
                sender = getattr(tx, "from")
                to_exists, to_type = self.db.addresses.address_exist(business_id, tx.to)
                from_exists, from_type = self.db.addresses.address_exist(business_id, sender)
                if not to_exists and not from_exists:
                    continue
                tx_type = classify_transaction(from_exists, from_type, to_exists, to_type)
                logger.info(
                    "found %s transaction hash=%s from=%s to=%s",
                    tx_type.value, tx.hash, sender, tx.to,
                )
                bank.push(
                    TransactionChannel(
                        business_id=business_id,
                        block_number=block_number,
                        block_hash=block_hash,
                        tx_hash=tx.hash,
                        from_address=sender,
                        to_address=tx.to,
                        amount=tx.value,
                        tx_fee=tx.fee,
                        tx_status=1,
                        token_address=tx.contract_address,
                        tx_type=tx_type,
                    )
                )


class Deposit(BaseSynchronizer):
    """Synchroniser that picks up where the stored chain left off.

    It resumes from the latest stored block; with none stored it starts at
    ``starting_height`` when that is positive, otherwise at the chain's
    latest block. ``db`` additionally provides ``blocks.latest_blocks()``.
    """

    _name = "deposit"

    def __init__(
        self,
        db: Any,
        rpc_client: WalletChainAccountClient,
        shutdown: Optional[ShutdownFn] = None,
        starting_height: int = 0,
        loop_interval: float = 5.0,
        blocks_step: int = TX_HANDLE_TASK_BATCH_SIZE,
        confirmations: int = 0,
    ) -> None:
        latest = db.blocks.latest_blocks()
        if latest is not None:
            logger.info("sync block number=%s hash=%s", latest.number, latest.hash)
            from_block = int(latest.number)
        else:
            height = starting_height if starting_height > 0 else None
            header = rpc_client.get_block_header(height)
            from_block = _parse_block_number(header.block_header.number)

        super().__init__(db, rpc_client, from_block, loop_interval, blocks_step)
        self.confirms = confirmations & 0xFF
        self._shutdown = shutdown

    def start(self) -> None:
        """Start the deposit synchroniser."""
        logger.info("starting deposit")
        try:
            super().start()
        except RuntimeError as exc:
            raise RuntimeError(f"failed to start internal synchronizer: {exc}") from exc

    def close(self) -> None:
        """Stop the deposit synchroniser."""
        try:
            super().close()
        except Exception as exc:
            raise RuntimeError(
                f"failed to close internal base synchronizer: {exc}"
            ) from exc