"""Workers that broadcast signed withdrawals and internal transfers."""

from __future__ import annotations

import logging
from typing import Any, Optional

from chainsync.account_client import WalletChainAccountClient
from chainsync.notifier import ShutdownFn, _BackgroundLoop, _retry
from chainsync.records import Balance, TxRecord, TxStatus

logger = logging.getLogger(__name__)

WORKER_INTERVAL = 5.0


class _BroadcastWorker:
    """Periodically broadcasts each business's signed, unsent transactions.

    ``db`` provides ``business.query_business_list()``, ``balances``, the
    transaction store used by the subclass and ``transaction(fn)``.
    """

    _name = "worker"

    def __init__(
        self,
        db: Any,
        rpc_client: WalletChainAccountClient,
        shutdown: Optional[ShutdownFn] = None,
        interval: float = WORKER_INTERVAL,
    ) -> None:
        self.db = db
        self.rpc_client = rpc_client
        self._loop = _BackgroundLoop(self._name, interval, self.process_once, shutdown)

    def _unsent(self, business_id: str) -> list[TxRecord]:
        raise NotImplementedError

    def _update_records(self, tx: Any, business_id: str, records: list[TxRecord]) -> None:
        raise NotImplementedError

    def start(self) -> None:
        """Start broadcasting on a background thread."""
        logger.info("start %s", self._name)
        self._loop.start()

    def close(self) -> None:
        """Stop the background thread; raise if it ended with an error."""
        logger.info("stop %s", self._name)
        error = self._loop.stop()
        if error is not None:
            raise RuntimeError(f"failed to await {self._name}: {error}") from error
        logger.info("stop %s success", self._name)

    def process_once(self) -> None:
        """Broadcast every business's pending transactions once."""
        try:
            businesses = self.db.business.query_business_list()
        except Exception:
            logger.exception("query business list failed")
            return
        for business in businesses:
            self._process_business(business.business_uid)

    def _process_business(self, business_id: str) -> None:
        try:
            unsent = list(self._unsent(business_id))
        except Exception:
            logger.exception("query unsent %s list failed", self._name)
            return
        if not unsent:
            logger.info("no unsent %s transactions for business %s", self._name, business_id)
            return

        balances: list[Balance] = []
        for record in unsent:
            try:
                tx_hash = self.rpc_client.send_tx(record.tx_sign_hex)
            except Exception:
                logger.exception("send transaction failed")
                continue
            balances.append(
                Balance(
                    token_address=record.token_address,
                    address=record.from_address,
                    lock_balance=record.amount,
                )
            )
            record.tx_hash = tx_hash
            record.status = TxStatus.BROADCASTED

        def persist(tx: Any) -> None:
            if balances:
                logger.info("update address balance total=%d", len(balances))
                tx.balances.update_balance_list_by_two_address(business_id, balances)
            self._update_records(tx, business_id, unsent)

        def attempt() -> None:
            try:
                self.db.transaction(persist)
            except Exception:
                logger.exception("unable to persist batch")
                raise

        _retry(self._loop.stop_event, attempt)


class Withdraw(_BroadcastWorker):
    """Broadcasts signed withdrawals."""

    _name = "withdraw"

    def __init__(
        self,
        db: Any,
        rpc_client: WalletChainAccountClient,
        shutdown: Optional[ShutdownFn] = None,
        interval: float = WORKER_INTERVAL,
    ) -> None:
        super().__init__(db, rpc_client, shutdown, interval)

    def start(self) -> None:
        """Start broadcasting withdrawals on a background thread."""
        super().start()

    def close(self) -> None:
        """Stop the withdrawal thread; raise if it ended with an error."""
        super().close()

    def process_once(self) -> None:
        """Broadcast every business's pending withdrawals once."""
        super().process_once()

    def _unsent(self, business_id: str) -> list[TxRecord]:
        return self.db.withdraws.un_send_withdraws_list(business_id)

    def _update_records(self, tx: Any, business_id: str, records: list[TxRecord]) -> None:
        tx.withdraws.update_withdraw_list_by_id(business_id, records)


class Internal(_BroadcastWorker):
    """Broadcasts signed collection and hot/cold transfers."""

    _name = "internal"

    def __init__(
        self,
        db: Any,
        rpc_client: WalletChainAccountClient,
        shutdown: Optional[ShutdownFn] = None,
        interval: float = WORKER_INTERVAL,
    ) -> None:
        super().__init__(db, rpc_client, shutdown, interval)

    def start(self) -> None:
        """Start broadcasting internal transfers on a background thread."""
        super().start()

    def close(self) -> None:
        """Stop the internal-transfer thread; raise if it ended with an error."""
        super().close()

    def process_once(self) -> None:
        """Broadcast every business's pending internal transfers once."""
        super().process_once()

    def _unsent(self, business_id: str) -> list[TxRecord]:
        return self.db.internals.un_send_internals_list(business_id)

    def _update_records(self, tx: Any, business_id: str, records: list[TxRecord]) -> None:
        tx.internals.update_internal_list_by_id(business_id, records)