"""Periodic notification of business platforms about their transactions."""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, TypeVar

from chainsync.notify_client import NotifyClient
from chainsync.records import NotifyRequest, Transaction, TxRecord, TxStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")
ShutdownFn = Callable[[BaseException], None]

NOTIFY_INTERVAL = 5.0
_RETRY_ATTEMPTS = 10


@dataclass(frozen=True)
class _ExponentialStrategy:
    """Doubling delay between attempts, capped, with random jitter."""

    min_ms: int = 1000
    max_ms: int = 20_000
    max_jitter_ms: int = 250

    def delay(self, attempt: int) -> float:
        base = min(self.min_ms * 2**attempt, self.max_ms)
        return (base + random.uniform(0, self.max_jitter_ms)) / 1000


_RETRY_STRATEGY = _ExponentialStrategy()


def _retry(
    stop_event: threading.Event,
    operation: Callable[[], T],
    attempts: int = _RETRY_ATTEMPTS,
    strategy: _ExponentialStrategy = _RETRY_STRATEGY,
) -> T:
    """Run ``operation`` until it succeeds, re-raising its last error.

    Waiting between attempts ends early, with the last error, once
    ``stop_event`` is set.
    """
    for attempt in range(attempts):
        try:
            return operation()
        except Exception:
            if attempt == attempts - 1 or stop_event.wait(strategy.delay(attempt)):
                raise
    raise ValueError("attempts must be positive")


class _BackgroundLoop:
    """Runs ``step`` every ``interval`` seconds on a thread until stopped."""

    def __init__(
        self,
        name: str,
        interval: float,
        step: Callable[[], Any],
        shutdown: Optional[ShutdownFn],
    ) -> None:
        self._name = name
        self._interval = interval
        self._step = step
        self._shutdown = shutdown
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[BaseException] = None

    @property
    def stop_event(self) -> threading.Event:
        return self._stop

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError(f"{self._name} already started")
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        try:
            while not self._stop.wait(self._interval):
                self._step()
        except Exception as exc:
            logger.error("%s loop failed: %s", self._name, exc)
            self._error = exc
            if self._shutdown is not None:
                cause = RuntimeError(f"critical error in {self._name}: {exc}")
                cause.__cause__ = exc
                self._shutdown(cause)

    def stop(self) -> Optional[BaseException]:
        """Stop the loop, wait for it, and return the error that ended it."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
        return self._error


def _to_transaction(record: TxRecord, confirms: int) -> Transaction:
    return Transaction(
        block_hash=record.block_hash,
        block_number=record.block_number,
        hash=record.tx_hash,
        from_address=record.from_address,
        to_address=record.to_address,
        value=str(record.amount),
        fee=record.max_fee_per_gas,
        tx_type=record.tx_type,
        confirms=confirms,
        token_address=record.token_address,
        token_id=record.token_id,
        token_meta=record.token_meta,
    )


class Notifier:
    """Reports pending transactions to every registered business platform.

    ``db`` provides ``business.query_business_list()``, the stores
    ``deposits``, ``withdraws`` and ``internals`` and ``transaction(fn)``,
    which runs ``fn`` with a transactional view of the same stores.
    """

    def __init__(
        self,
        db: Any,
        shutdown: Optional[ShutdownFn] = None,
        interval: float = NOTIFY_INTERVAL,
    ) -> None:
        self.db = db
        self.business_ids: list[str] = []
        self.notify_clients: dict[str, NotifyClient] = {}
        for business in db.business.query_business_list():
            logger.info("handle business id %s", business.business_uid)
            self.business_ids.append(business.business_uid)
            self.notify_clients[business.business_uid] = NotifyClient(business.notify_url)
        self._loop = _BackgroundLoop("notifier", interval, self.notify_once, shutdown)
        self._stopped = threading.Event()

    def start(self) -> None:
        """Start notifying on a background thread."""
        logger.info("start notifier")
        self._loop.start()

    def stop(self) -> None:
        """Stop the background thread; raise if it ended with an error."""
        self._stopped.set()
        error = self._loop.stop()
        if error is not None:
            raise RuntimeError(f"failed to await notify: {error}") from error
        logger.info("stop notify success")

    def stopped(self) -> bool:
        """Return whether the notifier has been stopped."""
        return self._stopped.is_set()

    def notify_once(self) -> None:
        """Notify each business of its pending transactions once."""
        for business_id in self.business_ids:
            deposits = self.db.deposits.query_notify_deposits(business_id)
            withdraws = self.db.withdraws.query_notify_withdraws(business_id)
            internals = self.db.internals.query_notify_internal(business_id)
            request = self.build_notify_transaction(deposits, withdraws, internals)

            self.before_after_notify(business_id, True, False, deposits, withdraws, internals)
            success = self.notify_clients[business_id].business_notify(request)
            self.before_after_notify(
                business_id, False, success, deposits, withdraws, internals
            )

    def before_after_notify(
        self,
        business_id: str,
        is_before: bool,
        notify_success: bool,
        deposits: Iterable[TxRecord],
        withdraws: Iterable[TxRecord],
        internals: Iterable[TxRecord],
    ) -> None:
        """Record the notification state of the given transactions.

        Before a notification they become NOTIFIED; afterwards SUCCESS if
        the platform accepted them and WALLET_DONE otherwise. Unsigned
        deposits are left untouched.
        """
        if is_before:
            status = TxStatus.NOTIFIED
        elif notify_success:
            status = TxStatus.SUCCESS
        else:
            status = TxStatus.WALLET_DONE

        deposits = list(deposits)
        withdraws = list(withdraws)
        internals = list(internals)
        signed_deposits = [d for d in deposits if d.status != TxStatus.CREATE_UNSIGNED]

        def persist(tx: Any) -> None:
            if deposits:
                tx.deposits.update_deposits_status_by_tx_hash(
                    business_id, status, signed_deposits
                )
            if withdraws:
                tx.withdraws.update_withdraw_status_by_tx_hash(business_id, status, withdraws)
            if internals:
                tx.internals.update_internal_status_by_tx_hash(business_id, status, internals)

        def attempt() -> None:
            try:
                self.db.transaction(persist)
            except Exception:
                logger.exception("unable to persist batch")
                raise

        _retry(self._loop.stop_event, attempt)

    def build_notify_transaction(
        self,
        deposits: Iterable[TxRecord],
        withdraws: Iterable[TxRecord],
        internals: Iterable[TxRecord],
    ) -> NotifyRequest:
        """Collect deposits, withdrawals and internal transfers into one request."""
        txn = [_to_transaction(d, d.confirms) for d in deposits]
        txn.extend(_to_transaction(w, 0) for w in withdraws)
        txn.extend(_to_transaction(i, 0) for i in internals)
        return NotifyRequest(txn=txn)