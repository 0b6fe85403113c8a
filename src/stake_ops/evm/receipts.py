"""Bounded, cancellable receipt polling."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from web3.exceptions import TransactionNotFound

from ..cancellation import CancellationToken
from ..types import PollOutcome
from ..utils import serialise_receipt
from .connections import Web3Connections

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiptOutcome:
    outcome: PollOutcome
    receipt: dict[str, Any] | None = None
    attempts: int = 0


class ReceiptPoller:
    """Poll for a receipt at a fixed interval until terminal status or the deadline.

    Read errors while polling are treated as "not yet available"; only the
    deadline produces ``TIMED_OUT``. A cancelled token ends polling with
    ``CANCELLED`` at the next suspension point.
    """

    def __init__(
        self,
        connections: Web3Connections,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._connections = connections
        self._clock = clock

    async def await_outcome(
        self,
        tx_handle: str,
        timeout: float,
        *,
        poll_interval: float,
        cancel_token: CancellationToken | None = None,
    ) -> ReceiptOutcome:
        token = cancel_token or CancellationToken()
        deadline = self._clock() + timeout
        attempts = 0

        logger.debug(
            "Polling receipt for %s (timeout=%.0fs, interval=%.1fs)",
            tx_handle,
            timeout,
            poll_interval,
        )

        while True:
            if token.cancelled:
                return ReceiptOutcome(PollOutcome.CANCELLED, attempts=attempts)

            attempts += 1
            receipt = await self._fetch_receipt(tx_handle, attempts)

            if token.cancelled:
                return ReceiptOutcome(PollOutcome.CANCELLED, attempts=attempts)

            if receipt is not None:
                serialised = serialise_receipt(receipt)
                if receipt.get("status") == 1:
                    logger.info(
                        "Transaction confirmed hash=%s block=%s",
                        tx_handle,
                        receipt.get("blockNumber"),
                    )
                    return ReceiptOutcome(PollOutcome.SUCCESS, serialised, attempts)
                logger.warning("Transaction reverted hash=%s", tx_handle)
                return ReceiptOutcome(PollOutcome.REVERTED, serialised, attempts)

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning(
                    "No receipt for %s after %s polls (%.0fs)", tx_handle, attempts, timeout
                )
                return ReceiptOutcome(PollOutcome.TIMED_OUT, attempts=attempts)

            if await token.sleep(min(poll_interval, remaining)):
                return ReceiptOutcome(PollOutcome.CANCELLED, attempts=attempts)

    async def _fetch_receipt(self, tx_handle: str, attempt: int) -> Any:
        try:
            return await self._connections.web3.eth.get_transaction_receipt(tx_handle)
        except TransactionNotFound:
            return None
        except Exception as exc:
            logger.debug("Receipt poll error for %s (attempt %s): %s", tx_handle, attempt, exc)
            return None
