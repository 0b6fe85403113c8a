"""Pending-nonce lookup performed immediately before every submission."""

from __future__ import annotations

import logging

from ..exceptions import NetworkError
from .connections import Web3Connections

logger = logging.getLogger(__name__)


class NonceAllocator:
    """Read the account's pending nonce from the node; never cached."""

    def __init__(self, connections: Web3Connections) -> None:
        self._connections = connections

    async def next_nonce(self, account: str) -> int:
        web3 = self._connections.web3
        try:
            nonce = await web3.eth.get_transaction_count(account, "pending")
        except Exception as exc:
            raise NetworkError(
                "Failed to read pending nonce",
                endpoint=self._connections.rpc_url,
                details={"account": account, "error": str(exc)},
            ) from exc

        logger.debug("Pending nonce for %s is %s", account, nonce)
        return int(nonce)
