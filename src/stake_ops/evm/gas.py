"""Gas price lookup with a fixed premium."""

from __future__ import annotations

import logging

from ..constants import GAS_PRICE_PREMIUM_DENOMINATOR, GAS_PRICE_PREMIUM_NUMERATOR
from ..exceptions import NetworkError
from .connections import Web3Connections

logger = logging.getLogger(__name__)


def apply_gas_premium(price: int) -> int:
    return price * GAS_PRICE_PREMIUM_NUMERATOR // GAS_PRICE_PREMIUM_DENOMINATOR


class GasPricer:
    """Current node gas price scaled by 130%."""

    def __init__(self, connections: Web3Connections) -> None:
        self._connections = connections

    async def current_premium_gas_price(self) -> int:
        web3 = self._connections.web3
        try:
            price = await web3.eth.gas_price
        except Exception as exc:
            raise NetworkError(
                "Failed to read gas price",
                endpoint=self._connections.rpc_url,
                details={"error": str(exc)},
            ) from exc

        adjusted = apply_gas_premium(int(price))
        logger.debug("Gas price %s -> %s with premium", price, adjusted)
        return adjusted
