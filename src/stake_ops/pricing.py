"""Token USD price lookup used to value calculator projections."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any

import requests

from .constants import ZERO_ADDRESS
from .exceptions import NetworkError

logger = logging.getLogger(__name__)

DEFAULT_PRICE_TIMEOUT = 10.0


class DexScreenerPriceFeed:
    """Read spot prices from the DexScreener public API."""

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        base_url: str = "https://api.dexscreener.com",
        chain: str = "monad",
        request_timeout: float = DEFAULT_PRICE_TIMEOUT,
    ) -> None:
        self._session = session or requests.Session()
        self._base_url = base_url.rstrip("/")
        self._chain = chain
        self._request_timeout = request_timeout

    def token_pairs(self, token: str) -> list[Mapping[str, Any]]:
        """Pairs listing ``token`` on the configured chain."""

        if not token or token.lower() == ZERO_ADDRESS:
            return []

        url = f"{self._base_url}/latest/dex/tokens/{token}"
        try:
            response = self._session.get(url, timeout=self._request_timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise NetworkError(
                "Failed to fetch token pairs",
                endpoint=url,
                status_code=getattr(exc.response, "status_code", None),
                details={"error": str(exc)},
            ) from exc

        pairs = payload.get("pairs") if isinstance(payload, Mapping) else None
        if not isinstance(pairs, Sequence):
            return []
        return [
            pair
            for pair in pairs
            if isinstance(pair, Mapping) and pair.get("chainId") == self._chain
        ]

    def token_price_usd(self, token: str) -> Decimal | None:
        """USD price from the most liquid pair, or None when no pair exists."""

        pairs = self.token_pairs(token)
        if not pairs:
            logger.debug("No %s pairs found for %s", self._chain, token)
            return None

        best = max(pairs, key=_liquidity_usd)
        try:
            return Decimal(str(best.get("priceUsd")))
        except (InvalidOperation, ValueError):
            logger.warning("Pair %s has no usable priceUsd", best.get("pairAddress"))
            return None


def _liquidity_usd(pair: Mapping[str, Any]) -> float:
    liquidity = pair.get("liquidity")
    if not isinstance(liquidity, Mapping):
        return 0.0
    try:
        return float(liquidity.get("usd") or 0)
    except (TypeError, ValueError):
        return 0.0
