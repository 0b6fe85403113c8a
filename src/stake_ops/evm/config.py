"""Configuration containers for the staking EVM client."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace

from dotenv import load_dotenv

from ..exceptions import ValidationError
from ..operations import get_profile
from ..types import OperationKind

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_HISTORY_SIZE = 50
DEXSCREENER_API = "https://api.dexscreener.com"
DEFAULT_DEXSCREENER_CHAIN = "monad"

# Registry name -> environment variable holding its address
CONTRACT_ENV_VARS = {
    "staking": "STAKING_CONTRACT",
    "stake_token": "STAKE_TOKEN",
    "masterchef": "MASTERCHEF_CONTRACT",
    "router": "ROUTER_CONTRACT",
    "wrapped_native": "WRAPPED_NATIVE",
    "launchpad": "LAUNCHPAD_CONTRACT",
}


@dataclass(frozen=True)
class PollingConfig:
    """Receipt polling windows; per-kind overrides fall back to the profile table."""

    timeouts: Mapping[OperationKind, float] = field(default_factory=dict)
    poll_intervals: Mapping[OperationKind, float] = field(default_factory=dict)

    def timeout_for(self, kind: OperationKind) -> float:
        return float(self.timeouts.get(kind, get_profile(kind).timeout))

    def interval_for(self, kind: OperationKind) -> float:
        return float(self.poll_intervals.get(kind, get_profile(kind).poll_interval))


@dataclass(frozen=True)
class ClientConfig:
    """Aggregated configuration used to construct the staking client."""

    private_key: str
    rpc_url: str
    chain_id: int | None = None
    contracts: Mapping[str, str] = field(default_factory=dict)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    history_size: int = DEFAULT_HISTORY_SIZE
    polling: PollingConfig = PollingConfig()
    price_api_url: str = DEXSCREENER_API
    price_chain: str = DEFAULT_DEXSCREENER_CHAIN

    def with_contracts(self, **addresses: str) -> ClientConfig:
        """Return a copy with extra or replaced contract addresses."""

        merged = dict(self.contracts)
        merged.update(addresses)
        return replace(self, contracts=merged)

    @classmethod
    def from_env(cls, env_file: str | None = None) -> ClientConfig:
        """Build a config from environment variables (after loading ``.env``)."""

        load_dotenv(env_file)

        private_key = os.getenv("PRIVATE_KEY")
        if not private_key:
            raise ValidationError(
                "PRIVATE_KEY not found in environment variables", field="PRIVATE_KEY"
            )

        rpc_url = os.getenv("RPC_URL")
        if not rpc_url:
            raise ValidationError("RPC_URL not found in environment variables", field="RPC_URL")

        chain_id_raw = os.getenv("CHAIN_ID")
        try:
            chain_id = int(chain_id_raw) if chain_id_raw else None
        except ValueError as exc:
            raise ValidationError(
                "CHAIN_ID must be an integer", field="CHAIN_ID", value=chain_id_raw
            ) from exc

        contracts = {
            name: address
            for name, env_var in CONTRACT_ENV_VARS.items()
            if (address := os.getenv(env_var))
        }

        return cls(
            private_key=private_key,
            rpc_url=rpc_url,
            chain_id=chain_id,
            contracts=contracts,
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)),
            price_chain=os.getenv("DEXSCREENER_CHAIN", DEFAULT_DEXSCREENER_CHAIN),
        )
