"""Connection helpers for the staking EVM client."""

from __future__ import annotations

import logging
from typing import cast

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.contract import AsyncContract
from web3.types import ChecksumAddress

from ..exceptions import NetworkError, ValidationError
from .config import ClientConfig
from .registry import ContractRegistry

logger = logging.getLogger(__name__)


class Web3Connections:
    """Manage the async Web3 provider, signer account and contract handles."""

    def __init__(self, config: ClientConfig, registry: ContractRegistry | None = None):
        self.config = config
        self.registry = registry or ContractRegistry(config.contracts)
        self._provider: AsyncHTTPProvider | None = None
        self._web3: AsyncWeb3 | None = None
        self._account: LocalAccount | None = None
        self._chain_id: int | None = None
        self._contracts: dict[tuple[str, str], AsyncContract] = {}
        self._connected = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self) -> None:
        """Initialise the provider, derive the signer and resolve the chain id."""

        try:
            signer = cast(LocalAccount, Account.from_key(self.config.private_key))
        except Exception as exc:
            raise ValidationError(
                "Failed to derive signer account from provided private key",
                field="private_key",
                details={"error": str(exc)},
            ) from exc

        self._account = signer

        provider = AsyncHTTPProvider(
            self.config.rpc_url, request_kwargs={"timeout": self.config.request_timeout}
        )
        web3 = AsyncWeb3(provider)
        if not await web3.is_connected():
            raise NetworkError("Unable to connect to RPC", endpoint=self.config.rpc_url)

        try:
            chain_id = await web3.eth.chain_id
        except Exception as exc:
            raise NetworkError(
                "Failed to read chain id",
                endpoint=self.config.rpc_url,
                details={"error": str(exc)},
            ) from exc

        if self.config.chain_id is not None and chain_id != self.config.chain_id:
            raise ValidationError(
                "RPC endpoint serves a different chain than configured",
                field="chain_id",
                value=chain_id,
                details={"expected": self.config.chain_id},
            )

        self._provider = provider
        self._web3 = web3
        self._chain_id = chain_id
        self._contracts.clear()
        self._connected = True
        logger.info("Connected to RPC at %s (chain_id=%s)", self.config.rpc_url, chain_id)

    async def disconnect(self) -> None:
        provider = self._provider
        self._provider = None
        self._web3 = None
        self._account = None
        self._chain_id = None
        self._contracts.clear()
        self._connected = False
        if provider is not None:
            await provider.disconnect()

    def is_connected(self) -> bool:
        return self._connected and self._web3 is not None and self._account is not None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def rpc_url(self) -> str:
        return self.config.rpc_url

    @property
    def web3(self) -> AsyncWeb3:
        if self._web3 is None:
            raise NetworkError("RPC provider not connected", endpoint=self.config.rpc_url)
        return self._web3

    @property
    def account(self) -> LocalAccount:
        if self._account is None:
            raise NetworkError(
                "Signer account is not initialised; call connect() first",
                endpoint=self.config.rpc_url,
            )
        return self._account

    @property
    def address(self) -> ChecksumAddress:
        return self.account.address

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            raise NetworkError(
                "Chain id unknown; call connect() first", endpoint=self.config.rpc_url
            )
        return self._chain_id

    def contract(self, address: str, role: str) -> AsyncContract:
        """Return a cached contract handle for ``address`` using the ABI for ``role``."""

        checksum = AsyncWeb3.to_checksum_address(address)
        key = (checksum, role)
        handle = self._contracts.get(key)
        if handle is None:
            handle = self.web3.eth.contract(address=checksum, abi=self.registry.abi(role))
            self._contracts[key] = handle
        return handle
