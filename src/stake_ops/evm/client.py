"""Staking client that routes every write through the operation state machine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import requests

from ..cache import ReadCache
from ..calculator import CalculatorState
from ..cancellation import CancellationToken
from ..classifier import classify_local_failure
from ..exceptions import NetworkError, ValidationError
from ..machine import OperationStateMachine, TransitionListener
from ..operations import (
    AddLiquidityParams,
    ApproveParams,
    CompoundParams,
    ContributeParams,
    EmergencyWithdrawParams,
    HarvestParams,
    OperationParams,
    RemoveLiquidityParams,
    StakeParams,
    UnstakeParams,
)
from ..pricing import DexScreenerPriceFeed
from ..types import OperationKind, OperationState, Result
from .config import ClientConfig
from .connections import Web3Connections
from .gas import GasPricer
from .nonce import NonceAllocator
from .reader import ChainReadCache
from .receipts import ReceiptPoller
from .registry import ContractRegistry
from .signer import LocalAccountSigner, Signer
from .transactions import TransactionSubmitter

logger = logging.getLogger(__name__)


class StakingClient:
    """Approve, stake, harvest, provide liquidity and contribute against EVM contracts."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        registry: ContractRegistry | None = None,
        signer: Signer | None = None,
        cache: ReadCache | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._config = config
        self._connections = Web3Connections(config, registry)
        self._signer_override = signer
        self._cache_override = cache
        self._session = session or requests.Session()
        self._price_feed = DexScreenerPriceFeed(
            self._session,
            base_url=config.price_api_url,
            chain=config.price_chain,
            request_timeout=config.request_timeout,
        )
        self._machine: OperationStateMachine | None = None
        self._cache: ReadCache | None = None
        self._listeners: list[TransitionListener] = []

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------
    async def connect(self) -> None:
        try:
            await self._connections.connect()
        except (ValidationError, NetworkError):
            await self.disconnect()
            raise
        except Exception as exc:
            await self.disconnect()
            raise NetworkError(
                "Failed to initialize EVM connection",
                endpoint=self._config.rpc_url,
                details={"error": str(exc)},
            ) from exc

        signer = self._signer_override or LocalAccountSigner(self._connections.account)
        self._cache = self._cache_override or ChainReadCache(self._connections)
        polling = self._config.polling
        self._machine = OperationStateMachine(
            account=signer.address,
            nonce_allocator=NonceAllocator(self._connections),
            gas_pricer=GasPricer(self._connections),
            submitter=TransactionSubmitter(self._connections, signer),
            poller=ReceiptPoller(self._connections),
            cache=self._cache,
            timeouts={kind: polling.timeout_for(kind) for kind in OperationKind},
            poll_intervals={kind: polling.interval_for(kind) for kind in OperationKind},
            history_size=self._config.history_size,
        )
        for listener in self._listeners:
            self._machine.subscribe(listener)

    async def disconnect(self) -> None:
        await self._connections.disconnect()
        self._machine = None
        self._cache = None

    def is_connected(self) -> bool:
        return self._connections.is_connected() and self._machine is not None

    @property
    def machine(self) -> OperationStateMachine:
        if self._machine is None:
            raise NetworkError("Client is not connected", endpoint=self._config.rpc_url)
        return self._machine

    @property
    def cache(self) -> ReadCache:
        if self._cache is None:
            raise NetworkError("Client is not connected", endpoint=self._config.rpc_url)
        return self._cache

    @property
    def address(self) -> str:
        return self.machine.account

    @property
    def registry(self) -> ContractRegistry:
        return self._connections.registry

    def subscribe(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)
        if self._machine is not None:
            self._machine.subscribe(listener)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------
    async def approve(
        self,
        amount: int = 0,
        *,
        token: str | None = None,
        spender: str | None = None,
        unlimited: bool = False,
        cancel_token: CancellationToken | None = None,
    ) -> Result:
        return await self._begin(
            OperationKind.APPROVE,
            lambda: ApproveParams(
                token=token or self.registry.address("stake_token"),
                spender=spender or self.registry.address("staking"),
                value=amount,
                unlimited=unlimited,
            ),
            cancel_token,
        )

    async def stake(
        self,
        amount: int,
        *,
        pool: str | None = None,
        token: str | None = None,
        pool_id: int | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Result:
        return await self._begin(
            OperationKind.STAKE,
            lambda: StakeParams(
                pool=pool or self._default_pool(pool_id),
                token=token or self.registry.address("stake_token"),
                value=amount,
                pool_id=pool_id,
            ),
            cancel_token,
        )

    async def unstake(
        self,
        amount: int,
        *,
        pool: str | None = None,
        pool_id: int | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Result:
        return await self._begin(
            OperationKind.UNSTAKE,
            lambda: UnstakeParams(
                pool=pool or self._default_pool(pool_id), value=amount, pool_id=pool_id
            ),
            cancel_token,
        )

    async def harvest(
        self,
        *,
        pool: str | None = None,
        pool_id: int | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Result:
        return await self._begin(
            OperationKind.HARVEST,
            lambda: HarvestParams(pool=pool or self._default_pool(pool_id), pool_id=pool_id),
            cancel_token,
        )

    async def compound(
        self, *, pool: str | None = None, cancel_token: CancellationToken | None = None
    ) -> Result:
        return await self._begin(
            OperationKind.COMPOUND,
            lambda: CompoundParams(pool=pool or self.registry.address("staking")),
            cancel_token,
        )

    async def emergency_withdraw(
        self,
        *,
        pool: str | None = None,
        pool_id: int | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Result:
        """Withdraw the full current stake, forfeiting pending rewards."""

        kind = OperationKind.EMERGENCY_WITHDRAW
        try:
            target = pool or self._default_pool(pool_id)
            position = await self.cache.user_position(target, self.address)
        except (ValidationError, NetworkError) as exc:
            return _local_failure(kind, exc)
        if position.staked_amount <= 0:
            return _local_failure(
                kind, ValidationError("Nothing is staked in this pool", field="amount", value=0)
            )

        return await self._begin(
            kind,
            lambda: EmergencyWithdrawParams(
                pool=target, value=position.staked_amount, pool_id=pool_id
            ),
            cancel_token,
        )

    async def add_liquidity(
        self,
        token_a: str,
        token_b: str,
        amount_a: int,
        amount_b: int,
        *,
        slippage_percent: int = 10,
        recipient: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Result:
        return await self._begin(
            OperationKind.ADD_LIQUIDITY,
            lambda: AddLiquidityParams(
                router=self.registry.address("router"),
                token_a=token_a,
                token_b=token_b,
                amount_a=amount_a,
                amount_b=amount_b,
                recipient=recipient,
                wrapped_native=self._wrapped_native(),
                slippage_percent=slippage_percent,
            ),
            cancel_token,
        )

    async def remove_liquidity(
        self,
        token_a: str,
        token_b: str,
        lp_token: str,
        lp_amount: int,
        *,
        min_a: int = 0,
        min_b: int = 0,
        slippage_percent: int = 10,
        recipient: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Result:
        return await self._begin(
            OperationKind.REMOVE_LIQUIDITY,
            lambda: RemoveLiquidityParams(
                router=self.registry.address("router"),
                token_a=token_a,
                token_b=token_b,
                lp_token=lp_token,
                lp_amount=lp_amount,
                min_a=min_a,
                min_b=min_b,
                recipient=recipient,
                wrapped_native=self._wrapped_native(),
                slippage_percent=slippage_percent,
            ),
            cancel_token,
        )

    async def contribute(
        self,
        sale_id: int,
        amount: int,
        *,
        sale: str | None = None,
        native: bool = True,
        payment_token: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Result:
        return await self._begin(
            OperationKind.CONTRIBUTE,
            lambda: ContributeParams(
                sale=sale or self.registry.address("launchpad"),
                sale_id=sale_id,
                value=amount,
                native=native,
                payment_token=payment_token,
            ),
            cancel_token,
        )

    # ------------------------------------------------------------------
    # Reads and calculator helpers
    # ------------------------------------------------------------------
    async def needs_approval(
        self, amount: int, *, token: str | None = None, spender: str | None = None
    ) -> bool:
        allowance = await self.cache.allowance(
            token or self.registry.address("stake_token"),
            self.address,
            spender or self.registry.address("staking"),
        )
        return allowance < amount

    async def calculator(self, *, pool: str | None = None) -> CalculatorState:
        """Calculator state seeded with the current pool, position and token price."""

        target = pool or self.registry.address("staking")
        state = CalculatorState()
        state.set_pool_parameters(await self.cache.pool_parameters(target))
        state.set_user_position(await self.cache.user_position(target, self.address))
        try:
            # requests blocks, so the lookup runs off the event loop
            price = await asyncio.to_thread(
                self._price_feed.token_price_usd, self.registry.address("stake_token")
            )
            state.set_token_price(price)
        except NetworkError as exc:
            logger.warning("Token price unavailable: %s", exc)
        return state

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _begin(
        self,
        kind: OperationKind,
        build_params: Callable[[], OperationParams],
        cancel_token: CancellationToken | None,
    ) -> Result:
        try:
            machine = self.machine
            params = build_params()
        except (ValidationError, NetworkError) as exc:
            return _local_failure(kind, exc)

        return await machine.begin(kind, params, cancel_token=cancel_token)

    def _default_pool(self, pool_id: int | None) -> str:
        name = "staking" if pool_id is None else "masterchef"
        return self.registry.address(name)

    def _wrapped_native(self) -> str | None:
        if "wrapped_native" not in self.registry.names():
            return None
        return self.registry.address("wrapped_native")


def _local_failure(kind: OperationKind, exc: ValidationError | NetworkError) -> Result:
    error = classify_local_failure(exc)
    return Result(False, kind, OperationState.FAILED, error.message, error=error)
