"""Signers that turn built transactions into broadcast hashes."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import AsyncWeb3
from web3.types import ChecksumAddress, TxParams

from ..exceptions import UserRejectedError

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[TxParams], bool | Awaitable[bool]]


class Signer(Protocol):
    """Wallet boundary: signs and broadcasts, or declines."""

    @property
    def address(self) -> ChecksumAddress: ...

    async def sign_and_send(self, web3: AsyncWeb3, transaction: TxParams) -> Any: ...


class LocalAccountSigner:
    """Sign with a local private key and broadcast the raw transaction."""

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @property
    def address(self) -> ChecksumAddress:
        return self._account.address

    async def sign_and_send(self, web3: AsyncWeb3, transaction: TxParams) -> HexBytes:
        signed = self._account.sign_transaction(dict(transaction))  # type: ignore[arg-type]
        return await web3.eth.send_raw_transaction(signed.raw_transaction)


class ConfirmingSigner:
    """Ask ``confirm`` before delegating; a falsy answer is an explicit user decline."""

    def __init__(self, inner: Signer, confirm: ConfirmCallback) -> None:
        self._inner = inner
        self._confirm = confirm

    @property
    def address(self) -> ChecksumAddress:
        return self._inner.address

    async def sign_and_send(self, web3: AsyncWeb3, transaction: TxParams) -> Any:
        answer = self._confirm(transaction)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            logger.info("Signer declined transaction nonce=%s", transaction.get("nonce"))
            raise UserRejectedError(
                "User rejected the request",
                function_name=None,
                details={"nonce": transaction.get("nonce")},
            )
        return await self._inner.sign_and_send(web3, transaction)
