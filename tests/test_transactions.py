"""Tests for transaction building, signing and submission."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, cast

import pytest
from eth_account import Account
from hexbytes import HexBytes

from stake_ops.evm.connections import Web3Connections
from stake_ops.evm.signer import ConfirmingSigner, LocalAccountSigner
from stake_ops.evm.transactions import TransactionSubmitter
from stake_ops.exceptions import SubmissionError, UserRejectedError
from stake_ops.types import CallTarget, ErrorKind, Operation, OperationKind

SENDER = "0x00000000000000000000000000000000000000Aa"
POOL = "0x0000000000000000000000000000000000000001"


class DummyFunction:
    def __init__(self, name: str, args: tuple[Any, ...], error: Exception | None) -> None:
        self.name = name
        self.args = args
        self.error = error

    async def build_transaction(self, base: dict[str, Any]) -> dict[str, Any]:
        if self.error is not None:
            raise self.error
        return {**base, "to": POOL, "data": f"{self.name}{self.args}"}


class DummyFunctions:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    def __getattr__(self, name: str) -> Any:
        return lambda *args: DummyFunction(name, args, self.error)


class DummyConnections:
    def __init__(self, build_error: Exception | None = None) -> None:
        self.web3 = SimpleNamespace(eth=SimpleNamespace())
        self.chain_id = 10143
        self.rpc_url = "https://rpc"
        self.contracts: list[tuple[str, str]] = []
        self._functions = DummyFunctions(build_error)

    def contract(self, address: str, role: str) -> Any:
        self.contracts.append((address, role))
        return SimpleNamespace(functions=self._functions)


class DummySigner:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result if result is not None else HexBytes(b"\x11" * 32)
        self.error = error
        self.transactions: list[dict[str, Any]] = []

    @property
    def address(self) -> str:
        return SENDER

    async def sign_and_send(self, web3: Any, transaction: dict[str, Any]) -> Any:
        self.transactions.append(dict(transaction))
        if self.error is not None:
            raise self.error
        return self.result


def _operation(value: int = 0) -> Operation:
    target = CallTarget(POOL, "stake", (500,), value=value, abi_role="staking")
    return Operation(kind=OperationKind.STAKE, account=SENDER, target=target, amount=500)


def _submitter(
    signer: DummySigner | ConfirmingSigner, connections: DummyConnections | None = None
) -> tuple[TransactionSubmitter, DummyConnections]:
    connections = connections or DummyConnections()
    return TransactionSubmitter(cast(Web3Connections, connections), signer), connections


def test_submit_sets_explicit_gas_price_nonce_and_value() -> None:
    signer = DummySigner()
    submitter, connections = _submitter(signer)

    tx_hash = asyncio.run(submitter.submit(_operation(value=3), 9, 130, 300_000))

    assert tx_hash == "0x" + "11" * 32
    assert connections.contracts == [(POOL, "staking")]
    sent = signer.transactions[0]
    assert sent["from"] == SENDER
    assert sent["nonce"] == 9
    assert sent["gas"] == 300_000
    assert sent["gasPrice"] == 130
    assert sent["value"] == 3
    assert sent["chainId"] == 10143
    assert sent["data"] == "stake(500,)"


def test_string_hash_is_normalised() -> None:
    submitter, _ = _submitter(DummySigner(result="ab" * 32))

    assert asyncio.run(submitter.submit(_operation(), 1, 1, 1)) == "0x" + "ab" * 32


def test_build_failure_never_reaches_signer() -> None:
    signer = DummySigner()
    submitter, _ = _submitter(signer, DummyConnections(build_error=ValueError("bad args")))

    with pytest.raises(SubmissionError) as exc_info:
        asyncio.run(submitter.submit(_operation(), 1, 1, 1))

    assert exc_info.value.function_name == "stake"
    assert signer.transactions == []


def test_provider_rejection_code_becomes_user_rejected() -> None:
    error = ValueError({"code": 4001, "message": "User denied transaction signature"})
    submitter, _ = _submitter(DummySigner(error=error))

    with pytest.raises(UserRejectedError):
        asyncio.run(submitter.submit(_operation(), 1, 1, 1))


def test_provider_error_is_classified() -> None:
    error = ValueError({"code": -32000, "message": "insufficient funds for gas * price + value"})
    submitter, _ = _submitter(DummySigner(error=error))

    with pytest.raises(SubmissionError) as exc_info:
        asyncio.run(submitter.submit(_operation(), 1, 1, 1))

    classified = exc_info.value.details["classified"]
    assert classified.kind is ErrorKind.INSUFFICIENT_BALANCE
    assert not isinstance(exc_info.value, UserRejectedError)


def test_confirming_signer_decline_is_user_rejection() -> None:
    inner = DummySigner()
    signer = ConfirmingSigner(inner, lambda tx: False)
    submitter, _ = _submitter(signer)

    with pytest.raises(UserRejectedError):
        asyncio.run(submitter.submit(_operation(), 1, 1, 1))

    assert inner.transactions == []


def test_confirming_signer_accepts_async_callback() -> None:
    async def approve(tx: Any) -> bool:
        return tx["nonce"] == 4

    inner = DummySigner()
    submitter, _ = _submitter(ConfirmingSigner(inner, approve))

    asyncio.run(submitter.submit(_operation(), 4, 1, 1))

    assert len(inner.transactions) == 1


def test_local_signer_broadcasts_raw_transaction() -> None:
    account = Account.from_key("0x" + "22" * 32)
    sent: list[bytes] = []

    async def send_raw_transaction(raw: bytes) -> HexBytes:
        sent.append(raw)
        return HexBytes(b"\x33" * 32)

    web3 = SimpleNamespace(eth=SimpleNamespace(send_raw_transaction=send_raw_transaction))
    transaction = {
        "to": POOL,
        "value": 0,
        "gas": 100_000,
        "gasPrice": 1_000_000_000,
        "nonce": 0,
        "chainId": 10143,
        "data": "0x",
    }

    signer = LocalAccountSigner(account)
    tx_hash = asyncio.run(signer.sign_and_send(cast(Any, web3), cast(Any, transaction)))

    assert signer.address == account.address
    assert tx_hash == HexBytes(b"\x33" * 32)
    assert len(sent) == 1 and len(sent[0]) > 0
