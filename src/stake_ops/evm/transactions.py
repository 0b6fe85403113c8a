"""Transaction submission for the staking EVM client."""

from __future__ import annotations

import logging
from typing import Any

from web3.types import TxParams

from ..classifier import classify_error
from ..exceptions import SubmissionError, UserRejectedError
from ..types import ErrorKind, Operation
from ..utils import normalise_tx_hash
from .connections import Web3Connections
from .signer import Signer

logger = logging.getLogger(__name__)


class TransactionSubmitter:
    """Build a write call with explicit gas, price and nonce and hand it to the signer."""

    def __init__(self, connections: Web3Connections, signer: Signer) -> None:
        self._connections = connections
        self._signer = signer

    @property
    def account(self) -> str:
        return self._signer.address

    async def submit(
        self,
        operation: Operation,
        nonce: int,
        gas_price: int,
        gas_limit: int,
    ) -> str:
        target = operation.target
        action = operation.kind.value

        transaction = await self._build_transaction(operation, nonce, gas_price, gas_limit)
        logger.info("Dispatching %s via %s (nonce=%s)", action, target.function_name, nonce)

        try:
            tx_hash = await self._signer.sign_and_send(self._connections.web3, transaction)
        except UserRejectedError:
            raise
        except Exception as exc:
            classified = classify_error(exc)
            details: dict[str, Any] = {
                "args": list(target.args),
                "error": str(exc),
                "classified": classified,
            }
            if classified.kind is ErrorKind.USER_REJECTED:
                raise UserRejectedError(
                    classified.message, function_name=target.function_name, details=details
                ) from exc
            raise SubmissionError(
                f"Failed to submit transaction for {action}: {classified.message}",
                function_name=target.function_name,
                details=details,
            ) from exc

        tx_hex = normalise_tx_hash(tx_hash)
        logger.info("Transaction sent for action=%s hash=%s", action, tx_hex)
        return tx_hex

    async def _build_transaction(
        self,
        operation: Operation,
        nonce: int,
        gas_price: int,
        gas_limit: int,
    ) -> TxParams:
        target = operation.target
        contract = self._connections.contract(target.address, target.abi_role or "")
        base: TxParams = {
            "from": self._signer.address,
            "nonce": nonce,
            "gas": gas_limit,
            "gasPrice": gas_price,
            "value": target.value,
            "chainId": self._connections.chain_id,
        }

        try:
            contract_function = getattr(contract.functions, target.function_name)(*target.args)
            return await contract_function.build_transaction(base)
        except Exception as exc:
            raise SubmissionError(
                f"Failed to build transaction for {operation.kind.value}",
                function_name=target.function_name,
                details={
                    "args": list(target.args),
                    "error": str(exc),
                    "classified": classify_error(exc),
                },
            ) from exc
