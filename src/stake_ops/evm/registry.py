"""Contract address and ABI lookup."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from web3 import Web3
from web3.types import ChecksumAddress

from ..exceptions import ValidationError
from ..operations import AbiRole
from .abi import ERC20_abi, Launchpad_abi, MasterChef_abi, Router_abi, Staking_abi

DEFAULT_ABIS: dict[str, list[dict[str, Any]]] = {
    AbiRole.ERC20: ERC20_abi,
    AbiRole.STAKING: Staking_abi,
    AbiRole.MASTERCHEF: MasterChef_abi,
    AbiRole.ROUTER: Router_abi,
    AbiRole.LAUNCHPAD: Launchpad_abi,
}


class ContractRegistry:
    """Named contract addresses per network plus the ABI for each call family."""

    def __init__(
        self,
        addresses: Mapping[str, str] | None = None,
        abis: Mapping[str, list[dict[str, Any]]] | None = None,
    ) -> None:
        self._addresses: dict[str, ChecksumAddress] = {}
        for name, address in (addresses or {}).items():
            self.register(name, address)
        self._abis = dict(DEFAULT_ABIS)
        if abis:
            self._abis.update(abis)

    def register(self, name: str, address: str) -> None:
        try:
            self._addresses[name] = Web3.to_checksum_address(address)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid address for contract '{name}'",
                field=name,
                value=address,
                details={"error": str(exc)},
            ) from exc

    def address(self, name: str) -> ChecksumAddress:
        try:
            return self._addresses[name]
        except KeyError:
            raise ValidationError(
                f"No address registered for contract '{name}'", field="contract", value=name
            ) from None

    def abi(self, role: str) -> list[dict[str, Any]]:
        try:
            return self._abis[role]
        except KeyError:
            raise ValidationError(
                f"No ABI registered for role '{role}'", field="abi_role", value=role
            ) from None

    def names(self) -> list[str]:
        return sorted(self._addresses)
