"""EVM implementation of the staking client."""

from .client import StakingClient
from .config import ClientConfig, PollingConfig
from .registry import ContractRegistry
from .signer import ConfirmingSigner, LocalAccountSigner, Signer

__all__ = [
    "StakingClient",
    "ClientConfig",
    "PollingConfig",
    "ContractRegistry",
    "Signer",
    "LocalAccountSigner",
    "ConfirmingSigner",
]
