"""
Ledger mode selection.

The mode is fixed when the process starts and injected into the components that
branch on it; nothing reads it from module state afterwards.
"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from vencura.errors import ConfigurationError

SIMULATED = "simulated"
SEPOLIA = "sepolia"

CHAIN_LABELS = {
    SIMULATED: "Simulated Ledger",
    SEPOLIA: "Ethereum Sepolia",
}


@dataclass(frozen=True)
class ChainConfig:
    mode: str = SIMULATED
    rpc_url: str = ""
    rpc_timeout: float = 15.0

    @classmethod
    def from_settings(cls, settings) -> "ChainConfig":
        return cls(
            mode=settings.CHAIN_MODE,
            rpc_url=settings.SEPOLIA_RPC_URL,
            rpc_timeout=settings.RPC_TIMEOUT_SECONDS,
        )


def detect_rpc_host(rpc_url: str) -> Optional[str]:
    try:
        return urlsplit(rpc_url).hostname or None
    except (ValueError, AttributeError):
        return None


class LedgerModeSelector:
    def __init__(self, config: ChainConfig):
        if config.mode not in CHAIN_LABELS:
            raise ConfigurationError(f"Unsupported CHAIN_MODE '{config.mode}'")
        if config.mode == SEPOLIA and not config.rpc_url:
            raise ConfigurationError("SEPOLIA_RPC_URL is required when CHAIN_MODE is 'sepolia'")
        self.config = config

    @property
    def mode(self) -> str:
        return self.config.mode

    def is_on_chain(self) -> bool:
        return self.config.mode == SEPOLIA

    def chain_info(self) -> dict:
        on_chain = self.is_on_chain()
        return {
            "mode": self.mode,
            "label": CHAIN_LABELS[self.mode],
            "depositEnabled": not on_chain,
            "rpcHost": detect_rpc_host(self.config.rpc_url) if on_chain else None,
        }
