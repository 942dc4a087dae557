"""
Thin JSON-RPC adapter for the configured Ethereum node.

Balances and values cross this boundary in wei; conversion to decimal ether is
done by vencura.services.units. Failures are raised as ProviderError and never
retried, since resubmitting a value transfer risks a duplicate spend.
"""
import logging
from typing import Any, Optional

import httpx
from eth_account import Account
from eth_utils import to_checksum_address

from vencura.errors import ProviderError
from vencura.services.chain_mode import SEPOLIA, ChainConfig

logger = logging.getLogger(__name__)

TRANSFER_GAS = 21000


def _quantity(value, method: str) -> int:
    try:
        return int(value, 16)
    except (TypeError, ValueError):
        raise ProviderError(f"RPC error: unexpected {method} result {value!r}")


class ChainProvider:
    def __init__(self, config: ChainConfig):
        if config.mode != SEPOLIA:
            raise RuntimeError("Chain provider requested in simulated mode")
        self.rpc_url = config.rpc_url
        self.timeout = config.rpc_timeout
        self._client: Optional[httpx.AsyncClient] = None
        self._chain_id: Optional[int] = None
        self._request_id = 0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _call(self, method: str, params: list) -> Any:
        self._request_id += 1
        try:
            resp = await self._get_client().post(self.rpc_url, json={
                "jsonrpc": "2.0", "method": method,
                "params": params, "id": self._request_id,
            })
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("[RPC] %s failed: %s", method, e)
            raise ProviderError(f"RPC error: {e}") from e
        if "error" in data:
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            logger.warning("[RPC] %s returned error: %s", method, message)
            raise ProviderError(f"RPC error: {message}")
        return data.get("result")

    async def get_balance(self, address: str) -> int:
        """Balance of `address` in wei at the latest block."""
        result = await self._call("eth_getBalance", [address, "latest"])
        return _quantity(result, "eth_getBalance")

    async def get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = _quantity(await self._call("eth_chainId", []), "eth_chainId")
        return self._chain_id

    async def send_value(self, private_key: str, destination: str, value: int) -> dict:
        """
        Sign and broadcast a plain value transfer from the key's account.
        Returns: {"hash": "0x..."} as assigned by the node.
        """
        signer = Account.from_key(private_key)
        nonce = _quantity(
            await self._call("eth_getTransactionCount", [signer.address, "pending"]),
            "eth_getTransactionCount",
        )
        gas_price = _quantity(await self._call("eth_gasPrice", []), "eth_gasPrice")
        tx = {
            "to": to_checksum_address(destination),
            "value": value,
            "gas": TRANSFER_GAS,
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": await self.get_chain_id(),
        }
        signed = signer.sign_transaction(tx)
        raw = "0x" + bytes(signed.raw_transaction).hex()
        tx_hash = await self._call("eth_sendRawTransaction", [raw])
        logger.info("[RPC] submitted transfer %s from %s", tx_hash, signer.address)
        return {"hash": tx_hash}
