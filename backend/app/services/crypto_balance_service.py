"""Read-only on-chain balance queries for crypto wallets.

Ethereum balances come from JSON-RPC ``eth_getBalance`` (several public
endpoints tried in order), Bitcoin balances from a mempool.space-compatible
block explorer. Base units are converted with integer arithmetic only.
"""

import logging
import re
from decimal import Decimal

import httpx

from app.config import settings
from app.constants import CRYPTO_DECIMALS, Currency, CryptoNetwork
from app.services.shared.http_client import HTTPClient, HTTPClientError

logger = logging.getLogger(__name__)

ETHEREUM_ADDRESS = re.compile(r"^0x[a-fA-F0-9]{40}$")
BITCOIN_LEGACY_ADDRESS = re.compile(r"^[13][a-km-zA-HJ-NP-Z1-9]{25,34}$")
BITCOIN_SEGWIT_ADDRESS = re.compile(r"^bc1[a-zA-HJ-NP-Z0-9]{39,59}$")

WEI_PER_ETH = 10 ** CRYPTO_DECIMALS[Currency.ETH]


class CryptoBalanceError(HTTPClientError):
    """Balance could not be read from any data source."""

    def __init__(self, message: str, network: str, address: str, status_code: int | None = None):
        super().__init__(f"[{network}] {address[:10]}: {message}", status_code=status_code)
        self.network = network
        self.address_hint = address[:10]


def wei_to_eth(wei: int) -> str:
    """Wei to ETH with full precision and no trailing zeros (1.5e18 wei is ``"1.5"``)."""
    whole, fraction = divmod(wei, WEI_PER_ETH)
    if fraction == 0:
        return str(whole)
    digits = str(fraction).zfill(CRYPTO_DECIMALS[Currency.ETH]).rstrip("0")
    return f"{whole}.{digits}"


def satoshis_to_btc(satoshis: int) -> str:
    """Satoshis to BTC at fixed 8 decimals, trailing zeros and point removed."""
    decimals = CRYPTO_DECIMALS[Currency.BTC]
    btc = Decimal(satoshis).scaleb(-decimals)
    return f"{btc:.{decimals}f}".rstrip("0").rstrip(".")


def validate_address(network: str, address: str) -> bool:
    """Regex format check, no network call. Never raises."""
    if network == CryptoNetwork.ETHEREUM:
        return bool(ETHEREUM_ADDRESS.match(address))
    if network == CryptoNetwork.BITCOIN:
        return bool(BITCOIN_LEGACY_ADDRESS.match(address) or BITCOIN_SEGWIT_ADDRESS.match(address))
    return False


class CryptoBalanceService(HTTPClient):
    """Network-agnostic wallet balance reader.

    Usage:
        service = CryptoBalanceService()
        balance = await service.get_balance("ethereum", "0x...")  # "1.5"
    """

    def __init__(
        self,
        ethereum_rpc_urls: list[str] | None = None,
        bitcoin_api_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(headers={"Content-Type": "application/json"}, transport=transport)
        self.ethereum_rpc_urls = list(ethereum_rpc_urls or settings.ethereum_rpc_urls)
        self.bitcoin_api_url = (bitcoin_api_url or settings.bitcoin_api_url).rstrip("/")

    validate_address = staticmethod(validate_address)

    async def get_balance(self, network: str, address: str) -> str:
        """Balance in display units (ETH, BTC) as a decimal string.

        Raises:
            CryptoBalanceError: no data source returned a balance
            ValueError: unsupported network
        """
        if network == CryptoNetwork.ETHEREUM:
            return await self._get_ethereum_balance(address)
        if network == CryptoNetwork.BITCOIN:
            return await self._get_bitcoin_balance(address)
        raise ValueError(f"Unsupported network: {network}")

    async def _get_ethereum_balance(self, address: str) -> str:
        payload = {
            "jsonrpc": "2.0",
            "method": "eth_getBalance",
            "params": [address, "latest"],
            "id": 1,
        }
        last_error: Exception | None = None

        for url in self.ethereum_rpc_urls:
            try:
                data = await self.post_json(url, json=payload)
                if data.get("error"):
                    raise CryptoBalanceError(
                        f"RPC error: {data['error'].get('message')}",
                        CryptoNetwork.ETHEREUM,
                        address,
                    )
                return wei_to_eth(int(data.get("result") or "0x0", 16))
            except (HTTPClientError, ValueError, TypeError, AttributeError) as e:
                last_error = e
                logger.warning(
                    f"Ethereum RPC request to {url} failed for {address[:10]}, trying next: {e}"
                )

        logger.error(f"All Ethereum RPC URLs failed for {address[:10]}")
        raise CryptoBalanceError(
            f"All Ethereum RPC URLs failed, last error: {last_error}",
            CryptoNetwork.ETHEREUM,
            address,
        ) from last_error

    async def _get_bitcoin_balance(self, address: str) -> str:
        url = f"{self.bitcoin_api_url}/address/{address}"
        try:
            data = await self.get_json(url)
            chain = data["chain_stats"]
            mempool = data["mempool_stats"]
            satoshis = (chain["funded_txo_sum"] - chain["spent_txo_sum"]) + (
                mempool["funded_txo_sum"] - mempool["spent_txo_sum"]
            )
        except HTTPClientError as e:
            logger.error(f"Bitcoin API request failed for {address[:10]}: {e}")
            raise CryptoBalanceError(
                str(e), CryptoNetwork.BITCOIN, address, status_code=e.status_code
            ) from e
        except (KeyError, TypeError) as e:
            logger.error(f"Malformed Bitcoin API response for {address[:10]}")
            raise CryptoBalanceError(
                f"malformed response: {e}", CryptoNetwork.BITCOIN, address
            ) from e
        return satoshis_to_btc(satoshis)
