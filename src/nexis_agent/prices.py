"""CoinGecko price lookups."""

from __future__ import annotations

import logging

import httpx

from nexis_agent.config import PricesConfig
from nexis_agent.errors import UpstreamTransportError

logger = logging.getLogger("nexis_agent.prices")

# Ticker or informal name -> CoinGecko coin id.
TOKEN_SYNONYMS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "ETHER": "ethereum",
    "SOL": "solana",
    "BNB": "binancecoin",
    "MATIC": "matic-network",
    "POL": "polygon-ecosystem-token",
    "POLYGON": "matic-network",
    "ARB": "arbitrum",
    "MON": "monad",
    "MONAD": "monad",
    "USDC": "usd-coin",
    "USDT": "tether",
    "DAI": "dai",
}


def resolve_coin_id(token: str) -> str:
    """Map a user-supplied identifier to a CoinGecko id (lowercased fallback)."""
    cleaned = token.strip()
    return TOKEN_SYNONYMS.get(cleaned.upper(), cleaned.lower())


class CoinGeckoClient:
    """Thin async client for ``/simple/price``.

    *transport* is forwarded to :class:`httpx.AsyncClient`, which lets tests
    plug in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        config: PricesConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or PricesConfig()
        self._transport = transport

    def _build_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["x-cg-demo-api-key"] = self.config.api_key
        return headers

    async def get_usd_prices(self, coin_ids: list[str]) -> dict[str, float]:
        """Fetch USD prices for *coin_ids* in one request.

        Ids CoinGecko does not know are simply absent from the result.
        Raises :class:`UpstreamTransportError` on timeouts, connection errors
        and non-2xx responses.
        """
        unique_ids = list(dict.fromkeys(i for i in coin_ids if i))
        if not unique_ids:
            return {}

        params = {"ids": ",".join(unique_ids), "vs_currencies": "usd"}
        try:
            async with httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    "/simple/price", params=params, headers=self._build_headers()
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamTransportError(
                "CoinGecko", f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamTransportError("CoinGecko", type(exc).__name__) from exc

        prices: dict[str, float] = {}
        for coin_id, quote in data.items():
            if isinstance(quote, dict) and quote.get("usd") is not None:
                prices[coin_id] = quote["usd"]
        logger.debug(f"Fetched {len(prices)}/{len(unique_ids)} prices")
        return prices
