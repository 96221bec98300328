# services/market_service.py
from __future__ import annotations
import time
from typing import Optional

import requests

from models.token import TokenInfo
from utils.errors import GatewayError, MalformedResponseError, NotFoundError
from utils.logger import logger_manager, log_function

logger = logger_manager.setup_logger(__name__)

_NO_CACHE = {"Cache-Control": "no-cache"}


class MarketService:
    """
    Precio y market cap de un token (Dexscreener) y precio SOL/USD (CoinGecko).
    Config por Settings / .env:
      - DEXSCREENER_BASE_URL (default: https://api.dexscreener.com/latest/dex)
      - COINGECKO_URL (default: https://api.coingecko.com/api/v3/simple/price)
      - HTTP_TIMEOUT_SECS
    """
    BASE = "https://api.dexscreener.com/latest/dex"
    COINGECKO = "https://api.coingecko.com/api/v3/simple/price"

    def __init__(
        self,
        base_url: Optional[str] = None,
        rate_url: Optional[str] = None,
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or self.BASE).rstrip("/")
        self.rate_url = rate_url or self.COINGECKO
        self.timeout = timeout
        self.http = http or requests.Session()

    def _get_json(self, url: str, params: dict) -> dict:
        try:
            r = self.http.get(url, params=params, headers=_NO_CACHE, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise GatewayError(f"GET {url} falló: {e}") from e
        try:
            data = r.json()
        except ValueError as e:
            raise MalformedResponseError(f"Respuesta no JSON de {url}") from e
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Respuesta inesperada de {url}: {type(data).__name__}")
        return data

    @log_function
    def get_token_info(self, token_address: str) -> TokenInfo:
        """Devuelve símbolo, precio USD y market cap del primer par de Solana."""
        # timestamp en la query para saltarse cachés intermedias
        data = self._get_json(f"{self.base_url}/tokens/{token_address}", {"t": int(time.time() * 1000)})
        pairs = data.get("pairs") or []
        if not isinstance(pairs, list) or not pairs:
            raise NotFoundError(f"Token {token_address} no encontrado en Dexscreener")

        solana_pairs = [p for p in pairs if isinstance(p, dict) and p.get("chainId") == "solana"]
        pair = (solana_pairs or pairs)[0]
        try:
            info = TokenInfo.from_dexscreener(pair)
        except (AttributeError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"Par de Dexscreener inválido para {token_address}: {e}") from e
        if not info.address:
            info.address = token_address
        logger.debug(f"[market] {info.symbol or token_address}: price={info.price_usd} mcap={info.market_cap}")
        return info

    @log_function
    def get_reference_rate(self) -> float:
        """Precio de 1 SOL en USD."""
        data = self._get_json(self.rate_url, {"ids": "solana", "vs_currencies": "usd"})
        try:
            rate = float(data["solana"]["usd"])
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"Respuesta de CoinGecko sin solana.usd: {data}") from e
        if rate <= 0:
            raise MalformedResponseError(f"Precio SOL inválido: {rate}")
        return rate
