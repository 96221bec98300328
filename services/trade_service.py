# services/trade_service.py
from __future__ import annotations
from typing import Optional

import requests

from schemas.trade_schema import TradeResult
from utils.logger import logger_manager, log_function, mask_secrets

logger = logger_manager.setup_logger(__name__)


class TradeService:
    """
    Órdenes de mercado contra la Trading API de PumpPortal.
    POST {base}/trade?api-key=... con:
      action, mint, amount, denominatedInSol ("true"/"false"),
      slippage, priorityFee, pool.
    La API devuelve {"signature": ...} o {"errors": [...]} / {"error": ...}.
    """
    BASE = "https://pumpportal.fun/api"

    def __init__(
        self,
        base_url: Optional[str] = None,
        slippage: float = 10,
        priority_fee: float = 0.00005,
        pool: str = "auto",
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or self.BASE).rstrip("/")
        self.slippage = slippage
        self.priority_fee = priority_fee
        self.pool = pool
        self.timeout = timeout
        self.http = http or requests.Session()

    def _payload(self, action: str, mint: str, amount, denominated_in_sol: bool) -> dict:
        return {
            "action": action,
            "mint": mint,
            "amount": amount,
            "denominatedInSol": "true" if denominated_in_sol else "false",
            "slippage": self.slippage,
            "priorityFee": self.priority_fee,
            "pool": self.pool,
        }

    def _submit(self, api_key: str, payload: dict) -> TradeResult:
        url = f"{self.base_url}/trade"
        try:
            r = self.http.post(url, params={"api-key": api_key}, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            return TradeResult.failure(mask_secrets(f"Trading API no disponible: {e}"))

        try:
            data = r.json()
        except ValueError:
            data = None

        if not isinstance(data, dict):
            return TradeResult.failure(f"Respuesta inesperada de la Trading API (HTTP {r.status_code})")

        errors = data.get("errors") or data.get("error")
        if errors:
            if isinstance(errors, (list, tuple)):
                errors = "; ".join(str(e) for e in errors)
            return TradeResult.failure(str(errors))

        signature = data.get("signature")
        if r.status_code >= 400 or not signature:
            return TradeResult.failure(f"Trading API sin firma (HTTP {r.status_code})")
        return TradeResult.success(str(signature))

    @log_function
    def buy(self, api_key: str, token_address: str, amount_sol: float) -> TradeResult:
        """Compra ``amount_sol`` SOL del token."""
        result = self._submit(api_key, self._payload("buy", token_address, amount_sol, denominated_in_sol=True))
        if result.ok:
            logger.info(f"🟢 Compra enviada {token_address} ({amount_sol} SOL): {result.signature}")
        else:
            logger.warning(f"Compra rechazada {token_address}: {result.error}")
        return result

    @log_function
    def sell(self, api_key: str, token_address: str, amount="100%", denominated_in_sol: bool = False) -> TradeResult:
        """Vende la posición (por defecto el 100%)."""
        result = self._submit(api_key, self._payload("sell", token_address, amount, denominated_in_sol))
        if result.ok:
            logger.info(f"🔴 Venta enviada {token_address} ({amount}): {result.signature}")
        else:
            logger.warning(f"Venta rechazada {token_address}: {result.error}")
        return result
