# services/wallet_service.py
from __future__ import annotations
from typing import Optional

import requests

from schemas.trade_schema import ProvisionedWallet
from utils.errors import GatewayError, MalformedResponseError
from utils.logger import logger_manager, log_function

logger = logger_manager.setup_logger(__name__)


class WalletService:
    """
    Alta de wallets custodiales vía PumpPortal (GET {base}/create-wallet).
    Devuelve dirección pública, clave privada y api-key de trading.
    Se llama una sola vez por usuario, en /start.
    """
    BASE = "https://pumpportal.fun/api"

    def __init__(self, base_url: Optional[str] = None, timeout: float = 30.0,
                 http: Optional[requests.Session] = None) -> None:
        self.base_url = (base_url or self.BASE).rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    @log_function
    def provision_wallet(self) -> ProvisionedWallet:
        url = f"{self.base_url}/create-wallet"
        try:
            r = self.http.get(url, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as e:
            raise GatewayError(f"No se pudo crear el wallet: {e}") from e
        except ValueError as e:
            raise MalformedResponseError("create-wallet no devolvió JSON") from e

        if not isinstance(data, dict):
            raise MalformedResponseError("create-wallet devolvió un formato inesperado")
        address = data.get("walletPublicKey")
        secret = data.get("privateKey")
        api_key = data.get("apiKey")
        if not (address and secret and api_key):
            raise MalformedResponseError(f"create-wallet incompleto (claves: {sorted(data)})")

        logger.info(f"Wallet creado: {address}")
        return ProvisionedWallet(address=address, secret_key=secret, api_key=api_key)
