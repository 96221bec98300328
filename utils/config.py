"""
Configuration loading for the market-cap trader.

Values come from three layers, later ones winning:

1. defaults declared on :class:`Settings`;
2. an optional ``config.yaml`` next to ``main.py`` (or ``CONFIG_PATH``);
3. environment variables (a ``.env`` file is loaded with python-dotenv).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml  # type: ignore
from dotenv import load_dotenv
from pydantic import BaseModel, Field

PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Dirección del operador que cobra la comisión (y recibe propinas)
DEFAULT_FEE_ADDRESS = "52rG3pPMbZETgbdfvdF69BoYLQF1zeFKrfkUdJvG5iV4"

# campo de Settings -> variable de entorno
_ENV_MAP = {
    "telegram_token": "TELEGRAM_TOKEN",
    "db_path": "DB_PATH",
    "solana_rpc_url": "SOLANA_RPC_URL",
    "pumpportal_base_url": "PUMPPORTAL_BASE_URL",
    "dexscreener_base_url": "DEXSCREENER_BASE_URL",
    "coingecko_url": "COINGECKO_URL",
    "trade_fee_percent": "TRADE_FEE_PERCENT",
    "fee_address": "FEE_ADDRESS",
    "slippage": "TRADE_SLIPPAGE",
    "priority_fee": "TRADE_PRIORITY_FEE",
    "pool": "TRADE_POOL",
    "near_interval": "MONITOR_NEAR_INTERVAL",
    "far_interval": "MONITOR_FAR_INTERVAL",
    "near_band": "MONITOR_NEAR_BAND",
    "http_timeout": "HTTP_TIMEOUT_SECS",
    "history_limit": "HISTORY_LIMIT",
    "enable_dashboard": "ENABLE_DASHBOARD",
    "streamlit_port": "STREAMLIT_PORT",
}


class Settings(BaseModel):
    telegram_token: Optional[str] = None
    db_path: str = str(PROJECT_ROOT / "db.json")
    solana_rpc_url: str = "https://api.mainnet-beta.solana.com"

    pumpportal_base_url: str = "https://pumpportal.fun/api"
    dexscreener_base_url: str = "https://api.dexscreener.com/latest/dex"
    coingecko_url: str = "https://api.coingecko.com/api/v3/simple/price"

    # Comisión en % sobre el valor estimado de la venta
    trade_fee_percent: float = Field(default=0.25, ge=0)
    fee_address: str = DEFAULT_FEE_ADDRESS

    slippage: float = 10
    priority_fee: float = 0.00005
    pool: str = "auto"

    # Cadencia adaptativa del monitor (segundos)
    near_interval: float = Field(default=2.0, gt=0)
    far_interval: float = Field(default=5.0, gt=0)
    near_band: float = Field(default=0.1, ge=0)

    http_timeout: float = 10.0
    history_limit: int = Field(default=10, gt=0)

    enable_dashboard: bool = False
    streamlit_port: int = 8501


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load application configuration from ``config.yaml``.

    :returns: A dictionary representing the configuration. Missing files
        quietly yield an empty dictionary.
    """
    config_path = Path(path or os.getenv("CONFIG_PATH") or PROJECT_ROOT / "config.yaml")
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    return {}


def get_settings(config_path: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> Settings:
    """Combina defaults, ``config.yaml`` y entorno en un :class:`Settings`."""
    if env is None:
        load_dotenv()
        env = dict(os.environ)

    values: Dict[str, Any] = {k: v for k, v in load_config(config_path).items() if k in Settings.model_fields}
    for field, var in _ENV_MAP.items():
        raw = env.get(var)
        if raw is not None and raw != "":
            values[field] = raw
    return Settings(**values)
