"""
Data schema definitions at the gateway boundary.

Dataclasses returned by the trading API and the wallet provisioning
endpoint, so that controllers never inspect raw JSON.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class TradeResult:
    """Outcome of a market order: a signature or an error message."""

    ok: bool
    signature: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, signature: str) -> "TradeResult":
        return cls(ok=True, signature=signature)

    @classmethod
    def failure(cls, error: str) -> "TradeResult":
        return cls(ok=False, error=error)


@dataclass
class ProvisionedWallet:
    """Custodial wallet created for a new user."""

    address: str
    secret_key: str
    api_key: str
