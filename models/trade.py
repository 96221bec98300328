"""
Persisted record of one buy-then-sell cycle.

Created ``pending`` when the buy is confirmed and updated once, at
liquidation, to ``completed`` with the market cap that triggered the sale.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from enums.session_state import TradeStatus


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TradeRecord(BaseModel):
    user_id: str
    token_address: str
    token_symbol: Optional[str] = None
    buy_amount: float = Field(gt=0)
    target_market_cap: float = Field(gt=0)
    buy_tx: str
    token_amount: Optional[float] = None
    status: TradeStatus = TradeStatus.PENDING
    final_market_cap: Optional[float] = None
    timestamp: str = Field(default_factory=utc_now_iso)

    @property
    def created_at(self) -> datetime:
        return datetime.fromisoformat(self.timestamp)
