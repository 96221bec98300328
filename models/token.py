"""
Domain model for the market snapshot of a token.

Built from a DexScreener pair. The market cap is the pair's fully diluted
valuation; pairs without ``fdv`` fall back to ``marketCap`` and finally to a
rough ``liquidity.usd * 10`` estimate.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


def _as_float(value) -> Optional[float]:
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if out == out else None


class TokenInfo(BaseModel):

    address: str
    symbol: str = ""
    price_usd: float
    market_cap: float

    @classmethod
    def from_dexscreener(cls, raw: dict) -> "TokenInfo":
        base = raw.get("baseToken") or {}
        price = _as_float(raw.get("priceUsd"))
        if price is None:
            raise ValueError("pair sin priceUsd")

        market_cap = _as_float(raw.get("fdv")) or _as_float(raw.get("marketCap"))
        if not market_cap:
            liquidity_usd = _as_float((raw.get("liquidity") or {}).get("usd"))
            if liquidity_usd is None:
                raise ValueError("pair sin fdv, marketCap ni liquidity.usd")
            market_cap = liquidity_usd * 10

        return cls(
            address=base.get("address", ""),
            symbol=base.get("symbol") or "",
            price_usd=price,
            market_cap=market_cap,
        )
