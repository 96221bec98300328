"""
User profile with the custodial wallet the bot trades from.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from models.trade import utc_now_iso


class UserProfile(BaseModel):
    user_id: str
    wallet_address: str
    wallet_secret: str = Field(repr=False)
    api_key: str = Field(repr=False)
    username: str = ""
    last_active: str = Field(default_factory=utc_now_iso)

    @property
    def is_provisioned(self) -> bool:
        return bool(self.wallet_address and self.wallet_secret and self.api_key)
