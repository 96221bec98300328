"""
Represents the in-memory trade session of a single user.

The session carries the intake fields (token, amount, target) and, once the
buy is confirmed, the monitoring data (buy signature, estimated token
quantity, monitoring run id). It is never persisted.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from enums.session_state import SessionState

_INTAKE_FIELDS = (
    "token_address", "token_symbol", "buy_amount", "target_market_cap",
    "buy_tx", "token_amount", "monitor_id",
)


class TradeSession(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    user_id: str
    state: SessionState = SessionState.IDLE
    token_address: Optional[str] = None
    token_symbol: Optional[str] = None
    buy_amount: Optional[float] = Field(default=None, gt=0)
    target_market_cap: Optional[float] = Field(default=None, gt=0)
    buy_tx: Optional[str] = None
    token_amount: Optional[float] = None
    monitor_id: Optional[str] = None

    # handles de asyncio (TimerHandle de la próxima comprobación y tarea en curso)
    _timer: Any = PrivateAttr(default=None)
    _tick_task: Any = PrivateAttr(default=None)
    # venta en vuelo: ya no se puede cancelar
    _liquidating: bool = PrivateAttr(default=False)

    @property
    def is_monitoring(self) -> bool:
        return self.state == SessionState.MONITORING

    @property
    def is_liquidating(self) -> bool:
        return self._liquidating

    def mark_liquidating(self) -> None:
        self._liquidating = True

    @property
    def display_name(self) -> str:
        return self.token_symbol or self.token_address or "?"

    def set_timer(self, handle: Any) -> None:
        """Guarda el nuevo timer cancelando el anterior (uno como máximo)."""
        self.cancel_timer()
        self._timer = handle

    def cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def timer_fired(self) -> None:
        self._timer = None

    def track_task(self, task: Any) -> None:
        self._tick_task = task

    def clear(self) -> None:
        """Vuelve a ``idle`` y descarta todos los campos. Idempotente."""
        self.cancel_timer()
        self._tick_task = None
        self._liquidating = False
        for name in _INTAKE_FIELDS:
            setattr(self, name, None)
        self.state = SessionState.IDLE
