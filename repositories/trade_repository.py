# repositories/trade_repository.py
from __future__ import annotations
from typing import Optional

from pydantic import ValidationError as ModelValidationError

from enums.session_state import TradeStatus
from models.trade import TradeRecord
from repositories.json_store import JsonStore
from utils.errors import PersistenceError
from utils.logger import logger_manager, log_function

logger = logger_manager.setup_logger(__name__)


class TradeRepository:
    """
    Registro append-only de ciclos compra-venta (UNA fila por compra).
    - La fila se identifica por ``buy_tx`` (firma de la compra).
    - Sólo ``status`` y ``final_market_cap`` cambian, una vez, al liquidar.
    """
    def __init__(self, db_path: str) -> None:
        self.store = JsonStore(db_path)

    def _parse(self, rows: list[dict]) -> list[TradeRecord]:
        try:
            return [TradeRecord(**r) for r in rows]
        except ModelValidationError as e:
            raise PersistenceError(f"Trade corrupto en la base de datos: {e}") from e

    @log_function
    def add(self, trade: TradeRecord) -> TradeRecord:
        row = trade.model_dump(mode="json")
        self.store.update(lambda data: data["trades"].append(row))
        return trade

    def list_by_user(self, user_id: str, limit: int = 10) -> list[TradeRecord]:
        """Trades del usuario, más recientes primero, truncados a ``limit``."""
        rows = [r for r in self.store.load()["trades"] if r.get("user_id") == user_id]
        trades = self._parse(rows)
        trades.sort(key=lambda t: t.created_at, reverse=True)
        return trades[:limit]

    def list_all(self, status: Optional[TradeStatus] = None) -> list[TradeRecord]:
        trades = self._parse(self.store.load()["trades"])
        if status is not None:
            trades = [t for t in trades if t.status == status]
        trades.sort(key=lambda t: t.created_at, reverse=True)
        return trades

    def get_by_buy_tx(self, buy_tx: str) -> Optional[TradeRecord]:
        for row in self.store.load()["trades"]:
            if row.get("buy_tx") == buy_tx:
                return self._parse([row])[0]
        return None

    @log_function
    def update_status(self, buy_tx: str, status: TradeStatus, final_market_cap: Optional[float] = None) -> bool:
        """Cierra el trade asociado a ``buy_tx``. Devuelve False si no existe."""
        def _apply(data: dict) -> bool:
            found = False
            for row in data["trades"]:
                if row.get("buy_tx") == buy_tx:
                    row["status"] = TradeStatus(status).value
                    if final_market_cap is not None:
                        row["final_market_cap"] = final_market_cap
                    found = True
            return found

        found = self.store.update(_apply, only_if_changed=True)
        if not found:
            logger.warning(f"update_status: no hay trade con buy_tx={buy_tx}")
        return found
