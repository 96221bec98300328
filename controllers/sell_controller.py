"""
Controller for the liquidation sequence.

Runs once the monitored market cap reaches the user's target: sells the
whole position, charges the service fee, closes the trade record and tears
the session down. Ledger operations cannot be undone, so a failure after the
sell never rolls anything back.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from enums.session_state import TradeStatus
from models.token import TokenInfo
from models.trade_session import TradeSession
from utils.errors import GatewayError, PersistenceError
from utils.formatting import format_number
from utils.logger import logger_manager, log_function
from utils.solana_utils import sol_to_lamports, solscan_tx

logger = logger_manager.setup_logger(__name__)


def compute_fee_sol(proceeds_usd: float, fee_percent: float, sol_usd: Optional[float]) -> float:
    """Comisión en SOL: ``proceeds × fee% / 100`` convertida al precio de SOL."""
    if not sol_usd or sol_usd <= 0 or proceeds_usd <= 0:
        return 0.0
    return proceeds_usd * (fee_percent / 100) / sol_usd


class SellController:
    """Handle the sell + fee + record update sequence."""

    def __init__(self, sessions, users, trades, market_service, trade_service, solana_service,
                 notifier, fee_percent: float = 0.25, fee_address: str = "") -> None:
        self.sessions = sessions
        self.users = users
        self.trades = trades
        self.market = market_service
        self.trader = trade_service
        self.solana = solana_service
        self.notifier = notifier
        self.fee_percent = fee_percent
        self.fee_address = fee_address

    @log_function
    async def liquidate(self, session: TradeSession, token_info: TokenInfo) -> dict:
        # copia local: un /cancel durante la venta no debe dejarnos sin datos
        user_id = session.user_id
        monitor_id = session.monitor_id
        token = session.token_address
        buy_tx = session.buy_tx
        token_amount = session.token_amount
        current = token_info.market_cap

        await self.notifier.send(
            user_id,
            f"🎯 Target market cap reached!\n*Current:* ${format_number(current)}\n"
            f"*Target:* ${format_number(session.target_market_cap)}\n\nExecuting sell order...",
        )

        # 1) venta del 100%
        try:
            user = await asyncio.to_thread(self.users.get, user_id)
            if user is None or not user.is_provisioned:
                raise GatewayError("wallet not set up")
            result = await asyncio.to_thread(
                self.trader.sell, user.api_key, token, "100%", token_amount is None
            )
            if not result.ok:
                raise GatewayError(result.error or "sell order rejected")
        except (GatewayError, PersistenceError) as e:
            logger.error(f"[{user_id}] Venta fallida de {token}: {e}")
            logger.warning(f"[{user_id}] Trade {buy_tx} queda 'pending' (requiere conciliación manual)")
            self.sessions.reset(user_id, monitor_id)
            await self.notifier.send(user_id, f"⚠️ Monitoring error: sell failed: {e}", markdown=False)
            return {"ok": False, "reason": str(e)}

        sell_tx = result.signature

        # 2-4) tamaño de la comisión (best-effort)
        try:
            sol_usd = await asyncio.to_thread(self.market.get_reference_rate)
        except GatewayError as e:
            logger.warning(f"[{user_id}] Sin precio SOL/USD, se omite la comisión: {e}")
            sol_usd = None
        proceeds_usd = token_amount * token_info.price_usd if token_amount else 0.0
        fee_sol = compute_fee_sol(proceeds_usd, self.fee_percent, sol_usd)

        # 5) cobro de la comisión (no bloquea el cierre del trade)
        fee_tx = None
        if sol_to_lamports(fee_sol) > 0:
            try:
                fee_tx = await asyncio.to_thread(self.solana.transfer, user.wallet_secret, self.fee_address, fee_sol)
                logger.info(f"[{user_id}] Comisión {fee_sol:.9f} SOL cobrada: {fee_tx}")
            except Exception as e:
                # la venta ya está hecha: un fallo aquí nunca impide cerrar el trade
                logger.exception(f"[{user_id}] Error enviando la comisión ({fee_sol:.9f} SOL): {e}")
        else:
            logger.info(f"[{user_id}] Comisión nula (proceeds=${proceeds_usd:.2f}); no se transfiere")

        # 6) cierre del registro
        try:
            found = await asyncio.to_thread(self.trades.update_status, buy_tx, TradeStatus.COMPLETED, current)
            if not found:
                logger.warning(f"[{user_id}] No se encontró el trade {buy_tx} para cerrarlo")
        except PersistenceError as e:
            logger.error(f"[{user_id}] No se pudo cerrar el trade {buy_tx}: {e}")

        # 7) aviso al usuario
        await self.notifier.send(
            user_id,
            f"✅ Sell order executed!\n*TX:* [View on Solscan]({solscan_tx(sell_tx)})\n\n"
            "Trade completed successfully!",
        )

        # 8) fin de la sesión (sólo si sigue siendo este ciclo)
        self.sessions.reset(user_id, monitor_id)
        return {
            "ok": True,
            "sell_tx": sell_tx,
            "fee_tx": fee_tx,
            "fee_sol": fee_sol,
            "final_market_cap": current,
        }
