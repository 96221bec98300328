"""
Controller for the trade-intake state machine.

Free text from a user walks their session through
``idle -> awaiting_amount -> awaiting_target``; ``confirm`` executes the buy
and hands the session to the monitor; ``cancel`` is accepted in any state.
Input errors are answered with a re-prompt and never change the state.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from enums.session_state import SessionState
from models.trade import TradeRecord
from models.trade_session import TradeSession
from utils.errors import GatewayError, PersistenceError, ValidationError
from utils.formatting import escape_md, format_number, is_number, parse_amount, parse_market_cap
from utils.logger import logger_manager, log_function
from utils.solana_utils import ADDRESS_LENGTH, is_valid_token_address, solscan_tx

logger = logger_manager.setup_logger(__name__)

AMOUNT_PROMPT = "How much SOL do you want to spend on this trade?"
TARGET_PROMPT = 'At what market cap (in USD) should I sell the tokens?\nFor example: "250000" or "245k"'


class TradeController:
    """Drive a user's session from token address to confirmed buy."""

    def __init__(self, sessions, users, trades, market_service, trade_service, monitor, notifier) -> None:
        self.sessions = sessions
        self.users = users
        self.trades = trades
        self.market = market_service
        self.trader = trade_service
        self.monitor = monitor
        self.notifier = notifier

    # -------- texto libre --------
    async def handle_text(self, user_id: str, text: str) -> SessionState:
        """Interpreta ``text`` según el estado de la sesión y devuelve el nuevo estado."""
        text = (text or "").strip()
        session = self.sessions.get_or_create(user_id)
        if not text or text.startswith("/"):
            return session.state

        if session.state == SessionState.IDLE:
            await self._on_token_address(session, text)
        elif session.state == SessionState.AWAITING_AMOUNT:
            await self._on_amount(session, text)
        elif session.state == SessionState.AWAITING_TARGET:
            await self._on_target(session, text)
        else:
            await self.notifier.send(
                user_id, "⏳ A trade is already being monitored. Use /status to check it or /cancel to stop it."
            )
        return session.state

    async def _on_token_address(self, session: TradeSession, text: str) -> None:
        user_id = session.user_id
        if not is_valid_token_address(text):
            if len(text) == ADDRESS_LENGTH:
                await self.notifier.send(user_id, "⚠️ That doesn't look like a valid Solana address. Please try again.")
            else:
                await self.notifier.send(user_id, "Send me a valid Solana token address (44 characters) to start a new trade.")
            return

        session.clear()
        session.token_address = text
        session.state = SessionState.AWAITING_AMOUNT
        logger.info(f"[{user_id}] Nuevo trade para {text}")

        # sólo informativo: si Dexscreener falla seguimos sin símbolo
        try:
            info = await asyncio.to_thread(self.market.get_token_info, text)
        except GatewayError as e:
            logger.info(f"[{user_id}] Sin datos de mercado para {text}: {e}")
            await self.notifier.send(user_id, AMOUNT_PROMPT)
            return

        if session.token_address != text:
            return
        session.token_symbol = info.symbol or "Unknown"
        await self.notifier.send(
            user_id,
            f"✅ Token detected!\n\n*Symbol:* {escape_md(session.token_symbol)}\n"
            f"*Current Market Cap:* ${format_number(info.market_cap)}\n\n{AMOUNT_PROMPT}",
        )

    async def _on_amount(self, session: TradeSession, text: str) -> None:
        try:
            amount = parse_amount(text)
        except ValidationError:
            if is_number(text):
                await self.notifier.send(session.user_id, "Amount must be greater than 0.")
            else:
                await self.notifier.send(session.user_id, "Please enter a valid number (e.g., 0.1 or 1.5).")
            return
        session.buy_amount = amount
        session.state = SessionState.AWAITING_TARGET
        await self.notifier.send(session.user_id, TARGET_PROMPT)

    async def _on_target(self, session: TradeSession, text: str) -> None:
        try:
            target = parse_market_cap(text)
        except ValidationError:
            await self.notifier.send(session.user_id, "Please enter a valid positive market cap (e.g., 250000 or 245k).")
            return
        session.target_market_cap = target
        await self.notifier.send(
            session.user_id,
            f"📋 *Trade Details:*\n*Token:* {escape_md(session.display_name)}\n"
            f"*Buy Amount:* {session.buy_amount} SOL\n"
            f"*Sell Target:* ${format_number(target)} market cap\n\n"
            "Type /confirm to proceed or /cancel to abort.",
        )

    # -------- comandos --------
    @log_function
    async def confirm(self, user_id: str) -> bool:
        """Ejecuta la compra y arranca la monitorización."""
        session = self.sessions.get(user_id)
        if (session is None or session.state != SessionState.AWAITING_TARGET
                or session.target_market_cap is None):
            await self.notifier.send(user_id, "No pending trade to confirm.")
            return False

        try:
            user = await asyncio.to_thread(self.users.get, user_id)
        except PersistenceError as e:
            logger.error(f"[{user_id}] No se pudo leer el perfil: {e}")
            self.sessions.reset(user_id)
            await self.notifier.send(user_id, f"❌ Error executing trade: {e}", markdown=False)
            return False
        if user is None or not user.is_provisioned:
            await self.notifier.send(user_id, "❌ Wallet not set up correctly. Please use /start to create your wallet.")
            return False

        await self.notifier.send(user_id, "🔄 Executing buy order...")
        try:
            result = await asyncio.to_thread(self.trader.buy, user.api_key, session.token_address, session.buy_amount)
            if not result.ok:
                raise GatewayError(result.error or "buy order rejected")
            session.buy_tx = result.signature
            session.token_amount = await self._estimate_token_amount(session)
            record = TradeRecord(
                user_id=user_id,
                token_address=session.token_address,
                token_symbol=session.token_symbol or session.token_address,
                buy_amount=session.buy_amount,
                target_market_cap=session.target_market_cap,
                buy_tx=session.buy_tx,
                token_amount=session.token_amount,
            )
            await asyncio.to_thread(self.trades.add, record)
        except (GatewayError, PersistenceError) as e:
            if session.buy_tx:
                logger.critical(f"[{user_id}] Compra {session.buy_tx} ejecutada pero sin registro: {e}")
            logger.error(f"[{user_id}] Error ejecutando compra de {session.token_address}: {e}")
            self.sessions.reset(user_id)
            await self.notifier.send(user_id, f"❌ Error executing trade: {e}", markdown=False)
            return False

        session.state = SessionState.MONITORING
        amount_txt = format_number(session.token_amount) if session.token_amount else "unknown"
        await self.notifier.send(
            user_id,
            f"✅ Buy order executed!\n*Token:* {escape_md(session.display_name)}\n*Amount:* ~{amount_txt} tokens\n"
            f"*TX:* [View on Solscan]({solscan_tx(session.buy_tx)})\n\n"
            f"Now monitoring market cap. I'll sell when it reaches ${format_number(session.target_market_cap)}.",
        )
        self.monitor.start(session)
        return True

    async def _estimate_token_amount(self, session: TradeSession) -> Optional[float]:
        """Tokens ≈ SOL gastado × precio SOL ÷ precio del token (None si no hay datos)."""
        try:
            info = await asyncio.to_thread(self.market.get_token_info, session.token_address)
            sol_usd = await asyncio.to_thread(self.market.get_reference_rate)
        except GatewayError as e:
            logger.warning(f"[{session.user_id}] No se pudo estimar la cantidad de tokens: {e}")
            return None
        if info.price_usd <= 0:
            return None
        return session.buy_amount * sol_usd / info.price_usd

    async def cancel(self, user_id: str) -> None:
        """Vuelve a ``idle`` desde cualquier estado. Idempotente.

        Si el objetivo ya se alcanzó y la venta está en vuelo no se cancela nada.
        """
        session = self.sessions.get(user_id)
        if session is not None and session.is_liquidating:
            logger.info(f"[{user_id}] /cancel ignorado: venta de {session.buy_tx} en curso")
            await self.notifier.send(
                user_id,
                "⏳ Your target was reached and the sell order is already executing. "
                "You'll get a confirmation shortly.",
            )
            return

        if session is not None and session.is_monitoring:
            buy_tx = session.buy_tx
            self.monitor.stop(user_id)
            logger.warning(f"[{user_id}] Monitorización cancelada; trade {buy_tx} queda 'pending'")
            await self.notifier.send(
                user_id,
                "Monitoring stopped. Your tokens were NOT sold.\n"
                "Trade cancelled. Send a new token address to start again.",
            )
            return

        self.sessions.reset(user_id)
        await self.notifier.send(user_id, "Trade cancelled. Send a new token address to start again.")
