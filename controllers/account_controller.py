"""
Controller for the account commands: onboarding, wallet info, trade history,
live status of the monitored trade and help.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from models.user import UserProfile
from utils.errors import GatewayError, PersistenceError
from utils.formatting import escape_md, format_number
from utils.logger import logger_manager, log_function

logger = logger_manager.setup_logger(__name__)

WALLET_MISSING = "❌ Wallet not set up. Please use /start to create your wallet."

HELP_TEMPLATE = """
🤖 *Market Cap Trader Bot Help*

*Commands:*
• /start - Initialize your profile. A wallet and API key will be created for you.
• /help - Show this help message.
• /myAddy - Get your wallet (public) address so you can fund it.
• /myPKey - Get your wallet's private key.
• /tradehistory - Show your recent trades (including final market cap for completed trades).
• /status - Check current active trade monitoring (refreshes current market cap).
• /cancel - Cancel the current trade.
• /confirm - Execute a buy order with the entered trade details.

*Workflow:*
1. Send /start. A wallet and API key will be created for you.
2. Fund your wallet using the address from /myAddy.
3. Send a valid Solana token address (44 characters) to begin a trade.
4. Provide the SOL amount you wish to spend.
5. Enter the target market cap (e.g. "250000" or "245k") at which you want to sell.
6. Confirm with /confirm to execute the trade.
7. The bot will monitor market cap (refreshing every few seconds), and when your target is reached, it automatically sells.
8. Love the bot? Send a tip (SOL) to:
```
{tip_address}
```
"""


def _fmt_date(iso_ts: str) -> str:
    try:
        return datetime.fromisoformat(iso_ts).strftime("%Y-%m-%d %H:%M:%S UTC")
    except ValueError:
        return iso_ts


class AccountController:
    def __init__(self, sessions, users, trades, market_service, solana_service, wallet_service,
                 notifier, history_limit: int = 10, tip_address: str = "") -> None:
        self.sessions = sessions
        self.users = users
        self.trades = trades
        self.market = market_service
        self.solana = solana_service
        self.wallets = wallet_service
        self.notifier = notifier
        self.history_limit = history_limit
        self.tip_address = tip_address

    async def touch(self, user_id: str) -> None:
        """Refresca ``last_active`` si el usuario ya existe."""
        try:
            await asyncio.to_thread(self.users.touch, user_id)
        except PersistenceError as e:
            logger.error(f"[{user_id}] No se pudo refrescar last_active: {e}")

    async def _get_user(self, user_id: str):
        try:
            return await asyncio.to_thread(self.users.get, user_id)
        except PersistenceError as e:
            logger.error(f"[{user_id}] No se pudo leer el perfil: {e}")
            return None

    @log_function
    async def start(self, user_id: str, username: str = "") -> bool:
        """Alta del usuario (wallet custodial + api-key) o bienvenida si ya existe."""
        user = await self._get_user(user_id)
        if user is not None:
            await self.notifier.send(
                user_id,
                "🚀 *Welcome back!* Send me a valid Solana token address to start a new trade.\n"
                "Type /help for instructions.",
            )
            return False

        await self.notifier.send(user_id, "⏳ Creating your wallet, this can take a few seconds...")
        try:
            wallet = await asyncio.to_thread(self.wallets.provision_wallet)
            user = UserProfile(
                user_id=user_id,
                wallet_address=wallet.address,
                wallet_secret=wallet.secret_key,
                api_key=wallet.api_key,
                username=username or "",
            )
            await asyncio.to_thread(self.users.upsert, user)
        except (GatewayError, PersistenceError) as e:
            logger.error(f"[{user_id}] Error durante el alta del wallet: {e}")
            await self.notifier.send(user_id, "❌ Error creating wallet. Please try again later.")
            return False

        logger.info(f"[{user_id}] Usuario creado con wallet {user.wallet_address}")
        await self.notifier.send(
            user_id,
            "🚀 *Welcome to Market Cap Trader Bot!*\n\n"
            "A new wallet has been created for you.\n\n"
            f"*Wallet Address:*\n```\n{user.wallet_address}\n```\n\n"
            "Fund your wallet using the above address.\n"
            "Use /myPKey to see its private key (keep it secret!).\n"
            "Send me a valid Solana token address to start a new trade.\n"
            "Type /help for further instructions.",
        )
        return True

    async def show_address(self, user_id: str) -> None:
        user = await self._get_user(user_id)
        if user is None or not user.wallet_address:
            await self.notifier.send(user_id, WALLET_MISSING)
            return
        await self.notifier.send(user_id, f"*Your wallet address is:*\n```\n{user.wallet_address}\n```")

    async def show_secret(self, user_id: str) -> None:
        user = await self._get_user(user_id)
        if user is None or not user.wallet_secret:
            await self.notifier.send(user_id, WALLET_MISSING)
            return
        logger.info(f"[{user_id}] Clave privada solicitada por su dueño")
        await self.notifier.send(user_id, f"*Your wallet private key is:*\n```\n{user.wallet_secret}\n```")

    async def trade_history(self, user_id: str) -> None:
        try:
            trades = await asyncio.to_thread(self.trades.list_by_user, user_id, self.history_limit)
        except PersistenceError as e:
            logger.error(f"[{user_id}] Error leyendo historial: {e}")
            await self.notifier.send(user_id, "❌ Error reading trade history. Please try again later.")
            return
        if not trades:
            await self.notifier.send(user_id, "No trade history found.")
            return

        lines = ["*Your recent trades:*"]
        for t in trades:
            block = [
                f"*Token:* {escape_md(t.token_symbol or t.token_address)}",
                f"*Buy Amount:* {t.buy_amount} SOL",
                f"*Target Market Cap:* ${format_number(t.target_market_cap)}",
            ]
            if t.final_market_cap is not None:
                block.append(f"*Final Market Cap:* ${format_number(t.final_market_cap)}")
            block.append(f"*Status:* {t.status.value}")
            block.append(f"*Date:* {_fmt_date(t.timestamp)}")
            lines.append("\n".join(block))
        await self.notifier.send(user_id, "\n\n".join(lines))

    async def status(self, user_id: str) -> None:
        """Foto actual del trade monitorizado con datos frescos."""
        session = self.sessions.get(user_id)
        if session is None or not session.is_monitoring:
            await self.notifier.send(user_id, "No active monitoring session.")
            return

        user = await self._get_user(user_id)
        try:
            info_task = asyncio.to_thread(self.market.get_token_info, session.token_address)
            if user is not None:
                balance_task = asyncio.to_thread(self.solana.get_token_balance, user.wallet_address, session.token_address)
                info, balance = await asyncio.gather(info_task, balance_task)
            else:
                info, balance = await info_task, None
        except GatewayError as e:
            logger.warning(f"[{user_id}] /status sin datos de mercado: {e}")
            await self.notifier.send(user_id, "Error retrieving current market data.")
            return

        if balance is None:
            balance_txt = "Unknown"
        else:
            balance_txt = f"{balance:,.2f} (${balance * info.price_usd:,.2f})"
        await self.notifier.send(
            user_id,
            "📊 *Current Monitoring:*\n"
            f"*Token:* {escape_md(session.display_name)}\n"
            f"*Balance:* {balance_txt}\n"
            f"*Bought:* {session.buy_amount} SOL\n"
            f"*Target Market Cap:* ${format_number(session.target_market_cap)}\n"
            f"*Current Market Cap:* ${format_number(info.market_cap)}\n"
            f"*Price:* ${info.price_usd:.4f}\n"
            "*Status:* Actively monitoring...",
        )

    async def help(self, user_id: str) -> None:
        await self.notifier.send(user_id, HELP_TEMPLATE.format(tip_address=self.tip_address))
