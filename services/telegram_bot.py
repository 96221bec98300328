from __future__ import annotations
import asyncio
from typing import Awaitable, Callable

from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters

from controllers.account_controller import AccountController
from controllers.sell_controller import SellController
from controllers.trade_controller import TradeController
from orchestrators.monitor_orchestrator import MonitorOrchestrator
from repositories.session_repository import SessionRepository
from repositories.trade_repository import TradeRepository
from repositories.user_repository import UserRepository
from services.market_service import MarketService
from services.solana_service import SolanaService
from services.telegram_service import TelegramNotifier
from services.trade_service import TradeService
from services.wallet_service import WalletService
from utils.config import Settings, get_settings
from utils.logger import logger_manager

logger = logger_manager.setup_logger(__name__)


class TelegramBot:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        if not self.settings.telegram_token:
            raise RuntimeError("Falta TELEGRAM_TOKEN")

        # updates concurrentes entre usuarios; cada usuario se serializa con su lock
        self.application = (
            Application.builder().token(self.settings.telegram_token).concurrent_updates(True).build()
        )
        self._user_locks: dict[str, asyncio.Lock] = {}

        s = self.settings
        notifier = TelegramNotifier(self.application.bot)
        self.sessions = SessionRepository()
        users = UserRepository(s.db_path)
        trades = TradeRepository(s.db_path)
        market = MarketService(base_url=s.dexscreener_base_url, rate_url=s.coingecko_url, timeout=s.http_timeout)
        trader = TradeService(base_url=s.pumpportal_base_url, slippage=s.slippage,
                              priority_fee=s.priority_fee, pool=s.pool, timeout=s.http_timeout)
        solana = SolanaService(rpc_url=s.solana_rpc_url)
        wallets = WalletService(base_url=s.pumpportal_base_url)

        seller = SellController(self.sessions, users, trades, market, trader, solana, notifier,
                                fee_percent=s.trade_fee_percent, fee_address=s.fee_address)
        monitor = MonitorOrchestrator(self.sessions, market, seller, notifier,
                                      near_interval=s.near_interval, far_interval=s.far_interval,
                                      near_band=s.near_band)
        self.trade = TradeController(self.sessions, users, trades, market, trader, monitor, notifier)
        self.account = AccountController(self.sessions, users, trades, market, solana, wallets, notifier,
                                         history_limit=s.history_limit, tip_address=s.fee_address)

        # CommandHandler compara en minúsculas: /myAddy == /myaddy
        self.application.add_handler(CommandHandler("start", self.cmd_start))
        self.application.add_handler(CommandHandler("help", self._wrap(self.account.help)))
        self.application.add_handler(CommandHandler(["myaddy", "address"], self._wrap(self.account.show_address)))
        self.application.add_handler(CommandHandler(["mypkey", "secret"], self._wrap(self.account.show_secret)))
        self.application.add_handler(CommandHandler(["tradehistory", "history"], self._wrap(self.account.trade_history)))
        self.application.add_handler(CommandHandler("status", self._wrap(self.account.status)))
        self.application.add_handler(CommandHandler("confirm", self._wrap(self.trade.confirm)))
        self.application.add_handler(CommandHandler("cancel", self._wrap(self.trade.cancel)))
        self.application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, self.on_text))
        self.application.add_error_handler(self.on_error)

    @staticmethod
    def _user_id(update: Update) -> str | None:
        chat = update.effective_chat
        return str(chat.id) if chat else None

    def _lock(self, user_id: str) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = self._user_locks[user_id] = asyncio.Lock()
        return lock

    def _wrap(self, action: Callable[[str], Awaitable[object]]):
        async def handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
            user_id = self._user_id(update)
            if user_id is None:
                return
            async with self._lock(user_id):
                await self.account.touch(user_id)
                await action(user_id)
        handler.__name__ = getattr(action, "__name__", "handler")
        return handler

    async def cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user_id = self._user_id(update)
        if user_id is None:
            return
        username = update.effective_user.username if update.effective_user else ""
        async with self._lock(user_id):
            await self.account.touch(user_id)
            await self.account.start(user_id, username or "")

    async def on_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user_id = self._user_id(update)
        if user_id is None or update.message is None:
            return
        async with self._lock(user_id):
            await self.account.touch(user_id)
            await self.trade.handle_text(user_id, update.message.text or "")

    async def on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error(f"Error no controlado procesando update: {context.error}", exc_info=context.error)

    def run(self):
        logger.info("TelegramBot iniciando...")
        self.application.run_polling(allowed_updates=Update.ALL_TYPES)

    def stop_running(self):
        self.application.stop_running()
