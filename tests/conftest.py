"""
Shared fixtures: in-memory fakes for every external gateway plus a manual
scheduler, so the trade flow can be driven tick by tick without network
access or real timers.
"""
from __future__ import annotations

from collections import deque

import pytest

from controllers.account_controller import AccountController
from controllers.sell_controller import SellController
from controllers.trade_controller import TradeController
from models.token import TokenInfo
from models.user import UserProfile
from orchestrators.monitor_orchestrator import MonitorOrchestrator
from repositories.session_repository import SessionRepository
from repositories.trade_repository import TradeRepository
from repositories.user_repository import UserRepository
from schemas.trade_schema import ProvisionedWallet, TradeResult

TOKEN = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
OTHER_TOKEN = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
FEE_ADDRESS = "52rG3pPMbZETgbdfvdF69BoYLQF1zeFKrfkUdJvG5iV4"
USER = "1001"


class FakeMarket:
    """Serves queued market caps; an Exception in the queue is raised."""

    def __init__(self, symbol="TEST", price_usd=0.001, sol_usd=150.0):
        self.symbol = symbol
        self.price_usd = price_usd
        self.sol_usd = sol_usd
        self.caps = deque()
        self.default_cap = 100_000.0
        self.info_calls = 0

    def queue(self, *caps):
        self.caps.extend(caps)

    def get_token_info(self, token_address):
        self.info_calls += 1
        cap = self.caps.popleft() if self.caps else self.default_cap
        if isinstance(cap, Exception):
            raise cap
        return TokenInfo(address=token_address, symbol=self.symbol, price_usd=self.price_usd, market_cap=cap)

    def get_reference_rate(self):
        if isinstance(self.sol_usd, Exception):
            raise self.sol_usd
        return self.sol_usd


class FakeTrader:
    def __init__(self):
        self.buys = []
        self.sells = []
        self.buy_result = TradeResult.success("BUYSIG")
        self.sell_result = TradeResult.success("SELLSIG")

    def buy(self, api_key, token_address, amount_sol):
        self.buys.append((api_key, token_address, amount_sol))
        return self.buy_result

    def sell(self, api_key, token_address, amount="100%", denominated_in_sol=False):
        self.sells.append((api_key, token_address, amount, denominated_in_sol))
        return self.sell_result


class FakeSolana:
    def __init__(self):
        self.transfers = []
        self.transfer_error = None
        self.balance = 1234.5

    def transfer(self, secret_key, destination, amount_sol):
        self.transfers.append((secret_key, destination, amount_sol))
        if self.transfer_error:
            raise self.transfer_error
        return "FEESIG"

    def get_token_balance(self, owner, mint):
        return self.balance


class FakeWallets:
    def __init__(self):
        self.calls = 0
        self.error = None

    def provision_wallet(self):
        self.calls += 1
        if self.error:
            raise self.error
        return ProvisionedWallet(address=FEE_ADDRESS, secret_key="S" * 88, api_key="APIKEY")


class FakeNotifier:
    def __init__(self):
        self.messages = []

    async def send(self, user_id, text, markdown=True):
        self.messages.append((user_id, text))

    def texts(self, user_id=USER):
        return [t for u, t in self.messages if u == user_id]

    @property
    def last(self):
        return self.messages[-1][1] if self.messages else None


class FakeHandle:
    def __init__(self, delay, callback, args):
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        self.callback(*self.args)


class FakeScheduler:
    """Stand-in for ``loop.call_later``: records handles, never fires on its own."""

    def __init__(self):
        self.handles = []

    def __call__(self, delay, callback, *args):
        handle = FakeHandle(delay, callback, args)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self.handles if not (h.cancelled or h.fired)]

    @property
    def delays(self):
        return [h.delay for h in self.handles]


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "db.json")


@pytest.fixture
def market():
    return FakeMarket()


@pytest.fixture
def trader():
    return FakeTrader()


@pytest.fixture
def solana():
    return FakeSolana()


@pytest.fixture
def wallets():
    return FakeWallets()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def sessions():
    return SessionRepository()


@pytest.fixture
def users(db_path):
    repo = UserRepository(db_path)
    repo.upsert(UserProfile(user_id=USER, wallet_address=FEE_ADDRESS, wallet_secret="S" * 88, api_key="APIKEY"))
    return repo


@pytest.fixture
def trades(db_path):
    return TradeRepository(db_path)


@pytest.fixture
def seller(sessions, users, trades, market, trader, solana, notifier):
    return SellController(sessions, users, trades, market, trader, solana, notifier,
                          fee_percent=0.25, fee_address=FEE_ADDRESS)


@pytest.fixture
def monitor(sessions, market, seller, notifier, scheduler):
    return MonitorOrchestrator(sessions, market, seller, notifier, call_later=scheduler)


@pytest.fixture
def trade_ctrl(sessions, users, trades, market, trader, monitor, notifier):
    return TradeController(sessions, users, trades, market, trader, monitor, notifier)


@pytest.fixture
def account_ctrl(sessions, users, trades, market, solana, wallets, notifier):
    return AccountController(sessions, users, trades, market, solana, wallets, notifier,
                             history_limit=10, tip_address=FEE_ADDRESS)


async def open_trade(trade_ctrl, token=TOKEN, amount="0.5", target="300k", user_id=USER):
    """Drive a session through intake and /confirm."""
    await trade_ctrl.handle_text(user_id, token)
    await trade_ctrl.handle_text(user_id, amount)
    await trade_ctrl.handle_text(user_id, target)
    return await trade_ctrl.confirm(user_id)



async def run_next_tick(scheduler, sessions, user_id=USER):
    """Fire the pending check like the event loop would and wait for it."""
    pending = scheduler.pending
    assert len(pending) == 1, f"expected one pending check, got {len(pending)}"
    pending[0].fire()
    task = sessions.get(user_id)._tick_task
    if task is not None:
        await task
