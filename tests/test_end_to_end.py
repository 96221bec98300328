"""
Full cycle with fake gateways: /start, intake, /confirm, three market ticks
and the automatic sale at the target.
"""

import pytest

from conftest import FEE_ADDRESS, TOKEN, USER, run_next_tick
from controllers.account_controller import AccountController
from enums.session_state import SessionState, TradeStatus
from repositories.user_repository import UserRepository

NEW_USER = "424242"


@pytest.mark.asyncio
async def test_buy_then_sell_at_target(db_path, sessions, trades, market, solana, wallets, notifier,
                                       trade_ctrl, scheduler, trader):
    account = AccountController(sessions, UserRepository(db_path), trades, market, solana, wallets,
                                notifier, tip_address=FEE_ADDRESS)
    # el usuario del fixture ya existe; /start de uno nuevo crea su wallet
    assert await account.start(NEW_USER, "alice") is True
    assert wallets.calls == 1
    assert "Welcome to Market Cap Trader Bot!" in notifier.texts(NEW_USER)[-1]

    await trade_ctrl.handle_text(USER, TOKEN)
    await trade_ctrl.handle_text(USER, "0.5")
    await trade_ctrl.handle_text(USER, "300k")
    assert await trade_ctrl.confirm(USER) is True

    market.queue(250_000, 285_000, 310_000)

    await run_next_tick(scheduler, sessions)
    assert scheduler.pending[0].delay == 5.0

    await run_next_tick(scheduler, sessions)
    assert scheduler.pending[0].delay == 2.0

    await run_next_tick(scheduler, sessions)
    assert scheduler.pending == []

    assert trader.buys == [("APIKEY", TOKEN, 0.5)]
    assert trader.sells == [("APIKEY", TOKEN, "100%", False)]
    assert len(solana.transfers) == 1

    record = trades.get_by_buy_tx("BUYSIG")
    assert record.status == TradeStatus.COMPLETED
    assert record.final_market_cap == 310_000
    assert sessions.get(USER).state == SessionState.IDLE

    texts = notifier.texts(USER)
    assert any("Buy order executed!" in t for t in texts)
    assert any("$310,000" in t and "Target market cap reached!" in t for t in texts)
    assert texts[-1].startswith("✅ Sell order executed!")
