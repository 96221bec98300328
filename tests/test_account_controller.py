"""Onboarding, wallet info, history and /status."""

import pytest

from conftest import FEE_ADDRESS, USER, open_trade
from enums.session_state import TradeStatus
from utils.errors import GatewayError

NEW_USER = "777"


@pytest.mark.asyncio
async def test_start_provisions_wallet_once(account_ctrl, wallets, users, notifier):
    assert await account_ctrl.start(NEW_USER, "carol") is True
    assert await account_ctrl.start(NEW_USER, "carol") is False

    assert wallets.calls == 1
    user = users.get(NEW_USER)
    assert user.is_provisioned
    assert user.username == "carol"
    assert notifier.texts(NEW_USER)[-1].startswith("🚀 *Welcome back!*")


@pytest.mark.asyncio
async def test_start_provisioning_failure(account_ctrl, wallets, users, notifier):
    wallets.error = GatewayError("HTTP 503")

    assert await account_ctrl.start(NEW_USER) is False

    assert users.get(NEW_USER) is None
    assert notifier.last == "❌ Error creating wallet. Please try again later."


@pytest.mark.asyncio
async def test_address_and_secret(account_ctrl, notifier):
    await account_ctrl.show_address(USER)
    assert FEE_ADDRESS in notifier.last

    await account_ctrl.show_secret(USER)
    assert "S" * 88 in notifier.last


@pytest.mark.asyncio
async def test_wallet_commands_without_profile(account_ctrl, notifier):
    await account_ctrl.show_address(NEW_USER)
    assert notifier.last.startswith("❌ Wallet not set up")

    await account_ctrl.show_secret(NEW_USER)
    assert notifier.last.startswith("❌ Wallet not set up")


@pytest.mark.asyncio
async def test_empty_history(account_ctrl, notifier):
    await account_ctrl.trade_history(USER)
    assert notifier.last == "No trade history found."


@pytest.mark.asyncio
async def test_history_shows_final_market_cap_for_completed(account_ctrl, trade_ctrl, trades, notifier):
    await open_trade(trade_ctrl)
    trades.update_status("BUYSIG", TradeStatus.COMPLETED, 310_000)

    await account_ctrl.trade_history(USER)

    text = notifier.last
    assert text.startswith("*Your recent trades:*")
    assert "*Final Market Cap:* $310,000" in text
    assert "*Status:* completed" in text


@pytest.mark.asyncio
async def test_status_without_monitoring(account_ctrl, notifier):
    await account_ctrl.status(USER)
    assert notifier.last == "No active monitoring session."


@pytest.mark.asyncio
async def test_status_snapshot(account_ctrl, trade_ctrl, market, notifier):
    await open_trade(trade_ctrl)
    market.queue(280_000)

    await account_ctrl.status(USER)

    text = notifier.last
    assert text.startswith("📊 *Current Monitoring:*")
    assert "*Current Market Cap:* $280,000" in text
    assert "*Target Market Cap:* $300,000" in text
    assert "1,234.50" in text


@pytest.mark.asyncio
async def test_status_market_error(account_ctrl, trade_ctrl, market, notifier):
    await open_trade(trade_ctrl)
    market.queue(GatewayError("down"))

    await account_ctrl.status(USER)

    assert notifier.last == "Error retrieving current market data."


@pytest.mark.asyncio
async def test_help_includes_tip_address(account_ctrl, notifier):
    await account_ctrl.help(USER)

    assert "/tradehistory" in notifier.last
    assert FEE_ADDRESS in notifier.last


@pytest.mark.asyncio
async def test_touch_unknown_user_is_harmless(account_ctrl, users):
    await account_ctrl.touch("nobody")
    assert users.get("nobody") is None
