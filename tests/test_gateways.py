"""HTTP gateways: Dexscreener/CoinGecko market data, PumpPortal trading and wallet creation."""

import logging
from unittest.mock import Mock

import pytest
import requests

from services.market_service import MarketService
from services.trade_service import TradeService
from services.wallet_service import WalletService
from utils.errors import GatewayError, MalformedResponseError, NotFoundError
from utils.logger import log_function, mask_secrets

TOKEN = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def _response(payload=None, status=200, json_error=False):
    r = Mock()
    r.status_code = status
    if json_error:
        r.json.side_effect = ValueError("no json")
    else:
        r.json.return_value = payload
    if status >= 400:
        r.raise_for_status.side_effect = requests.HTTPError(f"HTTP {status}")
    else:
        r.raise_for_status.return_value = None
    return r


def _http(method, response=None, exc=None):
    http = Mock(spec=requests.Session)
    if exc is not None:
        getattr(http, method).side_effect = exc
    else:
        getattr(http, method).return_value = response
    return http


def _pair(chain="solana", **kw):
    pair = {
        "chainId": chain,
        "baseToken": {"address": TOKEN, "symbol": "TEST"},
        "priceUsd": "0.0031",
        "fdv": 310000,
        "marketCap": 290000,
        "liquidity": {"usd": 50000},
    }
    pair.update(kw)
    return pair


class TestMarketService:

    def test_prefers_solana_pair_and_fdv(self):
        http = _http("get", _response({"pairs": [_pair(chain="ethereum", fdv=1), _pair()]}))
        info = MarketService(http=http).get_token_info(TOKEN)

        assert info.symbol == "TEST"
        assert info.market_cap == 310_000
        assert info.price_usd == pytest.approx(0.0031)

        url = http.get.call_args.args[0]
        assert url == f"https://api.dexscreener.com/latest/dex/tokens/{TOKEN}"
        assert "t" in http.get.call_args.kwargs["params"]

    def test_market_cap_fallbacks(self):
        http = _http("get", _response({"pairs": [_pair(fdv=None)]}))
        assert MarketService(http=http).get_token_info(TOKEN).market_cap == 290_000

        http = _http("get", _response({"pairs": [_pair(fdv=None, marketCap=None)]}))
        assert MarketService(http=http).get_token_info(TOKEN).market_cap == 500_000

    @pytest.mark.parametrize("payload", [{"pairs": []}, {"pairs": None}, {}])
    def test_no_pairs_is_not_found(self, payload):
        http = _http("get", _response(payload))
        with pytest.raises(NotFoundError):
            MarketService(http=http).get_token_info(TOKEN)

    def test_pair_without_price_is_malformed(self):
        http = _http("get", _response({"pairs": [_pair(priceUsd=None)]}))
        with pytest.raises(MalformedResponseError):
            MarketService(http=http).get_token_info(TOKEN)

    def test_non_json_is_malformed(self):
        http = _http("get", _response(json_error=True))
        with pytest.raises(MalformedResponseError):
            MarketService(http=http).get_token_info(TOKEN)

    def test_transport_error(self):
        http = _http("get", exc=requests.ConnectionError("refused"))
        with pytest.raises(GatewayError):
            MarketService(http=http).get_token_info(TOKEN)

    def test_http_error(self):
        http = _http("get", _response({}, status=500))
        with pytest.raises(GatewayError):
            MarketService(http=http).get_token_info(TOKEN)

    def test_reference_rate(self):
        http = _http("get", _response({"solana": {"usd": 151.2}}))
        assert MarketService(http=http).get_reference_rate() == 151.2
        assert http.get.call_args.kwargs["params"] == {"ids": "solana", "vs_currencies": "usd"}

    def test_reference_rate_missing(self):
        http = _http("get", _response({"bitcoin": {"usd": 1}}))
        with pytest.raises(MalformedResponseError):
            MarketService(http=http).get_reference_rate()


class TestTradeService:

    def test_buy_payload(self):
        http = _http("post", _response({"signature": "SIG1"}))
        result = TradeService(http=http).buy("KEY", TOKEN, 0.5)

        assert result.ok and result.signature == "SIG1"
        args, kwargs = http.post.call_args
        assert args[0] == "https://pumpportal.fun/api/trade"
        assert kwargs["params"] == {"api-key": "KEY"}
        assert kwargs["json"] == {
            "action": "buy",
            "mint": TOKEN,
            "amount": 0.5,
            "denominatedInSol": "true",
            "slippage": 10,
            "priorityFee": 0.00005,
            "pool": "auto",
        }

    def test_sell_whole_position(self):
        http = _http("post", _response({"signature": "SIG2"}))
        result = TradeService(http=http).sell("KEY", TOKEN)

        assert result.ok
        payload = http.post.call_args.kwargs["json"]
        assert payload["action"] == "sell"
        assert payload["amount"] == "100%"
        assert payload["denominatedInSol"] == "false"

    def test_api_errors_are_reported(self):
        http = _http("post", _response({"errors": ["insufficient funds", "retry"]}, status=400))
        result = TradeService(http=http).buy("KEY", TOKEN, 0.5)

        assert not result.ok
        assert result.error == "insufficient funds; retry"

    def test_missing_signature(self):
        http = _http("post", _response({}))
        result = TradeService(http=http).buy("KEY", TOKEN, 0.5)
        assert not result.ok

    def test_transport_error_masks_api_key(self):
        http = _http("post", exc=requests.ConnectionError("https://pumpportal.fun/api/trade?api-key=SUPERSECRET"))
        result = TradeService(http=http).sell("SUPERSECRET", TOKEN)

        assert not result.ok
        assert "SUPERSECRET" not in result.error


class TestWalletService:

    def test_provision(self):
        http = _http("get", _response({"walletPublicKey": "PUB", "privateKey": "PRIV", "apiKey": "API"}))
        wallet = WalletService(http=http).provision_wallet()

        assert (wallet.address, wallet.secret_key, wallet.api_key) == ("PUB", "PRIV", "API")
        assert http.get.call_args.args[0] == "https://pumpportal.fun/api/create-wallet"

    def test_incomplete_response(self):
        http = _http("get", _response({"walletPublicKey": "PUB"}))
        with pytest.raises(MalformedResponseError):
            WalletService(http=http).provision_wallet()

    def test_http_failure(self):
        http = _http("get", _response({}, status=503))
        with pytest.raises(GatewayError):
            WalletService(http=http).provision_wallet()


def test_mask_secrets():
    assert mask_secrets("url?api-key=abc123&x=1") == "url?api-key=***&x=1"
    assert mask_secrets("POST https://api.telegram.org/bot123456:AAH-x_y/sendMessage") == \
        "POST https://api.telegram.org/bot***/sendMessage"


def test_log_function_hides_secret_arguments_but_keeps_signatures(caplog):
    @log_function
    def transfer(secret_key, destination, signature):
        return signature

    secret = "5" * 88
    sig = "4" * 88
    with caplog.at_level(logging.DEBUG):
        assert transfer(secret, "DEST", signature=sig) == sig

    assert secret not in caplog.text
    assert "secret_key=***" in caplog.text
    assert sig in caplog.text
