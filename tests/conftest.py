"""Shared fakes: a scripted exchange client and a controllable clock."""

from typing import Dict, List, Optional

import pytest

from exchange import OrderResult
from trader import StrategyConfig


class FakeClock:
    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeExchangeClient:
    """Records every call; answers from plain attributes set by the test."""

    def __init__(self):
        self.prices: Dict[str, float] = {}
        self.volumes: Dict[str, float] = {}
        self.closes: Dict[str, List[float]] = {}
        self.balances: Dict[str, float] = {}
        self.order_result: Optional[OrderResult] = None
        self.calls: List[tuple] = []
        self.orders: List[tuple] = []

    def ping(self) -> bool:
        self.calls.append(("ping",))
        return True

    def get_current_price(self, symbol: str) -> float:
        self.calls.append(("price", symbol))
        return self.prices.get(symbol, 0.0)

    def get_24h_quote_volume(self, symbol: str) -> float:
        self.calls.append(("volume", symbol))
        return self.volumes.get(symbol, 0.0)

    def get_recent_closes(self, symbol: str, interval: str, limit: int) -> List[float]:
        self.calls.append(("closes", symbol, interval, limit))
        return list(self.closes.get(symbol, []))

    def get_free_balance(self, asset: str) -> float:
        self.calls.append(("balance", asset))
        return self.balances.get(asset, 0.0)

    def place_market_order(self, symbol: str, side: str, quantity: float) -> OrderResult:
        self.calls.append(("order", symbol, side, quantity))
        self.orders.append((symbol, side, quantity))
        if self.order_result is not None:
            return self.order_result
        price = self.prices.get(symbol, 0.0)
        if price <= 0:
            return OrderResult()
        return OrderResult(avg_price=price, filled_qty=quantity)

    def count(self, kind: str) -> int:
        return sum(1 for c in self.calls if c[0] == kind)


def oversold_bullish_closes() -> List[float]:
    """
    50 closes: steep slide that slows to a crawl.

    Every delta is negative so RSI is 0, and the slowdown lifts the MACD
    line above its signal (positive histogram).
    """
    closes = [100.0 - i * 3.0 for i in range(30)]          # 100 -> 13
    closes += [13.0 - (j + 1) * 0.1 for j in range(20)]    # 12.9 -> 11.0
    return closes


def overbought_bearish_closes() -> List[float]:
    """Steep rally that stalls: RSI 100, negative MACD histogram."""
    closes = [10.0 + i * 3.0 for i in range(30)]           # 10 -> 97
    closes += [97.0 + (j + 1) * 0.1 for j in range(20)]    # 97.1 -> 99.0
    return closes


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client():
    return FakeExchangeClient()


@pytest.fixture
def strategy():
    return StrategyConfig(
        portfolio={"BTC/USDT": 100.0},
        quote_asset="USDT",
        buy_interval=3600,
        stop_loss_pct=0.05,
        take_profit_pct=0.10,
        rsi_period=14,
        buy_rsi_threshold=30,
        sell_rsi_threshold=70,
        macd_short=12,
        macd_long=26,
        macd_signal=9,
        candle_interval="15m",
        candle_limit=50,
        volume_threshold=1e7,
        refresh_interval=60,
    )


@pytest.fixture
def bullish_closes():
    return oversold_bullish_closes()


@pytest.fixture
def bearish_closes():
    return overbought_bearish_closes()
