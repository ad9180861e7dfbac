import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import ccxt

import config

LOG = logging.getLogger("spotbot.exchange")

BUY = "BUY"
SELL = "SELL"


# ============================================================
# TYPED RESPONSES
# ============================================================
@dataclass
class Fill:
    price: float
    qty: float


@dataclass
class OrderResult:
    avg_price: float = 0.0
    filled_qty: float = 0.0
    fills: List[Fill] = field(default_factory=list)

    @property
    def filled(self) -> bool:
        return self.filled_qty > 0


def _to_float(v: Any) -> float:
    if v is None:
        return 0.0
    try:
        return float(v)
    except (TypeError, ValueError):
        return 0.0


def base_asset(symbol: str, quote: str = config.QUOTE_ASSET) -> str:
    if "/" in symbol:
        return symbol.split("/", 1)[0].strip().upper()
    s = symbol.strip().upper()
    q = (quote or "").upper()
    if q and s.endswith(q) and len(s) > len(q):
        return s[: -len(q)]
    return s


def parse_fills(order: dict) -> List[Fill]:
    # ccxt parses binance "fills" into "trades"; fall back to the raw payload
    fills: List[Fill] = []
    for t in order.get("trades") or []:
        q = _to_float(t.get("amount"))
        if q > 0:
            fills.append(Fill(price=_to_float(t.get("price")), qty=q))
    if fills:
        return fills

    info = order.get("info") or {}
    for f in info.get("fills") or []:
        q = _to_float(f.get("qty"))
        if q > 0:
            fills.append(Fill(price=_to_float(f.get("price")), qty=q))
    return fills


def summarize_order(order: Optional[dict]) -> OrderResult:
    if not order:
        return OrderResult()

    fills = parse_fills(order)
    total_qty = sum(f.qty for f in fills)
    if total_qty > 0:
        total_cost = sum(f.price * f.qty for f in fills)
        return OrderResult(avg_price=total_cost / total_qty, filled_qty=total_qty, fills=fills)

    # no fill breakdown, trust the order summary
    filled = _to_float(order.get("filled"))
    avg = _to_float(order.get("average"))
    if filled > 0 and avg > 0:
        return OrderResult(avg_price=avg, filled_qty=filled, fills=[Fill(avg, filled)])
    return OrderResult()


# ============================================================
# EXCHANGE HELPERS
# ============================================================
def make_exchange(api_key: str, api_secret: str, timeout_ms: int = config.REQUEST_TIMEOUT_MS):
    return ccxt.binance(
        {
            "apiKey": api_key,
            "secret": api_secret,
            "enableRateLimit": True,
            "timeout": timeout_ms,
            "options": {"defaultType": "spot"},
        }
    )


class ExchangeClient:
    """
    Sentinel-returning wrapper around a ccxt exchange.

    Network errors are retried a fixed number of times with a fixed delay.
    Exchange errors (bad symbol, insufficient funds, rejected order) are not.
    Nothing raised by ccxt escapes this class: callers get 0.0, [] or an
    empty OrderResult instead. Request signing is done by ccxt.
    """

    def __init__(
        self,
        exchange,
        retries: int = config.REQUEST_RETRIES,
        retry_delay: float = config.RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.ex = exchange
        self.retries = max(1, int(retries))
        self.retry_delay = retry_delay
        self._sleep = sleep

    def _request(self, what: str, fn: Callable, *args, retry_timeouts: bool = True, **kwargs):
        for attempt in range(1, self.retries + 1):
            try:
                return fn(*args, **kwargs)
            except ccxt.NetworkError as e:
                if not retry_timeouts and isinstance(e, ccxt.RequestTimeout):
                    LOG.info(f"[WARN] {what} timed out, not retrying: {e}")
                    return None
                LOG.info(f"[WARN] {what} attempt {attempt}/{self.retries}: {type(e).__name__} {e}")
                if attempt < self.retries:
                    self._sleep(self.retry_delay)
            except ccxt.BaseError as e:
                LOG.info(f"[WARN] {what} failed: {type(e).__name__} {e}")
                return None
        return None

    def ping(self) -> bool:
        return self._request("ping", self.ex.fetch_time) is not None

    def get_current_price(self, symbol: str) -> float:
        t = self._request(f"ticker {symbol}", self.ex.fetch_ticker, symbol)
        if not isinstance(t, dict):
            return 0.0
        return _to_float(t.get("last"))

    def get_24h_quote_volume(self, symbol: str) -> float:
        t = self._request(f"24h volume {symbol}", self.ex.fetch_ticker, symbol)
        if not isinstance(t, dict):
            return 0.0
        return _to_float(t.get("quoteVolume"))

    def get_recent_closes(self, symbol: str, interval: str, limit: int) -> List[float]:
        rows = self._request(
            f"ohlcv {symbol} {interval}",
            self.ex.fetch_ohlcv,
            symbol,
            timeframe=interval,
            limit=limit,
        )
        if not isinstance(rows, list):
            return []

        closes: List[float] = []
        for r in rows:
            if not r or len(r) < 5 or r[4] is None:
                continue
            try:
                closes.append(float(r[4]))
            except (TypeError, ValueError):
                continue
        return closes

    def get_free_balance(self, asset: str) -> float:
        bal = self._request("balance", self.ex.fetch_balance)
        if not isinstance(bal, dict):
            return 0.0
        free = bal.get("free") or {}
        return _to_float(free.get(asset))

    def place_market_order(self, symbol: str, side: str, quantity: float) -> OrderResult:
        side = side.upper()
        if side not in (BUY, SELL):
            raise ValueError(f"bad order side {side!r}")

        LOG.info(f"[EXCHANGE] placing {side} market order {symbol} qty={quantity:.5f}")
        order = self._request(
            f"order {side} {symbol}",
            self.ex.create_order,
            symbol,
            "market",
            side.lower(),
            quantity,
            retry_timeouts=False,  # a timed-out order may have filled
        )
        if order is None:
            LOG.info(f"[EXCHANGE] no order response for {side} {symbol}")
            return OrderResult()

        result = summarize_order(order)
        LOG.info(
            f"[EXCHANGE] order result {side} {symbol}: "
            f"avg_price={result.avg_price:.5f} filled_qty={result.filled_qty:.5f}"
        )
        return result
