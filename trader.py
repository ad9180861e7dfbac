import logging
import signal
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import config
from exchange import BUY, SELL, ExchangeClient, base_asset
from indicators import macd, round_down, rsi
from market_cache import MarketDataCache
from positions import PositionTracker

LOG = logging.getLogger("spotbot.trader")

STOP_LOSS = "STOP_LOSS"
TAKE_PROFIT = "TAKE_PROFIT"
SIGNAL_REVERSAL = "SIGNAL_REVERSAL"


# ============================================================
# STRATEGY CONFIG
# ============================================================
@dataclass
class StrategyConfig:
    portfolio: Dict[str, float] = field(default_factory=dict)
    quote_asset: str = "USDT"
    buy_interval: int = 3600
    stop_loss_pct: float = 0.05
    take_profit_pct: float = 0.10
    rsi_period: int = 14
    buy_rsi_threshold: float = 30
    sell_rsi_threshold: float = 70
    macd_short: int = 12
    macd_long: int = 26
    macd_signal: int = 9
    candle_interval: str = "15m"
    candle_limit: int = 50
    volume_threshold: float = 1e7
    refresh_interval: int = 60
    qty_decimals: int = 5

    @classmethod
    def from_config(cls, cfg=config) -> "StrategyConfig":
        return cls(
            portfolio=dict(cfg.PORTFOLIO),
            quote_asset=cfg.QUOTE_ASSET,
            buy_interval=int(cfg.BUY_INTERVAL_SECONDS),
            stop_loss_pct=float(cfg.STOP_LOSS_PCT),
            take_profit_pct=float(cfg.TAKE_PROFIT_PCT),
            rsi_period=int(cfg.RSI_PERIOD),
            buy_rsi_threshold=float(cfg.BUY_RSI_THRESHOLD),
            sell_rsi_threshold=float(cfg.SELL_RSI_THRESHOLD),
            macd_short=int(cfg.MACD_SHORT),
            macd_long=int(cfg.MACD_LONG),
            macd_signal=int(cfg.MACD_SIGNAL),
            candle_interval=cfg.CANDLE_INTERVAL,
            candle_limit=int(cfg.CANDLE_LIMIT),
            volume_threshold=float(cfg.VOLUME_THRESHOLD),
            refresh_interval=int(cfg.REFRESH_INTERVAL),
            qty_decimals=int(cfg.QTY_DECIMALS),
        )

    def validate(self) -> None:
        if not self.portfolio:
            raise ValueError("portfolio is empty")
        for sym, alloc in self.portfolio.items():
            if alloc <= 0:
                raise ValueError(f"allocation for {sym} must be > 0, got {alloc}")
        for name in ("rsi_period", "macd_short", "macd_long", "macd_signal", "candle_limit"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        if self.macd_short >= self.macd_long:
            raise ValueError("macd_short must be smaller than macd_long")
        for name in ("stop_loss_pct", "take_profit_pct"):
            v = getattr(self, name)
            if not 0 < v < 1:
                raise ValueError(f"{name} must be in (0, 1), got {v}")
        if self.buy_interval < 0 or self.refresh_interval < 0:
            raise ValueError("intervals must be >= 0")


# ============================================================
# ENGINE
# ============================================================
class TradingEngine:
    def __init__(
        self,
        client: ExchangeClient,
        strategy: StrategyConfig,
        cache: Optional[MarketDataCache] = None,
        tracker: Optional[PositionTracker] = None,
        notifier: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.strategy = strategy
        self.cache = cache if cache is not None else MarketDataCache(clock=clock)
        self.tracker = tracker if tracker is not None else PositionTracker(strategy.portfolio)
        self.notifier = notifier
        self.clock = clock
        self.running = False
        self._shutdown = False

    # ----------------------------
    # shutdown
    # ----------------------------
    def stop(self) -> None:
        """Ask run() to return after the current tick."""
        self._shutdown = True

    def _handle_shutdown(self, sig, frame):
        LOG.info("shutdown signal received")
        self.stop()

    # ----------------------------
    # helpers
    # ----------------------------
    def _notify(self, text: str) -> None:
        if self.notifier is not None:
            self.notifier(text)

    def _closes(self, symbol: str) -> List[float]:
        s = self.strategy
        return self.cache.recent_closes(
            self.client, symbol, s.candle_interval, s.candle_limit, s.refresh_interval
        )

    def _signals(self, closes: List[float]):
        s = self.strategy
        r = rsi(closes, s.rsi_period)
        _, _, hist = macd(closes, s.macd_short, s.macd_long, s.macd_signal)
        return r, hist

    # ----------------------------
    # FLAT -> IN_POSITION
    # ----------------------------
    def evaluate_entry(self, symbol: str, allocation: float, now: int) -> bool:
        s = self.strategy
        pos = self.tracker.get(symbol)

        if now - pos.last_entry_ts < s.buy_interval:
            return False

        vol = self.cache.quote_volume(self.client, symbol, s.refresh_interval)
        if vol < s.volume_threshold:
            return False

        quote_bal = self.client.get_free_balance(s.quote_asset)
        if quote_bal < allocation:
            return False

        closes = self._closes(symbol)
        if len(closes) < s.macd_long:
            return False

        r, hist = self._signals(closes)
        if not (r <= s.buy_rsi_threshold and hist > 0):
            return False

        price = self.client.get_current_price(symbol)
        if price <= 0:
            return False

        qty = round_down(allocation / price, s.qty_decimals)
        if qty <= 0:
            return False

        result = self.client.place_market_order(symbol, BUY, qty)
        if not result.filled:
            return False

        self.tracker.open_position(symbol, result.avg_price, result.filled_qty, now)
        msg = (
            f"[BUY] {symbol} at {result.avg_price:.4f} qty={result.filled_qty:.5f} "
            f"rsi={r:.2f} macd_hist={hist:+.6f}"
        )
        LOG.info(msg)
        self._notify(msg)
        return True

    # ----------------------------
    # IN_POSITION -> FLAT
    # ----------------------------
    def exit_reason(self, symbol: str, price: float) -> Optional[str]:
        s = self.strategy
        entry = self.tracker.get(symbol).entry_price

        # either form of the target counts, they can differ by one float step
        # (100 * 1.1 == 110.00000000000001, 100 * 1.15 == 114.99999999999999)
        stop = max(entry * (1 - s.stop_loss_pct), entry - entry * s.stop_loss_pct)
        target = min(entry * (1 + s.take_profit_pct), entry + entry * s.take_profit_pct)
        if price <= stop:
            return STOP_LOSS
        if price >= target:
            return TAKE_PROFIT

        closes = self._closes(symbol)
        if len(closes) < s.macd_long:
            return None
        r, hist = self._signals(closes)
        if r >= s.sell_rsi_threshold and hist < 0:
            return SIGNAL_REVERSAL
        return None

    def evaluate_exit(self, symbol: str, now: int) -> Optional[str]:
        pos = self.tracker.get(symbol)
        price = self.client.get_current_price(symbol)
        if price <= 0 or pos.entry_price <= 0:
            return None

        reason = self.exit_reason(symbol, price)
        if reason is None:
            return None

        coin = base_asset(symbol, self.strategy.quote_asset)
        bal = self.client.get_free_balance(coin)
        qty = round_down(bal, self.strategy.qty_decimals)
        if qty <= 0:
            LOG.info(f"[WARN] {reason} for {symbol} but free {coin} balance is {bal}")
            return None

        result = self.client.place_market_order(symbol, SELL, qty)
        if not result.filled:
            LOG.info(f"[WARN] {reason} sell for {symbol} not filled, retrying next tick")
            return None

        entry = pos.entry_price
        self.tracker.close_position(symbol)
        pnl_pct = (result.avg_price / entry - 1) * 100 if entry > 0 else 0.0
        msg = (
            f"[SELL] {reason} {symbol} at {result.avg_price:.4f} qty={result.filled_qty:.5f} "
            f"entry={entry:.4f} pnl={pnl_pct:+.2f}%"
        )
        LOG.info(msg)
        self._notify(msg)
        return reason

    # ----------------------------
    # tick
    # ----------------------------
    def tick(self) -> Dict[str, Optional[str]]:
        """Evaluate every symbol once. Returns symbol -> action taken (or None)."""
        actions: Dict[str, Optional[str]] = {}
        for symbol, allocation in self.strategy.portfolio.items():
            now = int(self.clock())
            try:
                if self.tracker.get(symbol).in_position:
                    actions[symbol] = self.evaluate_exit(symbol, now)
                else:
                    actions[symbol] = BUY if self.evaluate_entry(symbol, allocation, now) else None
            except Exception as e:
                LOG.info(f"[WARN] tick {symbol}: {type(e).__name__} {e}")
                actions[symbol] = None
        return actions

    def heartbeat_lines(self, now: int) -> List[str]:
        open_pos = self.tracker.open_positions()
        lines = [
            f"[SPOTBOT] tick={now} | positions={len(open_pos)}/{len(self.tracker)} | "
            f"cache_entries={len(self.cache)}"
        ]
        for sym, p in open_pos.items():
            age_min = (now - p.last_entry_ts) / 60
            lines.append(f"  - {sym} entry={p.entry_price:.4f} qty={p.qty:.5f} age={age_min:.0f}m")
        if not open_pos:
            lines.append("[SPOTBOT] (no open positions)")
        return lines

    def run(self, tick_seconds: float = config.TICK_SECONDS, heartbeat_seconds: float = config.HEARTBEAT_SECONDS) -> None:
        if self.running:
            LOG.info("[SPOTBOT] engine already running")
            return

        self._shutdown = False
        previous = {}
        if threading.current_thread() is threading.main_thread():
            for sig in (signal.SIGINT, signal.SIGTERM):
                previous[sig] = signal.signal(sig, self._handle_shutdown)

        s = self.strategy
        self.running = True
        LOG.info(
            f"[SPOTBOT] ENGINE STARTING | symbols={list(s.portfolio)} tf={s.candle_interval} "
            f"tick={tick_seconds}s cooldown={s.buy_interval}s sl={s.stop_loss_pct:.2%} tp={s.take_profit_pct:.2%}"
        )

        last_heartbeat = 0
        try:
            while not self._shutdown:
                self.tick()

                now = int(self.clock())
                if now - last_heartbeat >= heartbeat_seconds:
                    last_heartbeat = now
                    for line in self.heartbeat_lines(now):
                        LOG.info(line)

                if self._shutdown:
                    break
                time.sleep(tick_seconds)
        finally:
            for sig, handler in previous.items():
                if handler is not None:
                    signal.signal(sig, handler)
            self.running = False
            LOG.info("[SPOTBOT] ENGINE STOPPED")
