import math
from typing import List, Sequence, Tuple


# ============================================================
# INDICATORS (NO NUMPY)
# ============================================================
def ema(values: Sequence[float], period: int) -> List[float]:
    """
    EMA seeded with the SMA of the first `period` values.

    Output is aligned to the end of the input: out[0] belongs to
    values[period - 1], so len(out) == len(values) - period + 1.
    Returns [] when there is not enough data.
    """
    if period <= 0 or len(values) < period:
        return []

    k = 2.0 / (period + 1.0)
    prev = sum(values[:period]) / period
    out = [prev]
    for v in values[period:]:
        prev = v * k + prev * (1 - k)
        out.append(prev)
    return out


def _left_pad(series: List[float], length: int) -> List[float]:
    if len(series) >= length:
        return series
    return [0.0] * (length - len(series)) + series


def macd(
    closes: Sequence[float],
    short_period: int,
    long_period: int,
    signal_period: int,
) -> Tuple[float, float, float]:
    """
    Returns (macd, signal, histogram), last value of each series.

    The shorter EMA series are left-padded with zeros before subtracting.
    That distorts the first few values of the MACD line, only the last
    value is ever consumed.
    """
    fast = ema(closes, short_period)
    slow = ema(closes, long_period)
    if not fast or not slow:
        return 0.0, 0.0, 0.0

    n = max(len(fast), len(slow))
    fast = _left_pad(fast, n)
    slow = _left_pad(slow, n)
    line = [f - s for f, s in zip(fast, slow)]

    signal = ema(line, signal_period)
    if not signal:
        return 0.0, 0.0, 0.0
    signal = _left_pad(signal, len(line))
    hist = [m - s for m, s in zip(line, signal)]

    return line[-1], signal[-1], hist[-1]


def rsi(closes: Sequence[float], period: int) -> float:
    """Simple-average RSI over the last `period` deltas. 50 when data is short."""
    if period <= 0 or len(closes) < period + 1:
        return 50.0

    gains = 0.0
    losses = 0.0
    for i in range(period):
        d = closes[-1 - i] - closes[-2 - i]
        if d > 0:
            gains += d
        else:
            losses -= d

    avg_gain = gains / period
    avg_loss = losses / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def round_down(value: float, decimals: int) -> float:
    p = 10 ** decimals
    return math.floor(value * p) / p
