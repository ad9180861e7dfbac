# config.py — single source of truth. Do NOT assign into this from other files.

ENV_FILE = "info.env"

# symbol -> quote budget for the opening buy
PORTFOLIO = {
    "BTC/USDT": 80.0,
    "ETH/USDT": 40.0,
}
QUOTE_ASSET = "USDT"

TICK_SECONDS = 10
HEARTBEAT_SECONDS = 5 * 60

BUY_INTERVAL_SECONDS = 60 * 60  # re-entry cooldown, anchored to entry time
STOP_LOSS_PCT = 0.05
TAKE_PROFIT_PCT = 0.10

RSI_PERIOD = 14
BUY_RSI_THRESHOLD = 30
SELL_RSI_THRESHOLD = 70

MACD_SHORT = 12
MACD_LONG = 26
MACD_SIGNAL = 9

CANDLE_INTERVAL = "15m"
CANDLE_LIMIT = 50

VOLUME_THRESHOLD = 1e7  # min 24h quote volume
REFRESH_INTERVAL = 60   # cache freshness for volume + candles

QTY_DECIMALS = 5

# Exchange client
REQUEST_RETRIES = 3
RETRY_DELAY_SECONDS = 2
REQUEST_TIMEOUT_MS = 10_000
