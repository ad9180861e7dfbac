import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

import config
from exchange import ExchangeClient, make_exchange
from market_cache import MarketDataCache
from positions import PositionTracker
from telegram_notify import TelegramNotifier
from trader import StrategyConfig, TradingEngine

LOG = logging.getLogger("spotbot")

BASE_DIR = Path(__file__).resolve().parent


# ------------------------------------------------------------
# OUTPUT / LOGGING
# ------------------------------------------------------------
def setup_logging(level: int = logging.INFO) -> None:
    sys.stdout.reconfigure(line_buffering=True)
    LOG.setLevel(level)
    if not LOG.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s", "%H:%M:%S"))
        LOG.addHandler(handler)


# ------------------------------------------------------------
# ENV
# ------------------------------------------------------------
def load_credentials(env_file: str = config.ENV_FILE):
    load_dotenv(str(BASE_DIR / env_file))

    api_key = os.getenv("BINANCE_API_KEY", "").strip()
    if not api_key:
        raise RuntimeError(f"Missing BINANCE_API_KEY in {env_file}")

    api_secret = os.getenv("BINANCE_API_SECRET", "").strip()
    if not api_secret:
        raise RuntimeError(f"Missing BINANCE_API_SECRET in {env_file}")

    return api_key, api_secret


def load_notifier() -> Optional[TelegramNotifier]:
    # call after load_credentials, the env file is already loaded
    notifier = TelegramNotifier.from_env(os.getenv("TELEGRAM_BOT_TOKEN"), os.getenv("TELEGRAM_CHAT_ID"))
    LOG.info(f"[SPOTBOT] telegram notifications {'on' if notifier else 'off'}")
    return notifier


def build_engine(
    client: ExchangeClient,
    strategy: StrategyConfig,
    notifier: Optional[TelegramNotifier] = None,
) -> TradingEngine:
    return TradingEngine(
        client=client,
        strategy=strategy,
        cache=MarketDataCache(),
        tracker=PositionTracker(strategy.portfolio),
        notifier=notifier,
    )


def main():
    setup_logging()

    strategy = StrategyConfig.from_config(config)
    strategy.validate()

    api_key, api_secret = load_credentials()
    client = ExchangeClient(make_exchange(api_key, api_secret))

    if not client.ping():
        raise RuntimeError("Binance ping failed, not starting")
    LOG.info("[SPOTBOT] Binance ping ok. Starting the bot...")

    engine = build_engine(client, strategy, load_notifier())
    engine.run()


if __name__ == "__main__":
    main()
