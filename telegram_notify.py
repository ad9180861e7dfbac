import logging
import threading
import urllib.parse
import urllib.request
from typing import Optional

LOG = logging.getLogger("spotbot.telegram")

API_URL = "https://api.telegram.org/bot{token}/sendMessage"
TIMEOUT_SECONDS = 8


class TelegramNotifier:
    """
    Fill notifications to one Telegram chat.

    Calling the notifier sends in a daemon thread so a slow or failing
    Telegram never holds up a tick.
    """

    def __init__(self, token: str, chat_id: str, timeout: float = TIMEOUT_SECONDS):
        self.token = (token or "").strip()
        self.chat_id = (chat_id or "").strip()
        self.timeout = timeout

    @classmethod
    def from_env(cls, token: Optional[str], chat_id: Optional[str]) -> Optional["TelegramNotifier"]:
        """None when either value is missing: notifications are optional."""
        n = cls(token or "", chat_id or "")
        return n if n.enabled else None

    @property
    def enabled(self) -> bool:
        return bool(self.token and self.chat_id)

    def _request(self, text: str) -> urllib.request.Request:
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        data = urllib.parse.urlencode(payload).encode("utf-8")
        return urllib.request.Request(API_URL.format(token=self.token), data=data, method="POST")

    def send(self, text: str) -> bool:
        if not self.enabled:
            return False
        try:
            with urllib.request.urlopen(self._request(text), timeout=self.timeout) as resp:
                resp.read()
            return True
        except Exception as e:
            # Never crash the bot for Telegram
            LOG.info(f"[WARN] telegram send failed: {type(e).__name__} {e}")
            return False

    def __call__(self, text: str) -> None:
        t = threading.Thread(target=self.send, args=(text,), daemon=True)
        t.start()
