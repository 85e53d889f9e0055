from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from .logging import get_logger
from .util.errors import DeliveryError

LOG = get_logger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
DEFAULT_TIMEOUT_SECONDS = 40.0
PARSE_MODE = "Markdown"


def redact_token(text: str, token: str) -> str:
    if not token:
        return text
    return text.replace(token, "<redacted>")


class TelegramSender:
    """
    Sends one Markdown message to one chat through the Bot API. Single
    attempt; any transport failure or non-200 answer raises DeliveryError.
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        *,
        http_client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        api_base: str = TELEGRAM_API_BASE,
    ) -> None:
        self._token = bot_token
        self._chat_id = chat_id
        self._api_base = api_base.rstrip("/")
        self._http = http_client or httpx.Client(timeout=httpx.Timeout(timeout))
        self._owns_http = http_client is None

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "TelegramSender":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    @property
    def url(self) -> str:
        return f"{self._api_base}/bot{self._token}/sendMessage"

    def payload(self, text: str) -> Dict[str, Any]:
        return {"chat_id": self._chat_id, "text": text, "parse_mode": PARSE_MODE}

    def send(self, text: str) -> None:
        try:
            resp = self._http.post(self.url, json=self.payload(text))
        except httpx.HTTPError as e:
            raise DeliveryError(f"Telegram request failed: {redact_token(str(e), self._token)}") from None

        if resp.status_code != 200:
            body = redact_token(resp.text[:500], self._token)
            raise DeliveryError(f"Telegram API returned status {resp.status_code}: {body}")
        LOG.info("Report delivered", extra={"chat_id": self._chat_id, "length": len(text)})
