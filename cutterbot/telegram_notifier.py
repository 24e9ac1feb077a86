from __future__ import annotations

import httpx

from cutterbot.errors import NotifyNetworkError, RejectedByServiceError


def send_telegram_message(
    *,
    bot_token: str,
    chat_id: str,
    text: str,
    timeout_seconds: float = 20.0,
    client: httpx.Client | None = None,
) -> None:
    url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
    payload = {
        "chat_id": chat_id,
        "text": text,
        "disable_web_page_preview": True,
    }

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=timeout_seconds)

    try:
        r = client.post(url, json=payload)
    except httpx.HTTPError as e:
        raise NotifyNetworkError(f"Telegram request failed ({type(e).__name__})") from e
    finally:
        if owns_client:
            client.close()

    # Never put the URL into messages: it contains the bot token.
    if r.status_code < 200 or r.status_code >= 300:
        raise RejectedByServiceError(r.status_code, f"Telegram API returned HTTP {r.status_code}: {r.text[:200]}")

    try:
        data = r.json()
    except ValueError as e:
        raise RejectedByServiceError(r.status_code, "Telegram API returned a non-JSON body") from e

    if not isinstance(data, dict):
        raise RejectedByServiceError(r.status_code, f"Telegram API returned unexpected body: {data!r:.200}")

    if not data.get("ok", False):
        raise RejectedByServiceError(r.status_code, f"Telegram API error: {data.get('description', data)}")
