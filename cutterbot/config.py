from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from cutterbot.errors import ConfigError, MissingCredentialError
from cutterbot.schedule import DEFAULT_BASE_URL


def _parse_chat_id(raw: str, name: str) -> str:
    # Telegram allows numeric IDs; groups/supergroups can be negative.
    try:
        int(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid {name} value: {raw!r}. Expected integer chat id.") from e

    if raw == "0":
        raise ConfigError(f"Invalid {name} value: '0' is not a valid chat id")
    return raw


def _parse_telegram_chat_ids(raw: str) -> tuple[str, ...]:
    # TELEGRAM_CHAT_ID supports a single value or a comma-separated list.
    # Examples:
    #   TELEGRAM_CHAT_ID=123456789
    #   TELEGRAM_CHAT_ID=123456789,-1001234567890
    parts = [p.strip() for p in raw.split(",")]
    parts = [p for p in parts if p]

    seen: set[str] = set()
    result: list[str] = []
    for p in parts:
        _parse_chat_id(p, "TELEGRAM_CHAT_ID")
        if p in seen:
            continue
        seen.add(p)
        result.append(p)

    if not result:
        raise ConfigError("TELEGRAM_CHAT_ID is empty. Provide at least one chat id.")

    return tuple(result)


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    telegram_chat_ids: tuple[str, ...]

    # Operator chat for run failures and start/stop messages. None disables them.
    telegram_admin_chat_id: str | None = None

    resource_id: str = "axwzr3i57yba"
    api_base_url: str = DEFAULT_BASE_URL
    resource_name: str = "Laser cutter"
    facility_name: str = "Oodi"
    booking_url: str | None = None

    check_interval_seconds: int = 600

    # How many times a fetch is attempted before the run fails.
    fetch_retry_attempts: int = 2
    http_timeout_seconds: float = 20.0

    # Where we store identities of slots known to be free
    state_file: str = "state.json"


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise MissingCredentialError(f"Missing required environment variable: {name}")
    return value


def _int_env(name: str, default: str, *, minimum: int) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}")
    return value


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    check_interval_seconds = _int_env("CHECK_INTERVAL_SECONDS", "600", minimum=1)
    fetch_retry_attempts = _int_env("FETCH_RETRY_ATTEMPTS", "2", minimum=1)

    timeout_raw = os.getenv("HTTP_TIMEOUT_SECONDS", "20")
    try:
        http_timeout_seconds = float(timeout_raw)
    except ValueError as e:
        raise ConfigError(f"HTTP_TIMEOUT_SECONDS must be a number, got {timeout_raw!r}") from e
    if http_timeout_seconds <= 0:
        raise ConfigError("HTTP_TIMEOUT_SECONDS must be > 0")

    admin_raw = (os.getenv("TELEGRAM_ADMIN_CHAT_ID") or "").strip()
    admin_chat_id = _parse_chat_id(admin_raw, "TELEGRAM_ADMIN_CHAT_ID") if admin_raw else None

    return Settings(
        telegram_bot_token=_require("TELEGRAM_BOT_TOKEN"),
        telegram_chat_ids=_parse_telegram_chat_ids(_require("TELEGRAM_CHAT_ID")),
        telegram_admin_chat_id=admin_chat_id,
        resource_id=os.getenv("RESOURCE_ID", "axwzr3i57yba"),
        api_base_url=os.getenv("RESPA_API_URL", DEFAULT_BASE_URL),
        resource_name=os.getenv("RESOURCE_NAME", "Laser cutter"),
        facility_name=os.getenv("FACILITY_NAME", "Oodi"),
        booking_url=os.getenv("BOOKING_URL") or None,
        check_interval_seconds=check_interval_seconds,
        fetch_retry_attempts=fetch_retry_attempts,
        http_timeout_seconds=http_timeout_seconds,
        state_file=os.getenv("STATE_FILE", "state.json"),
    )
