from __future__ import annotations

from unittest.mock import patch

import pytest

import main
from cutterbot.config import Settings
from cutterbot.errors import FetchNetworkError, MissingCredentialError
from cutterbot.worker import RunFailed, RunStage


def _settings() -> Settings:
    return Settings(
        telegram_bot_token="TEST_TOKEN",
        telegram_chat_ids=("1", "2"),
        telegram_admin_chat_id="999",
        check_interval_seconds=1,
        fetch_retry_attempts=1,
        state_file=":memory:",
    )


def _args(once: bool):
    return patch("main.argparse.ArgumentParser.parse_args", return_value=type("Args", (), {"once": once})())


def test_main_sends_start_and_shutdown_messages_in_once_mode() -> None:
    settings = _settings()

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.run_check_once") as run_once,
        patch("main._send_status_message") as send_status,
        _args(once=True),
    ):
        assert main.main() == 0
        run_once.assert_called_once_with(settings)

        # startup + shutdown
        assert send_status.call_count == 2
        assert "CutterBot started" in send_status.call_args_list[0].kwargs["text"]
        assert "CutterBot stopped" in send_status.call_args_list[1].kwargs["text"]


def test_main_returns_nonzero_when_run_fails() -> None:
    settings = _settings()
    failure = RunFailed(RunStage.FETCHING, FetchNetworkError("down"))

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.run_check_once", side_effect=failure),
        patch("main._send_status_message") as send_status,
        _args(once=True),
    ):
        assert main.main() == 1
        # startup + shutdown; the failure itself is reported by the worker
        assert send_status.call_count == 2


def test_main_exits_on_missing_configuration() -> None:
    with (
        patch("main.load_settings", side_effect=MissingCredentialError("Missing required environment variable: X")),
        patch("main.run_check_once") as run_once,
        patch("main._send_status_message") as send_status,
        _args(once=True),
    ):
        assert main.main() == 2
        run_once.assert_not_called()
        send_status.assert_not_called()


def test_main_sends_crash_and_shutdown_messages_on_error() -> None:
    settings = _settings()

    with (
        patch("main.load_settings", return_value=settings),
        patch("main.run_forever", side_effect=RuntimeError("boom")),
        patch("main._send_status_message") as send_status,
        _args(once=False),
    ):
        with pytest.raises(RuntimeError):
            main.main()

        # startup + crash + shutdown
        assert send_status.call_count == 3
        assert "CutterBot started" in send_status.call_args_list[0].kwargs["text"]
        assert "crashed" in send_status.call_args_list[1].kwargs["text"]
        assert "CutterBot stopped" in send_status.call_args_list[2].kwargs["text"]
