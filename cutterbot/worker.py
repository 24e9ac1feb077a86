from __future__ import annotations

import datetime as dt
import enum
import logging
import time
from dataclasses import dataclass

from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from cutterbot.config import Settings
from cutterbot.diff import AvailabilityDiff, compute_diff
from cutterbot.domain import Slot
from cutterbot.errors import CutterBotError, FetchNetworkError, HttpStatusError, NotifyError
from cutterbot.messages import render_new_slots
from cutterbot.schedule import HORIZON, fetch_slots
from cutterbot.state_file import load_state, save_state
from cutterbot.telegram_notifier import send_telegram_message

logger = logging.getLogger(__name__)


class RunStage(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    DIFFING = "diffing"
    NOTIFYING = "notifying"
    PERSISTING = "persisting"
    DONE = "done"


class RunFailed(CutterBotError):
    """A run stopped in ``stage``; the original error is kept as ``cause``."""

    def __init__(self, stage: RunStage, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Run failed while {stage.value} ({type(cause).__name__}: {cause})")


@dataclass(frozen=True)
class RunReport:
    stage: RunStage
    window_start: dt.datetime
    window_end: dt.datetime
    diff: AvailabilityDiff
    messages_sent: int


def _broadcast_telegram(settings: Settings, text: str) -> None:
    errors: list[tuple[str, Exception]] = []

    for chat_id in settings.telegram_chat_ids:
        try:
            send_telegram_message(
                bot_token=settings.telegram_bot_token,
                chat_id=chat_id,
                text=text,
                timeout_seconds=settings.http_timeout_seconds,
            )
        except NotifyError as e:
            # Keep sending to the other chat_ids, fail afterwards.
            logger.warning("Failed to send telegram message to chat_id=%s (%s: %s)", chat_id, type(e).__name__, e)
            errors.append((chat_id, e))

    if errors:
        failed = ", ".join([cid for cid, _ in errors])
        raise NotifyError(f"Failed to send telegram message to some recipients: {failed}") from errors[0][1]


def _send_status_message(settings: Settings, text: str) -> None:
    # Operator-only messages; silently disabled without an admin chat.
    if settings.telegram_admin_chat_id is None:
        return
    send_telegram_message(
        bot_token=settings.telegram_bot_token,
        chat_id=settings.telegram_admin_chat_id,
        text=text,
        timeout_seconds=settings.http_timeout_seconds,
    )


def _short_exc(retry_state: RetryCallState) -> str | None:
    if retry_state.outcome is None or not retry_state.outcome.failed:
        return None
    exc = retry_state.outcome.exception()
    if exc is None:
        return None
    msg = str(exc).strip()
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__


def _log_after_attempt(retry_state: RetryCallState) -> None:
    if retry_state.outcome is not None and retry_state.outcome.failed:
        logger.warning("Fetch attempt %s failed (%s)", retry_state.attempt_number, _short_exc(retry_state))


def _log_before_sleep(retry_state: RetryCallState) -> None:
    sleep_seconds = getattr(retry_state.next_action, "sleep", None)
    if sleep_seconds is None:
        logger.info("Retrying fetch (attempt %s)", retry_state.attempt_number + 1)
        return
    logger.info("Retrying fetch (attempt %s) in %.0f s", retry_state.attempt_number + 1, sleep_seconds)


def _fetch_with_retry(settings: Settings, now: dt.datetime) -> list[Slot]:
    # Only transient errors are retried; a changed wire format will not fix itself.
    decorated = retry(
        stop=stop_after_attempt(settings.fetch_retry_attempts),
        wait=wait_exponential(multiplier=2, min=2, max=8),
        retry=retry_if_exception_type((FetchNetworkError, HttpStatusError)),
        after=_log_after_attempt,
        before_sleep=_log_before_sleep,
        reraise=True,
    )(fetch_slots)

    return decorated(
        base_url=settings.api_base_url,
        resource_id=settings.resource_id,
        now=now,
        horizon=HORIZON,
        timeout_seconds=settings.http_timeout_seconds,
    )


def _execute_run(settings: Settings, now: dt.datetime) -> RunReport:
    window_end = now + HORIZON
    stage = RunStage.IDLE

    try:
        stage = RunStage.FETCHING
        current = _fetch_with_retry(settings, now)

        stage = RunStage.DIFFING
        previous = load_state(settings.state_file)
        diff = compute_diff(previous, current)
        logger.info(
            "Slots: fetched=%d previous_free=%d current_free=%d new=%d gone=%d",
            len(current),
            len(previous),
            len(diff.next_state),
            len(diff.new_available),
            len(diff.newly_unavailable),
        )

        messages_sent = 0
        if diff.new_available:
            stage = RunStage.NOTIFYING
            messages = render_new_slots(
                diff.events(),
                resource_name=settings.resource_name,
                facility_name=settings.facility_name,
                booking_url=settings.booking_url,
            )
            for text in messages:
                _broadcast_telegram(settings, text)
                messages_sent += 1
            logger.info("Telegram notification sent (%d new slots, %d messages)", len(diff.new_available), messages_sent)

        stage = RunStage.PERSISTING
        save_state(settings.state_file, diff.next_state, resource_id=settings.resource_id)
        logger.info("State saved to %s (%d free slots)", settings.state_file, len(diff.next_state))

    except CutterBotError as e:
        logger.error(
            "Run failed: resource=%s window=[%s, %s) stage=%s (%s: %s)",
            settings.resource_id,
            now.isoformat(),
            window_end.isoformat(),
            stage.value,
            type(e).__name__,
            e,
        )
        raise RunFailed(stage, e) from e

    return RunReport(
        stage=RunStage.DONE,
        window_start=now,
        window_end=window_end,
        diff=diff,
        messages_sent=messages_sent,
    )


def run_check_once(settings: Settings, *, now: dt.datetime | None = None) -> RunReport:
    """One fetch -> diff -> notify -> persist cycle.

    The new state is saved only after every notification went out, so a failed
    send means the same slots are announced again on the next run rather than lost.
    """
    if now is None:
        now = dt.datetime.now(dt.timezone.utc)

    try:
        return _execute_run(settings, now)
    except RunFailed as e:
        try:
            _send_status_message(
                settings,
                text=(
                    "Availability check failed.\n"
                    f"Resource: {settings.resource_name} ({settings.resource_id})\n"
                    f"Stage: {e.stage.value}\n"
                    f"Reason: {type(e.cause).__name__}: {e.cause}"
                ),
            )
        except NotifyError:
            logger.warning("Failed to send telegram status message", exc_info=True)
        raise


def run_forever(settings: Settings) -> None:
    logger.info("Worker started. Interval=%ss", settings.check_interval_seconds)
    while True:
        try:
            run_check_once(settings)
        except RunFailed as e:
            # Already logged with full context in run_check_once(); the next run retries.
            logger.error("Check failed in run_forever (stage=%s)", e.stage.value)
        except Exception:
            # Unexpected bug: fail this run only, the loop keeps going.
            logger.exception("Check failed in run_forever with an unexpected error")
        time.sleep(settings.check_interval_seconds)
