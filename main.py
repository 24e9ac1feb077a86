import argparse
import logging

from cutterbot.config import load_settings
from cutterbot.errors import ConfigError, NotifyError
from cutterbot.worker import RunFailed, run_check_once, run_forever, _send_status_message

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="CutterBot: laser cutter availability watcher")
    parser.add_argument("--once", action="store_true", help="Run single check and exit")
    args = parser.parse_args()

    _setup_logging()
    try:
        settings = load_settings()
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    # Startup notice (best-effort)
    try:
        _send_status_message(
            settings,
            text=(
                "CutterBot started.\n"
                f"Mode: {'once' if args.once else 'forever'}\n"
                f"resource={settings.resource_id} interval={settings.check_interval_seconds}s"
            ),
        )
    except NotifyError:
        logger.warning("Failed to send Telegram startup message", exc_info=True)

    try:
        if args.once:
            report = run_check_once(settings)
            logger.info("Run finished: %s", report.stage.value)
            return 0

        run_forever(settings)
        return 0

    except RunFailed:
        # Details are already logged by the worker.
        return 1

    except Exception as e:
        # Crash notice (best-effort)
        try:
            _send_status_message(
                settings,
                text=(
                    "CutterBot crashed.\n"
                    f"Reason: {type(e).__name__}: {e}"
                ),
            )
        except NotifyError:
            logger.warning("Failed to send Telegram crash message", exc_info=True)
        raise

    finally:
        # Shutdown notice (best-effort)
        try:
            _send_status_message(settings, text="CutterBot stopped (process exit).")
        except NotifyError:
            logger.warning("Failed to send Telegram shutdown message", exc_info=True)


if __name__ == "__main__":
    raise SystemExit(main())
