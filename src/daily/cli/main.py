# src/daily/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts the service loop (reset timer,
reminder delivery) in a background thread, then runs the console REPL in the
main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import attach_presenter, create_initial_state
from ..config import get_settings
from ..connectors.background import start_services_in_background
from ..connectors.console_connector import ConsolePresenter, run_console_loop
from ..logging_setup import level_from_name, setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        store = getattr(state, "task_store", None)
        if store is not None and hasattr(store, "close"):
            store.close()
    except Exception:
        logger.debug("Task store close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    console_level = level_from_name(getattr(settings, "log_level", "INFO"))
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    state = create_initial_state(settings=settings)
    attach_presenter(state, ConsolePresenter(state))

    runner = start_services_in_background(state)
    if runner is None:
        logger.error("Could not start background services; exiting.")
        _shutdown(state)
        return

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
        if not settings.console_enabled:
            signal.signal(signal.SIGINT, _handle_signal)
    except (ValueError, OSError, AttributeError):
        # Some platforms may not support SIGTERM, etc.
        pass

    try:
        if settings.console_enabled:
            run_console_loop(state, runner.run)
            stop_main.set()
        else:
            logger.info("Console disabled. Running reset timer and reminders only. Press Ctrl+C to stop.")
            stop_main.wait()

    finally:
        runner.stop()
        runner.join(timeout=10.0)
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
