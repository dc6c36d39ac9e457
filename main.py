"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           main.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Service entry point. Loads configuration and environment,
                sets up logging and runs the intake watchers until
                interrupted.
------------------------------------------------------------------------------
"""

import argparse
import signal
import threading
from pathlib import Path

from dotenv import load_dotenv

from papermind.application import PaperMindApp
from papermind.config import AppConfig
from papermind.logger import get_logger, setup_logging


def main() -> None:
    """
    PaperMind Entry Point.
    Initializes infrastructure and runs the watchers headless.
    """
    parser = argparse.ArgumentParser(description="PaperMind - AI document intake service")
    parser.add_argument("-P", "--profile", type=str, help="Application profile for isolation (e.g. 'dev', 'tax')")
    parser.add_argument("--data-dir", type=str, help="Override the data directory for this run")
    parser.add_argument("--once", action="store_true", help="Run one consume scan and wait for processing")
    args = parser.parse_args()

    # API keys may live in a .env next to the working directory
    load_dotenv(Path.cwd() / ".env")

    app_config = AppConfig(profile=args.profile)
    if args.data_dir:
        app_config.set_data_dir(args.data_dir)

    setup_logging(
        level=app_config.get_log_level(),
        log_file=str(app_config.get_log_file_path()),
        component_levels=app_config.get_log_components(),
    )
    logger = get_logger("core")
    logger.info(f"PaperMind started (Profile: {args.profile or 'default'})")

    app = PaperMindApp(app_config)

    if args.once:
        try:
            ingested = app.consume_watcher.scan_once()
            app.runner.wait_idle()
            logger.info(f"Single scan finished, {ingested} file(s) ingested")
        finally:
            app.shutdown()
        return

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    app.start_watchers()
    try:
        while not stop.is_set():
            stop.wait(1.0)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        app.shutdown()


if __name__ == "__main__":
    main()
