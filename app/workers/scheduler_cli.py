from __future__ import annotations

import argparse
import json
import logging
import time

from app.config import load_config, setup_logging
from app.services.container import ServiceContainer
from app.workers.scheduled_tasks import DETECT_ANOMALIES_TASK

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="solarwatch-scheduler")
    subparsers = parser.add_subparsers(dest="command")

    detect = subparsers.add_parser("detect", help="Run one anomaly detection pass and print the summary")
    detect.add_argument("--unit-id", type=int, default=None, help="Only this unit (default: all ACTIVE units)")

    subparsers.add_parser("status", help="Print the configured jobs")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the nightly scheduler loop, or a one-shot command, without the web server."""
    args = _build_parser().parse_args(argv)

    config = load_config()
    setup_logging(debug=config.DEBUG, log_file=config.log_file or None)

    # One-shot commands must not start the background loop
    run_loop = args.command is None
    container = ServiceContainer.build(config, start_scheduler=run_loop)

    try:
        if args.command == "detect":
            kwargs = {"unit_id": args.unit_id} if args.unit_id is not None else {}
            result = container.scheduler.run_now(DETECT_ANOMALIES_TASK, kwargs=kwargs)
            if result is None or not result.success:
                print(json.dumps({"ok": False, "error": result.error if result else "task not registered"}))
                return 1
            print(json.dumps(result.result, indent=2))
            return 0 if result.result.get("units_failed", 0) == 0 else 2

        if args.command == "status":
            print(json.dumps(container.scheduler.get_status(), indent=2))
            return 0

        logger.info("Scheduler running (press Ctrl+C to stop)")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Stopping scheduler...")
        return 0
    finally:
        try:
            container.shutdown()
        except (RuntimeError, OSError):
            logger.exception("Failed to shut down scheduler cleanly")


if __name__ == "__main__":
    import sys

    raise SystemExit(main(sys.argv[1:]))
