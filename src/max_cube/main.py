import argparse
import asyncio
import signal
from pathlib import Path

import uvloop

from max_cube.const import (
    CUBE_HOST,
    CUBE_PORT,
    ENABLE_EXPORTER,
    EXPORTER_PORT,
    MAX_CUBE_DB_PATH,
    MAX_CUBE_DEBUG,
    MAX_CUBE_VERSION,
    SCHEDULER_START_TASK_NAME,
)
from max_cube.controller import HeatingController
from max_cube.correlation import correlation_context
from max_cube.logging_abstraction import configure_logging, get_logger
from max_cube.metrics.registry import start_metrics_server
from max_cube.scheduler import CronScheduler
from max_cube.storage import SQLiteStore
from max_cube.transport.exceptions import NotConnectedError

logger = get_logger(__name__)


def parse_cli() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="MAX! Cube heating scheduler")
    _ = parser.add_argument("--host", default=CUBE_HOST, help="Cube IP address or hostname")
    _ = parser.add_argument("--port", default=CUBE_PORT, type=int, help="Cube TCP port")
    _ = parser.add_argument("--db", default=MAX_CUBE_DB_PATH, type=Path, help="Path to the schedule database")
    _ = parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args()


async def run(host: str, port: int, db_path: Path) -> None:
    """Connect to the cube, arm persisted jobs and run until SIGINT/SIGTERM."""
    if ENABLE_EXPORTER:
        start_metrics_server(EXPORTER_PORT)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    controller = HeatingController.for_host(host, port)
    async with SQLiteStore(db_path) as store:
        try:
            _ = await controller.connect()
        except NotConnectedError as e:
            # The first job firing retries the handshake
            logger.warning("Cube not reachable at startup", extra={"host": host, "port": port, "reason": e.reason})
        else:
            if (info := controller.cube_info) is not None:
                logger.info(
                    "Cube %s (firmware %s)",
                    info.serial_number,
                    info.firmware_version,
                    extra={"rf_address": info.rf_address, "duty_cycle": info.duty_cycle},
                )

        scheduler = CronScheduler(controller, store)
        load_task = asyncio.create_task(scheduler.load_all(), name=SCHEDULER_START_TASK_NAME)
        _ = await load_task

        await stop.wait()
        logger.info("Stop requested, shutting down...")
        await scheduler.shutdown()
        await controller.disconnect()


def main() -> None:
    """Main entry point for the max-cube service."""
    args = parse_cli()
    debug = args.debug or MAX_CUBE_DEBUG
    _ = configure_logging(debug=debug)
    with correlation_context():
        logger.info("Starting MAX! Cube controller", extra={"version": MAX_CUBE_VERSION})
        if debug:
            logger.info("Debug logging enabled")
        try:
            asyncio.run(run(args.host, args.port, args.db), loop_factory=uvloop.new_event_loop)
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
        except Exception as e:
            logger.exception("Fatal error in main loop", extra={"error": str(e)})
            raise
        else:
            logger.info("MAX! Cube controller stopped gracefully")


if __name__ == "__main__":
    main()
