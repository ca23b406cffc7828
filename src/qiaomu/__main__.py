"""Main entry point for the learning core."""
import asyncio
import logging
import signal

from qiaomu.app import QiaomuApp
from qiaomu.config import APP_NAME, ensure_directories
from qiaomu.logging_config import setup_logging

logger = logging.getLogger(__name__)


async def shutdown(sig, loop):
    """Cleanup tasks tied to the service's shutdown."""
    logger.info(f"Received exit signal {sig.name}...")

    tasks = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
    for task in tasks:
        task.cancel()

    logger.info(f"Cancelling {len(tasks)} outstanding tasks")
    await asyncio.gather(*tasks, return_exceptions=True)


def handle_exception(loop, context):
    """Handle exceptions in the event loop."""
    msg = context.get("exception", context["message"])
    logger.error(f"Caught exception: {msg}")


async def main() -> None:
    """Run the application until it is interrupted."""
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(shutdown(s, loop)))

    loop.set_exception_handler(handle_exception)

    app = QiaomuApp()
    try:
        logger.info("Starting application...")
        await app.start()

        # Keep the application running
        while True:
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                break
    finally:
        logger.info("Cleaning up...")
        await app.stop()


def run() -> None:
    """Console script entry point."""
    ensure_directories()
    setup_logging(f"Starting {APP_NAME} ...")

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    run()
