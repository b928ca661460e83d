import asyncio
import logging
import socket
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Disable verbose httpx/httpcore logging BEFORE any imports
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

import uvicorn

from .api import create_app
from .bot import BotCoordinator
from .config import Settings, load_settings, validate_settings

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure logging with both console and file output."""
    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    root_logger.addHandler(console_handler)

    # Rotating, max 10MB per file, keep 5 backups
    try:
        file_handler = RotatingFileHandler(
            logs_dir / "bot.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
    except OSError as e:
        logger.warning("Failed to set up file logging: %s", e)
    else:
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )
        root_logger.addHandler(file_handler)
        logger.info("Logging to file: %s", logs_dir / "bot.log")

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("discord.gateway").setLevel(logging.WARNING)


def _is_port_in_use(host: str, port: int) -> bool:
    """Check if a port is already in use."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return False
        except OSError:
            return True


async def run_api(coordinator: BotCoordinator, settings: Settings) -> None:
    """Run the health server. The bot keeps running if it cannot start."""
    if _is_port_in_use(settings.api_host, settings.api_port):
        logger.error(
            "Port %s is already in use; health server disabled. Change PORT in your .env file.",
            settings.api_port,
        )
        return

    app = create_app(coordinator, settings)
    config = uvicorn.Config(
        app=app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="warning",
        loop="asyncio",
    )
    server = uvicorn.Server(config)
    logger.info("Health server listening on %s:%s", settings.api_host, settings.api_port)

    try:
        await server.serve()
    except SystemExit as e:
        # uvicorn calls sys.exit() on startup failure
        if e.code != 0:
            logger.error("Health server failed to start (exit code %s)", e.code)
    except OSError as e:
        logger.error("Health server failed to bind to %s:%s: %s", settings.api_host, settings.api_port, e)


async def main_async() -> None:
    configure_logging()

    try:
        settings = load_settings()
        validate_settings(settings)
    except RuntimeError as e:
        logger.error("%s", e)
        sys.exit(1)
    logger.info("Configuration validation passed")
    for feature in settings.disabled_features():
        logger.info("Disabled: %s", feature)

    coordinator = BotCoordinator(settings)
    api_task = asyncio.create_task(run_api(coordinator, settings), name="uvicorn-server")

    try:
        await coordinator.start_discord()
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("Fatal error in Discord bot")
        raise
    finally:
        try:
            await coordinator.shutdown()
        except Exception as e:
            logger.warning("Error during coordinator shutdown: %s", e)

        if not api_task.done():
            api_task.cancel()
            try:
                await asyncio.wait_for(asyncio.gather(api_task, return_exceptions=True), timeout=10.0)
            except asyncio.TimeoutError:
                logger.warning("Shutdown timeout, health server may not have stopped cleanly")


def main() -> None:
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        logging.info("Interrupted, shutting down cleanly.")


if __name__ == "__main__":
    main()
