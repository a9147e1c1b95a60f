"""
Entry point: python -m local_llm_server

Builds the provider, chat service, router and listener once, serves until
SIGINT/SIGTERM, then shuts everything down.
"""
import asyncio
import logging
import signal
import sys
from pathlib import Path

from .config import Settings
from .errors import BindError
from .llm import create_provider
from .router import Router
from .server import LocalHTTPServer
from .service import ChatService


def setup_logging(settings: Settings) -> logging.Logger:
    """Configure logging with console and optional file handlers."""
    level_name = "DEBUG" if settings.debug_logging else settings.log_level.upper()
    log_level = getattr(logging, level_name, logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.log_path:
        try:
            log_path = Path(settings.log_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            root_logger.info("Logging to file: %s", log_path)
        except OSError as e:
            root_logger.error("Failed to set up file logging: %s", e)

    return logging.getLogger("local_llm_server")


async def serve(settings: Settings) -> int:
    logger = logging.getLogger("local_llm_server")

    provider = create_provider(settings)
    logger.info("Provider: %s", provider.provider_name)
    logger.info("Model: %s", provider.model_name)
    await provider.initialize()

    service = ChatService(provider, settings)
    server = LocalHTTPServer(Router(service), host=settings.host, port=settings.port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops; Ctrl+C still raises KeyboardInterrupt
            pass

    try:
        await server.start()
    except BindError as e:
        logger.error("Server not started: %s", e)
        await provider.shutdown()
        return 1

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down")
        await server.stop()
        await provider.shutdown()
    return 0


def main() -> None:
    settings = Settings()
    setup_logging(settings)
    try:
        code = asyncio.run(serve(settings))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
