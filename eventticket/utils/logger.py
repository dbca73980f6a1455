import logging
import sys
from pathlib import Path

from loguru import logger

from eventticket.settings import settings


def log_client_info():
    logger.info("Starting eventticket")
    logger.info(f"Version: {settings.version}")
    logger.info(f"RPC url: {settings.rpc_url}")
    logger.info(f"Chain id: {settings.chain_id}")
    logger.info(f"Registry: {settings.eventticket_registry_class}")
    logger.info(f"Contract: {settings.event_ticket_address or 'not configured'}")
    logger.info(f"Debug: {settings.debug}")


def configure_logger() -> None:
    logger.remove()
    log_level: str = "DEBUG" if settings.debug else "INFO"
    formatter = Formatter()
    logger.add(sys.stderr, level=log_level, format=formatter.format)

    if settings.enable_log_to_file:
        logger.add(
            Path(settings.eventticket_data_folder, "logs", "eventticket.log"),
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            level="INFO",
            format=formatter.format,
        )
        logger.add(
            Path(settings.eventticket_data_folder, "logs", "debug.log"),
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            level="DEBUG",
            format=formatter.format,
        )

    logging.getLogger("httpx").handlers = [InterceptHandler()]
    logging.getLogger("httpx").propagate = False
    logging.getLogger("httpcore").handlers = [InterceptHandler()]
    logging.getLogger("httpcore").propagate = False


class Formatter:
    def __init__(self):
        self.padding = 0
        self.minimal_fmt = (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SS}</green> | <level>{level}</level> | "
            "<level>{message}</level>\n"
        )
        if settings.debug:
            self.fmt = (
                "<green>{time:YYYY-MM-DD HH:mm:ss.SS}</green> | "
                "<level>{level: <4}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level>\n"
            )
        else:
            self.fmt = self.minimal_fmt

    def format(self, record):
        function = "{function}".format(**record)
        if function == "emit":  # stdlib logs
            return self.minimal_fmt
        return self.fmt


class InterceptHandler(logging.Handler):
    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.log(level, record.getMessage())
