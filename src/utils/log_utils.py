import logging
from logging_loki import LokiHandler
from dotenv import load_dotenv
import os

CONSOLE_FORMAT = '%(asctime)s - %(name)s - [%(levelname)s] - %(message)s'

# Third party loggers that are too chatty at INFO
QUIET_LOGGERS = ("pymongo", "motor", "asyncio")


class NonEmptyTagsFilter(logging.Filter):
    """
    Drops records carrying an empty tag value; Loki rejects empty labels.
    Records without tags pass through.
    """
    def filter(self, record):
        tags = getattr(record, 'tags', None) or {}
        return all(value not in (None, '') for value in tags.values())


class LogUtil:
    def __init__(self, logger_name: str = "botflow_service"):

        # Load environment variables
        load_dotenv()

        self.logger = logging.getLogger(logger_name)
        self.logger.setLevel(logging.DEBUG if os.getenv("DEBUG", "false").lower() == "true" else logging.INFO)

        # Sessions, tests and reloads build several LogUtil on the same logger
        if not self.logger.handlers:
            self._configure_handlers(logger_name)

    def _configure_handlers(self, logger_name: str) -> None:
        loki_url = os.getenv("LOKI_URL", "")
        if loki_url:
            loki_handler = LokiHandler(
                url=loki_url,
                tags={
                    "application": logger_name,
                    "environment": os.getenv("APP_ENV", "production"),
                    "org_id": os.getenv("ORG_ID", "botflow")
                },
                version="1"
            )
            loki_handler.addFilter(NonEmptyTagsFilter())
            self.logger.addHandler(loki_handler)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        self.logger.addHandler(console_handler)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    def _log(self, level: int, service_name: str, message: str):
        self.logger.log(level, message, extra={"tags": {"service_name": service_name}})

    def info(self, service_name: str, message: str):
        self._log(logging.INFO, service_name, message)

    def error(self, service_name: str, message: str):
        self._log(logging.ERROR, service_name, message)

    def warning(self, service_name: str, message: str):
        self._log(logging.WARNING, service_name, message)

    def debug(self, service_name: str, message: str):
        self._log(logging.DEBUG, service_name, message)
