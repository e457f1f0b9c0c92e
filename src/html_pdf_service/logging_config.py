import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

Log = logging.Logger | logging.LoggerAdapter


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the process. LOG_LEVEL env var overrides INFO."""
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


class RequestLogger(logging.LoggerAdapter):
    """Logger carrying a request id as a value.

    A new adapter is built per request and handed to every stage, so the
    shared module loggers are never mutated.
    """

    def __init__(self, logger: logging.Logger, request_id: str) -> None:
        super().__init__(logger, {"request_id": request_id})

    @property
    def request_id(self) -> str:
        return str(self.extra["request_id"])  # type: ignore[index]

    def process(self, msg, kwargs):
        kwargs.setdefault("extra", {}).update(self.extra)
        return f"[{self.request_id}] {msg}", kwargs
