import logging
import sys

# third-party loggers that are too chatty at INFO
QUIET_LOGGERS = (
    "uvicorn.access",  # replaced by our own access line, see middleware.py
    "redis",
    "httpx",
)


def setup_logging(level: str = "INFO", access_log: bool = True) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if not access_log:
        logging.getLogger("ranking_service.access").setLevel(logging.WARNING)
