"""
Logging configuration.
Uvicorn and storefront logger levels; gateway and decryption failures use logger.exception.
"""
import logging
import sys


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
) -> None:
    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stdout,
        force=True,
    )
    # Keep uvicorn access / error loggers in line with the app
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        log = logging.getLogger(name)
        if level is not None:
            log.setLevel(level)
    logging.getLogger("storefront").setLevel(level)
    # stripe logs every request at INFO
    logging.getLogger("stripe").setLevel(logging.WARNING)
