import logging
import sys

from app.core.config import get_settings


def configure_logging(level: str | None = None) -> None:
    log_level = (level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
