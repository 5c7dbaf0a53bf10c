"""Process-wide logging setup shared by the API and Celery workers."""

import logging

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install the root handler once; later calls only adjust the level."""
    resolved = (level or settings.log_level).upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger().setLevel(resolved)
    # SQL echo is noisy at INFO; keep engine logs for explicit debugging
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
