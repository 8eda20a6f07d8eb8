"""Root logging setup shared by the API process and scripts."""

import logging
import sys

from app.core.settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging() -> logging.Logger:
    """Configure the root logger once and return the application logger."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    if not any(getattr(h, "_notify_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._notify_handler = True
        root.addHandler(handler)
    root.setLevel(level)

    # SQLAlchemy is chatty at INFO; only surface it when SQL debugging is on
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.sql_debug else logging.WARNING
    )

    return logging.getLogger("app")
