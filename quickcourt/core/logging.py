import logging

from quickcourt.core.config import settings

_configured = False


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once: console handler, level from LOG_LEVEL."""
    global _configured
    if _configured:
        return

    root_logger = logging.getLogger()
    root_logger.setLevel((level or settings.LOG_LEVEL).upper())

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root_logger.addHandler(console_handler)

    # SQL echo stays off unless explicitly asked for
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
