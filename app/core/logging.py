import logging

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    """Root logger setup; modules log through logging.getLogger(__name__)."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # SQL echo is controlled by the engine, keep the driver loggers quiet
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
