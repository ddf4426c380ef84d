import logging
import sys

from loguru import logger

from clinic_admin.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging() -> None:
    """Configure stdlib logging for the HTTP layer and loguru for the domain layer"""
    level = settings.LOG_LEVEL.upper()

    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stdout)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DEBUG else logging.WARNING)

    logger.remove()
    logger.add(sys.stdout, level=level, backtrace=False, diagnose=False)
