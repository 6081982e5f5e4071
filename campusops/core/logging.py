import sys

from loguru import logger

from campusops.core.config import Settings


def configure_logging(config: Settings) -> None:
    """Replace loguru's default sink with stderr (and an optional rotating file) at the configured level."""
    logger.remove()
    logger.add(sys.stderr, level=config.log_level)
    if config.log_file:
        logger.add(config.log_file, level=config.log_level, rotation="10 MB", retention="10 days")
