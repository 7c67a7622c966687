"""
Logging setup shared by the API process and Celery workers
"""
import logging

from core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging(level: str = None) -> None:
    """Configure the root logger once; later calls only adjust the level"""
    global _configured

    log_level = (level or settings.LOG_LEVEL).upper()

    if not _configured:
        logging.basicConfig(level=log_level, format=LOG_FORMAT)
        _configured = True
    else:
        logging.getLogger().setLevel(log_level)

    # Quieter third-party loggers
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
