import logging
import sys

from realty.core.config import settings


def setup_logging() -> None:
    """
    Configure the root logger. Called once from realty.main at startup.
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s [%(levelname)s] %(message)s",
        stream=sys.stdout,
    )
    # Silence noisy libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
