# stratosafe/core/logging.py
import logging

from stratosafe.core.config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # passlib is chatty about bcrypt backend probing
    logging.getLogger("passlib").setLevel(logging.ERROR)
