import logging
from typing import Optional

from cronrelay.common.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# pika logs every connection state change at INFO; urllib3 logs each webhook connection
NOISY_LOGGERS = ("pika", "urllib3")

def configure_logging(level: Optional[str] = None) -> None:
    lvl_name = (level or settings.log_level or "INFO").upper()
    lvl_value = getattr(logging, lvl_name, logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=lvl_value, format=LOG_FORMAT)
    root.setLevel(lvl_value)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(lvl_value, logging.WARNING))

def get_logger(name: Optional[str] = None) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name or "cronrelay")
