import logging
from config import LOG_FILE, LOG_LEVEL

logging.basicConfig(
    filename=LOG_FILE or None,
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s"
)
