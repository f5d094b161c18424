import logging
import os
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler


def setup_logging(log_dir=None, level=None):
    log_dir = log_dir or os.getenv("LOG_DIR", "logs")
    level = level or os.getenv("LOG_LEVEL", "INFO")

    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    log_file = os.path.join(log_dir, f"bot_{datetime.now().strftime('%Y%m%d')}.log")

    # Rotates at midnight, keeps the last 7 days
    file_handler = TimedRotatingFileHandler(log_file, when="midnight", interval=1, backupCount=7, encoding='utf-8')

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(message)s',
        handlers=[
            file_handler,
            logging.StreamHandler()
        ]
    )
    # httpx logs every Telegram long-poll request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLogger("FreeGamesBot")

logger = setup_logging()
