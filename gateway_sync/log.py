# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import logging
import sys
from typing import NoReturn

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

def setup_logging(debug: bool = False) -> None:
    """Configure the root logger once for the whole process."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

def fatal(logger: logging.Logger, message: str) -> NoReturn:
    """Log a critical error and exit with status 1."""
    logger.critical(f"🚫 {message}")
    sys.exit(1)
