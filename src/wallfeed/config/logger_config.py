import os
import sys
from pathlib import Path

from loguru import logger

log_dir = Path(os.getenv("WALLFEED_LOG_DIR", "logs"))
log_file = log_dir / "wallfeed_{time}.log"

logger.remove()
logger.add(sys.stderr, level=os.getenv("WALLFEED_LOG_LEVEL", "INFO"))
logger.add(
    log_file,
    rotation="256 MB",  # roll over once a file reaches 256MB
    retention="10 days",
    compression="zip",
    encoding="utf-8",
    level="DEBUG",
    enqueue=True,
    delay=True,
)
