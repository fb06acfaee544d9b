import os
from loguru import logger
from app.core.config import settings

# Base directory for logs
LOG_DIR = settings.LOG_DIR
os.makedirs(LOG_DIR, exist_ok=True)

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"

# Main gateway log
APP_LOG_PATH = os.path.join(LOG_DIR, "app.log")
logger.add(
    APP_LOG_PATH,
    rotation="10 MB",
    level=settings.LOG_LEVEL,
    enqueue=True,
    backtrace=True,
    diagnose=False,
    format=LOG_FORMAT,
)

# Offline fallbacks, evictions and storage failures
OFFLINE_LOG_PATH = os.path.join(LOG_DIR, "offline.log")
logger.add(
    OFFLINE_LOG_PATH,
    rotation="10 MB",
    level="INFO",
    enqueue=True,
    backtrace=True,
    diagnose=False,
    format=LOG_FORMAT,
    filter=lambda record: record["extra"].get("component") == "offline",
)

# Startup log
STARTUP_LOG_PATH = os.path.join(LOG_DIR, "startup", "startup.log")
os.makedirs(os.path.dirname(STARTUP_LOG_PATH), exist_ok=True)
logger.add(
    STARTUP_LOG_PATH,
    rotation="10 MB",
    level="INFO",
    enqueue=True,
    format=LOG_FORMAT,
)


def get_logger(component: str | None = None):
    """Return the global logger, optionally bound to a component."""
    if component:
        return logger.bind(component=component)
    return logger
