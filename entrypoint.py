import uvicorn
import os
from logging_config import setup_logging

# Setup logging before importing app
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)

from constants import APP_ENV
from logging_config import get_logger

logger = get_logger(__name__)


def main() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    logger.info(f"Starting relay server on {host}:{port} ({APP_ENV})")
    # Reloading restarts the process, which discards every room
    uvicorn.run("app:app", host=host, port=port, reload=APP_ENV == "development")


if __name__ == "__main__":
    main()
