import os

import uvicorn

from logging_config import get_logger, setup_logging

# Setup logging before importing app
setup_logging(log_level=os.getenv("LOG_LEVEL", "DEBUG"), log_file=os.getenv("LOG_FILE", None))
logger = get_logger(__name__)


def main():
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    reload = os.getenv("RELOAD", "false").lower() == "true"
    logger.info(f"Starting presence hub on {host}:{port}")
    # One worker only: the connection registry is per process
    uvicorn.run("app:app", host=host, port=port, reload=reload, workers=1)


if __name__ == "__main__":
    main()
