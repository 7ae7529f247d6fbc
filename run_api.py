#!/usr/bin/env python3
"""
Entry point for the Digital Library API server.
"""

import sys
from pathlib import Path

import structlog
import uvicorn

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.config import config
from utilities.config import config as library_config
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)


def main():
    """Run the API server under uvicorn."""
    setup_logging(
        log_level=library_config.log_level,
        log_format=library_config.log_format,
        debug=library_config.debug
    )
    logger.info(
        "Starting Digital Library API server",
        host=config.host,
        port=config.port,
        environment=config.environment,
        database=library_config.mongodb_database,
        uploads=str(library_config.get_upload_root())
    )

    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=library_config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
