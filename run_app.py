#!/usr/bin/env python3
"""
Simple runner script for the Flask application.
This script ensures the correct Python path is set and runs the app.
"""

import logging
import sys
from pathlib import Path

# Add the current directory to Python path
current_dir = Path(__file__).parent
sys.path.insert(0, str(current_dir))

from app.logging_config import setup_logging, stop_logging
from config_manager import get_app_config

logger = logging.getLogger(__name__)


if __name__ == "__main__":
    app_config = get_app_config()
    setup_logging(debug=app_config.debug)

    # Import after logging is configured so startup messages are captured
    from app.main import app, VISITS_FILE

    logger.info(f"Starting Flask application on http://{app_config.host}:{app_config.port}")
    logger.info(f"Visit log: {VISITS_FILE}")

    try:
        app.run(
            host=app_config.host,
            port=app_config.port,
            debug=app_config.debug
        )
    finally:
        stop_logging()
