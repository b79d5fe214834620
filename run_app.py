#!/usr/bin/env python3
"""
Simple runner script for the resume slot store.
This script ensures the correct Python path is set and runs the app.
"""

import sys
from pathlib import Path

# Add the current directory to Python path
current_dir = Path(__file__).parent
sys.path.insert(0, str(current_dir))

from config_manager import get_app_config, get_store_config
from app.logging_config import setup_logging, stop_logging
from app.main import create_app, close_store


def main() -> None:
    app_config = get_app_config()
    setup_logging(app_config.debug)

    store_config = get_store_config()
    print("🚀 Starting resume slot store...")
    print(f"📁 Working directory: {current_dir}")
    print(f"🗄️  Store backend: {store_config.backend} ({store_config.data_dir})")

    app = create_app()
    try:
        app.run(
            host=app_config.host,
            port=app_config.port,
            debug=app_config.debug
        )
    finally:
        close_store(app)
        stop_logging()


if __name__ == "__main__":
    main()
