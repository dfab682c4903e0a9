#!/usr/bin/env python3
"""
Day Book Ledger Entry Point

Starts the FastAPI server (port 8090 unless DAYBOOK_API_PORT is set).
"""

import sys

from daybook.api import run_server
from daybook.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Day Book Ledger...")
    print(f"Storage: {config.database_url}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(debug="--reload" in sys.argv)
    except KeyboardInterrupt:
        print("\nShutting down Day Book Ledger...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
