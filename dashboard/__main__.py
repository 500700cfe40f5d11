#!/usr/bin/env python3
"""Main entry point for the Lending Book Dashboard"""

import uvicorn

from dashboard.app import create_app
from lending_book.config import get_config
from lending_book.logging_config import setup_logging


def main():
    """Start the dashboard server"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    app = create_app()

    print("📒 Lending Book Dashboard")
    print(f"💻 Starting on http://localhost:{config.dashboard_port}")
    print(f"📊 Dashboard: http://localhost:{config.dashboard_port}/")
    print(f"🔌 API docs: http://localhost:{config.dashboard_port}/docs")
    print("🛑 Press Ctrl+C to stop")

    uvicorn.run(
        app,
        host="127.0.0.1",
        port=config.dashboard_port,
        reload=False,
        access_log=False
    )


if __name__ == "__main__":
    main()
