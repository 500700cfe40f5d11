#!/usr/bin/env python3
"""
Lending Book Entry Point

Starts the FastAPI server with the daily delinquency accrual scheduler.
"""

import sys

import uvicorn

from lending_book.api import create_app
from lending_book.config import get_config
from lending_book.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)

    print("📒 Starting Lending Book...")
    print("💰 All financial calculations use Decimal precision")
    print(f"⏰ Delinquency accrual runs daily at {config.accrual_hour:02d}:{config.accrual_minute:02d}")
    print(f"🌐 API available at: http://localhost:{config.api_port}/api")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        uvicorn.run(
            create_app(),
            host=config.api_host,
            port=config.api_port,
            log_level="info"
        )
    except KeyboardInterrupt:
        print("\n👋 Shutting down Lending Book...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
