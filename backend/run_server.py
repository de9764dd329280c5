#!/usr/bin/env python3
"""
API server runner

Loads .env from the repository root, then serves main:app with uvicorn.

Usage:
    python run_server.py                  # 0.0.0.0:8000
    python run_server.py --port 5000
    python run_server.py --reload         # auto-reload for development
"""
import argparse
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)


def main():
    parser = argparse.ArgumentParser(description="Run the model hub API server")
    parser.add_argument('--host', default='0.0.0.0')
    parser.add_argument('--port', type=int, default=8000)
    parser.add_argument('--reload', action='store_true', help='Reload on code changes')
    args = parser.parse_args()

    from config import get_settings
    settings = get_settings()

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
