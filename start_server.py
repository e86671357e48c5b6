#!/usr/bin/env python3
"""
Startup script for the Task Manager API.

Reads HOST, PORT, RELOAD, WORKERS and LOG_LEVEL from the environment (or .env)
and hands them to uvicorn.
"""

import os

import uvicorn
from dotenv import load_dotenv


def main():
    load_dotenv()

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("RELOAD", "false").lower() == "true"
    workers = int(os.getenv("WORKERS", "1"))
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    if workers > 1:
        # Rate limit counters are per process unless a shared store is installed
        print("Warning: rate limits are counted per worker process")

    print(f"Starting Task Manager API on {host}:{port} (reload={reload}, workers={workers})")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=reload,
        workers=1 if reload else workers,
        log_level=log_level,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
