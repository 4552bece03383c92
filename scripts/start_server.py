#!/usr/bin/env python3
import os
import sys
import subprocess
from dotenv import load_dotenv


def main():
    load_dotenv()

    host = os.getenv('HOST', '127.0.0.1')
    port = os.getenv('PORT', '8000')

    if not os.path.exists("app"):
        print("'app' directory not found! Run from the project root.")
        sys.exit(1)

    cmd = [sys.executable, "-m", "uvicorn", "app.main:app", "--reload", "--host", host, "--port", port]

    print(f"Running command: {' '.join(cmd)}")
    print(f"Server will be available at: http://localhost:{port}")
    print(f"API docs will be available at: http://localhost:{port}/docs")
    if os.getenv("CONTEXT_PERSISTENCE_ENABLED", "false").lower() == "true":
        print(f"Context persistence enabled (REDIS_URL={os.getenv('REDIS_URL', 'redis://localhost:6379/0')})")
    print("Press Ctrl+C to stop the server")

    try:
        subprocess.run(cmd)
    except KeyboardInterrupt:
        print("\nServer stopped by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
