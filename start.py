"""Entry point to run the scheduling API."""

import os
import sys
import subprocess
from pathlib import Path

# Load .env file FIRST so settings pick it up in the server process
from dotenv import load_dotenv
env_path = Path(__file__).parent / ".env"
load_dotenv(env_path)
print(f"Loaded environment from: {env_path}")


def main():
    host = os.getenv("HOST", "0.0.0.0")
    port = os.getenv("PORT", "8000")

    print("=" * 50)
    print("Starting Clinic Scheduling Core")
    print(f"- API: http://localhost:{port}")
    print(f"- API Docs: http://localhost:{port}/docs")
    print("=" * 50)

    cwd = os.path.dirname(os.path.abspath(__file__))
    cmd = [sys.executable, "-m", "uvicorn", "app.main:app", "--host", host, "--port", port]
    if os.getenv("APP_ENV", "development") == "development":
        cmd.append("--reload")

    try:
        subprocess.run(cmd, cwd=cwd, env=os.environ.copy(), check=False)
    except KeyboardInterrupt:
        print("Services stopped.")


if __name__ == "__main__":
    main()
