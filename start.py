"""Entry point to run the Medibook API (reminder scheduler runs in-process)."""

import os
from pathlib import Path

# Load .env file FIRST so settings pick it up
from dotenv import load_dotenv
env_path = Path(__file__).parent / ".env"
load_dotenv(env_path)
print(f"✅ Loaded environment from: {env_path}")

import uvicorn


def main():
    print("=" * 50)
    print("Starting Medibook Scheduling API")
    print("=" * 50)

    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("APP_ENV", "development") == "development"

    print(f"- API: http://localhost:{port}")
    print(f"- API Docs: http://localhost:{port}/docs")
    print()

    # A single worker: each process would run its own reminder scheduler
    uvicorn.run("medibook.main:app", host="0.0.0.0", port=port, reload=reload, workers=1)


if __name__ == "__main__":
    main()
