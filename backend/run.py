#!/usr/bin/env python3
# backend/run.py
"""
Development API server.

Uses DATABASE_URL from the environment (or .env); defaults to a local
SQLite file so the booking flow can be exercised without Postgres.
"""
import os
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "development")

import uvicorn

if __name__ == "__main__":
    print("🚀 Starting Medtik API (ENVIRONMENT=" + os.environ["ENVIRONMENT"] + ")…")
    print("🌐 Access at: http://localhost:8000")
    print("📚 API Docs: http://localhost:8000/docs")

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
