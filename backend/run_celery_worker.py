#!/usr/bin/env python3
# backend/run_celery_worker.py
"""
Development Celery worker for the reservation sweeps.

Pass ``--beat`` to run the scheduler inside the worker process, which is
enough for a single local machine.
"""
import os
from pathlib import Path
import subprocess
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "development")

if __name__ == "__main__":
    queues = os.getenv("CELERY_QUEUES") or "maintenance,celery"
    embed_beat = "--beat" in sys.argv[1:]

    print("🚀 Starting Celery worker (ENVIRONMENT=" + os.environ["ENVIRONMENT"] + ")…")
    print(f"📦 Consuming queues: {queues}")
    if embed_beat:
        print("⏰ Beat is embedded; sweeps will be scheduled by this process")

    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "app.tasks.celery_app",
        "worker",
        "--loglevel=info",
        "--concurrency=2",
        "--max-tasks-per-child=100",
        "-Q",
        queues,
    ]
    if embed_beat:
        cmd.append("--beat")

    subprocess.run(cmd)
