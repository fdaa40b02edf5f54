#!/usr/bin/env python3
"""
Quick runner for Hearing Scheduler
==================================

Usage:
    python -m hearing_scheduler.run
    # or
    python hearing_scheduler/run.py
"""

import uvicorn

if __name__ == "__main__":
    print("Starting Hearing Scheduler...")
    print("API docs: http://localhost:8000/docs")
    print("Health:   http://localhost:8000/health")
    print()

    uvicorn.run(
        "hearing_scheduler.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
