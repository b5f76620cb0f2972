#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Uses the SQLite database configured in .env (or the default file database)
and reloads on code changes.
"""
import os
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

import uvicorn

if __name__ == "__main__":
    print("Access at: http://localhost:8000")
    print("API Docs: http://localhost:8000/docs")

    uvicorn.run("tutorhub.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
