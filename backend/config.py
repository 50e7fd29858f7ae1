"""
Runtime configuration read from environment variables.
"""

import os
from pathlib import Path

# Use DATA_DIR env var for persistent storage in production
DATA_DIR = Path(os.environ.get("DATA_DIR", Path(__file__).parent))
PRESENTATIONS_DIR = Path(
    os.environ.get("PRESENTATIONS_DIR", DATA_DIR / "presentations")
)
DB_PATH = Path(os.environ.get("DB_PATH", DATA_DIR / "presentations.db"))

HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "5555"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "CORS_ORIGINS", "http://localhost:5555,http://127.0.0.1:5555"
    ).split(",")
    if origin.strip()
]
