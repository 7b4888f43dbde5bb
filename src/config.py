"""Configuration module for the Classroom Task Manager.

This module provides centralized configuration management, including directory
paths, API server settings, authentication, storage and notification defaults.
All configuration values can be overridden via environment variables.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.resolve()

# Data directory (database file and object storage live here by default)
DATA_DIR = Path(os.getenv("DATA_DIR", str(ROOT_DIR / "data")))

# Object storage root. Each bucket is a sub-directory.
STORAGE_DIR = Path(os.getenv("STORAGE_DIR", str(DATA_DIR / "storage")))

# Buckets used by the application
ASSIGNMENTS_BUCKET = "assignments"
SUBMISSIONS_BUCKET = "submissions"
CHAT_FILES_BUCKET = "chat-files"

# Maximum accepted upload size in bytes (default 20MB)
MAX_UPLOAD_SIZE: int = int(os.getenv("MAX_UPLOAD_SIZE", str(20 * 1024 * 1024)))

# --- Database Configuration ---

DATABASE_URL: str = os.getenv(
    "DATABASE_URL", f"sqlite:///{DATA_DIR}/classroom_tasks.db"
)

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# Base URL used when building public links to stored objects
PUBLIC_STORAGE_BASE_URL: str = os.getenv(
    "PUBLIC_STORAGE_BASE_URL", f"http://localhost:{API_PORT}/api/storage"
).rstrip("/")

# CORS allowed origins (comma-separated list)
_CORS_ALLOWED_ORIGINS_STR: str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,"
    "http://127.0.0.1:3000,http://localhost:8080",
)
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]

# --- Authentication Configuration ---

JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-in-production")
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7))  # 7 days
)

# --- Classroom Configuration ---

INVITATION_CODE_LENGTH: int = 8

CLASSROOM_NAME_MIN_LENGTH: int = 3
CLASSROOM_NAME_MAX_LENGTH: int = 100

# --- Notification Configuration ---

# Timezone used to decide what "today" and "tomorrow" are for due dates
APP_TIMEZONE: str = os.getenv("APP_TIMEZONE", "UTC")

# Number of notifications returned by the notification list
NOTIFICATION_LIST_LIMIT: int = int(os.getenv("NOTIFICATION_LIST_LIMIT", "20"))

# --- Logging Configuration ---

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
