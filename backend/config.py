import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


class Config:
    # Use MongoDB Atlas URI or local
    MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017/finance_sync")

    # "mongo" or "memory" (in-process store for tests / local dev)
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "mongo").strip().lower()

    # JWT / Auth (session minted after the OAuth provider callback)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "supersecretkey-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=7)

    # CORS (adjust for your frontend origin)
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Snapshots kept per user, oldest dropped first
    SNAPSHOT_LIMIT = int(os.getenv("SNAPSHOT_LIMIT", "20"))
