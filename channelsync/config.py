"""Shared configuration for the channel sync backend.

This module centralizes environment variable access and default values
to prevent drift between modules.
"""

import os

# Database configuration
DB_PATH = os.getenv("DB_PATH", "./data/channelsync.db")

# Scheduling
# Channels without a cron expression sync daily at 02:00
DEFAULT_SYNC_SCHEDULE = os.getenv("DEFAULT_SYNC_SCHEDULE", "0 2 * * *")
SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "UTC")
SCHEDULER_MAX_WORKERS = int(os.getenv("SCHEDULER_MAX_WORKERS", "5"))

# Sync execution
SYNC_MAX_WORKERS = int(os.getenv("SYNC_MAX_WORKERS", "4"))
SYNC_PIPELINE = os.getenv(
    "SYNC_PIPELINE", "channelsync.scheduler.pipeline:DryRunPipeline"
)

# Number of runs returned by the status endpoint
SYNC_STATUS_LIMIT = int(os.getenv("SYNC_STATUS_LIMIT", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Channel imported on startup when both are set
YOUTUBE_CHANNEL_ID = os.getenv("YOUTUBE_CHANNEL_ID")
YOUTUBE_API_KEY = os.getenv("YOUTUBE_API_KEY")
SYNC_CRON = os.getenv("SYNC_CRON")

# Rate limit for manual sync triggers (slowapi syntax)
SYNC_TRIGGER_RATE_LIMIT = os.getenv("SYNC_TRIGGER_RATE_LIMIT", "30/minute")

# CORS configuration for the web UI
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ).split(",")
    if origin.strip()
]
