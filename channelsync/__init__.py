"""Channel Sync Backend Package.

Schedules and runs channel synchronization:

- Per-channel cron triggers (APScheduler)
- Single-flight sync runs with cooperative cancellation
- Durable SQLite run log
- FastAPI control surface

Usage:
    uvicorn channelsync.app:app --host 0.0.0.0 --port 8080

Modules:
    app: FastAPI application entry point
    scheduler: schedule manager, orchestrator, run log, cancellation
    channels: channel configuration store
    routes: sync and schedule routers
    security: credential encryption
"""

__version__ = "0.1.0"
