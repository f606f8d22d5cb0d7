"""
TodoHub — Task list service with real-time broadcast, charts and Excel export.

Packages:
    engine    errors, configuration, structured event log
    db        SQLAlchemy base, sessions, models
    tasks     Task Store, Filter Builder, Aggregation Engine
    realtime  Event Relay, room registry, Broadcast Gateway
    reports   Report Exporter
    api       FastAPI application factory
"""

__version__ = "1.0.0"
__all__ = ["engine", "db", "tasks", "realtime", "reports", "api"]
