"""TodoHub Engine — Errors, configuration, structured event log."""
