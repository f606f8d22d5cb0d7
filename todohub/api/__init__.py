"""TodoHub API — FastAPI application factory and response envelope."""
