"""api/ -- FastAPI transport for the auth service."""
