"""FastAPI search service."""
