"""Recordings server — FastAPI app backing the REST store."""
