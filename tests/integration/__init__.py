"""Integration tests for the search service.

Drive the FastAPI application end to end with the engine wired to
in-memory doubles instead of Redis and the static corpus host.
"""
