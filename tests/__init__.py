"""Tests for the documentation search core and service.

Unit tests run against in-memory doubles (Redis, HTTP transport, embedding
model). Tests marked ``integration`` drive the FastAPI service end to end.
"""
