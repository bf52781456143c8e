"""Documentation search service package.

Layout:
- ``api``: HTTP endpoints for search, suggestions and enhancement status.
- ``runtime``: service-local metrics helpers.
"""
