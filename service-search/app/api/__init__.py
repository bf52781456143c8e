"""API subpackage for the search service.

Routers expose endpoints for search, autocomplete, enhancement status and
corpus reloads. Transport layer remains thin and delegates to ``SearchEngine``.
"""
