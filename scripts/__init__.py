"""Utility scripts for operating the documentation search.

Scripts include:
- ``build_enhanced_index.py``: attach embeddings to the standard index.
"""
