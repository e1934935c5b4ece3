"""
PDF sanitization API

FastAPI-based REST API for queueing documents and reporting outcomes.
"""

from .sanitise_api import create_app, SanitiserAPI

__all__ = ["create_app", "SanitiserAPI"]
