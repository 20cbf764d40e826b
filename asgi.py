"""
asgi.py -- ASGI entry point for PulseAuth.

Run with:  uvicorn asgi:app --reload

api/main.py builds the complete application; this module only gives process
managers a stable import path that does not change if the api/ layout does.
"""

from api.main import app

__all__ = ["app"]
