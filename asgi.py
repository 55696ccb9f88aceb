"""
asgi.py -- ASGI entry point for ProfileAuth.

Run with:  uvicorn asgi:app --reload

Importing api.main loads settings; without SECRET_KEY (and without DEBUG=true)
the import raises and the server refuses to start.
"""

from api.main import app

__all__ = ["app"]
