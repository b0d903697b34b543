"""
asgi.py -- Application assembly for ImageDrop.

The image, folder, and share routers of the wider application are mounted
here next to the auth API. They depend on auth.dependencies for identity and
register their owned-data cleanup with app.state.lifecycle.register_cascade().

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
