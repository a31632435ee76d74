"""
Score API Package.

FastAPI adapter exposing the query surface and the real-time stream.
"""

from api.app import create_app

__all__ = ["create_app"]
