"""
HTTP API over the session orchestrator.
"""

from .server import create_app

__all__ = ["create_app"]
