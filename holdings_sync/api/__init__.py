"""HTTP API for broker connections, sync and holdings."""

from .app import create_app

__all__ = ["create_app"]
