"""Entry package exposing the RemoteTV FastAPI app."""

from __future__ import annotations

from tvcatalog.main import app, create_app

__all__ = ["app", "create_app"]
