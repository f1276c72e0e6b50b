"""API Module - FastAPI HTTP surface."""

from su_advisor.api.server import create_app

__all__ = ["create_app"]
