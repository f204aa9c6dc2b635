"""HTTP surface: FastAPI application exposing click tracking endpoints."""

from clicktracker.api.app import create_app

__all__ = ["create_app"]
