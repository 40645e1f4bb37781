"""HTTP API layer."""

from ratebot.api.app import create_api_app

__all__ = ["create_api_app"]
