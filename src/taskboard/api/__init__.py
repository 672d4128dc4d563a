"""RPC API for taskboard."""

from taskboard.api.app import app, create_app
from taskboard.api.models import APIResponse, ErrorShape

__all__ = [
    "APIResponse",
    "ErrorShape",
    "app",
    "create_app",
]
