"""
HTTP surface of the webhook relay.
"""

from .server import create_app

__all__ = ["create_app"]
