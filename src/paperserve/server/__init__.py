"""HTTP surface for paperserve."""

from paperserve.server.app import create_app

__all__ = ["create_app"]
