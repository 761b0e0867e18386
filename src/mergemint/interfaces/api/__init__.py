"""HTTP interface for a :class:`~mergemint.engine.collection.CompositeCollection`."""

from .api_server import create_api_server

__all__ = ["create_api_server"]
