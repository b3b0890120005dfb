"""
HTTP API for the exchange gateway.

Example:
    >>> from exchange_gateway.api import create_app
    >>> app = create_app(gateway)
"""

from exchange_gateway.api.app import create_app
from exchange_gateway.api.errors import STATUS_CODES, status_code_for
from exchange_gateway.api.routes import router

__all__ = [
    "create_app",
    "router",
    "STATUS_CODES",
    "status_code_for",
]
