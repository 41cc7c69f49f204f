"""
Upstream Clients Module
"""
from .external_api import ExternalApiClient, create_api_client
from .errors import ExternalApiError

__all__ = [
    "ExternalApiClient",
    "create_api_client",
    "ExternalApiError",
]
