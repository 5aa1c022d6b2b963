"""
Middleware components for the fetch client.
"""

from .authentication import (
    Authentication,
    AuthenticationManager,
    BasicAuthentication,
    X509Authentication,
)
from .open_requests import OpenRequestSet
from .proxy_middleware import ProxyConfig, proxy_from_settings

__all__ = [
    'Authentication', 'AuthenticationManager', 'BasicAuthentication', 'X509Authentication',
    'OpenRequestSet', 'ProxyConfig', 'proxy_from_settings',
]
