"""
Utility functions and classes for the fetch client.
"""

from .url_utils import (
    normalize_url,
    get_domain,
    get_origin,
    get_port,
    is_valid_url
)

from .http_utils import (
    CLIENT_ERROR_CODE,
    NormalizedRequest,
    NormalizedResponse,
    get_header,
    normalize_response,
    parse_content_length
)

__all__ = [
    # URL utilities
    'normalize_url', 'get_domain', 'get_origin', 'get_port', 'is_valid_url',
    
    # HTTP utilities
    'CLIENT_ERROR_CODE', 'NormalizedRequest', 'NormalizedResponse',
    'get_header', 'normalize_response', 'parse_content_length',
]
