#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
URL Utilities Module

Provides the URL helpers the fetch queue and the CLI rely on:
- URL normalization
- Host, port and origin extraction
- URL validation
"""

from typing import Optional
from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

import validators

DEFAULT_PORTS = {'http': 80, 'https': 443}


def normalize_url(url: str) -> str:
    """
    Normalize a URL by removing fragments, sorting query parameters,
    dropping default ports and lowercasing scheme and host.
    
    Args:
        url: URL to normalize
        
    Returns:
        Normalized URL
    """
    parsed = urlparse(url)
    
    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()
    
    if parsed.query:
        query_params = parse_qs(parsed.query, keep_blank_values=True)
        sorted_query = {k: sorted(v) for k, v in sorted(query_params.items())}
        query = urlencode(sorted_query, doseq=True)
    else:
        query = ''
    
    # Remove default ports (80 for http, 443 for https)
    if ':' in netloc and '@' not in netloc:
        host, port = netloc.rsplit(':', 1)
        if port == str(DEFAULT_PORTS.get(scheme)):
            netloc = host
    
    path = parsed.path or '/'
    
    return urlunparse((scheme, netloc, path, parsed.params, query, ''))


def get_domain(url: str) -> str:
    """
    Extract the host name from a URL, without port or credentials.
    
    Args:
        url: URL to extract domain from
        
    Returns:
        Lowercase host name
    """
    return (urlparse(url).hostname or '').lower()


def get_port(url: str) -> Optional[int]:
    """
    Get the port a URL points at, falling back to the scheme's default.
    
    Args:
        url: URL to inspect
        
    Returns:
        Port number, or None for unknown schemes without an explicit port
    """
    parsed = urlparse(url)
    try:
        port = parsed.port
    except ValueError:
        return None
    return port or DEFAULT_PORTS.get(parsed.scheme.lower())


def get_origin(url: str) -> str:
    """
    Get the origin of a URL as ``scheme://host[:port]``, lowercased and
    without the port when it is the scheme's default.
    
    Args:
        url: URL to get the origin of
        
    Returns:
        Origin string
    """
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    host = (parsed.hostname or '').lower()
    if ':' in host:
        host = f"[{host}]"

    origin = f"{scheme}://{host}"
    try:
        port = parsed.port
    except ValueError:
        port = None
    if port and port != DEFAULT_PORTS.get(scheme):
        origin += f":{port}"
    return origin


def is_valid_url(url: str) -> bool:
    """
    Check if a URL is an absolute http(s) URL.
    
    Args:
        url: URL to validate
        
    Returns:
        True if URL is valid
    """
    if not url or not url.startswith(('http://', 'https://')):
        return False
    return bool(validators.url(url))
