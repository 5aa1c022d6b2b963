#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
HTTP Utilities Module

Translates browser engine responses into the response shape the rest of
the crawler works with:
- Canonical response/request views
- Header lookup and content length parsing
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

# Synthetic status code recorded when no HTTP status could be obtained
CLIENT_ERROR_CODE = 600


def get_header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    """
    Case-insensitive header lookup.
    
    Args:
        headers: Header mapping
        name: Header name
        
    Returns:
        Header value or None if absent
    """
    if not headers:
        return None
    if name in headers:
        return headers[name]
    name = name.lower()
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def parse_content_length(headers: Optional[Mapping[str, str]]) -> int:
    """
    Parse the content-length header.
    
    Args:
        headers: Response headers
        
    Returns:
        The content length, or 0 if the header is missing or not a number
    """
    value = get_header(headers, 'content-length')
    if value is None:
        return 0
    try:
        length = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(length):
        return 0
    return int(length)


@dataclass(frozen=True)
class NormalizedRequest:
    """Canonical view of the request that produced a response."""
    url: str
    method: str
    headers: Dict[str, str]
    raw: Any = field(repr=False, compare=False)


@dataclass(frozen=True)
class NormalizedResponse:
    """
    Canonical view of a browser engine response.

    ``req.raw`` is the engine's own request object; it is the handle kept
    in the open request set.
    """
    status_code: int
    headers: Dict[str, str]
    content_length: int
    content_type: Optional[str]
    req: NormalizedRequest
    url: str = ''
    raw: Any = field(default=None, repr=False, compare=False)

    @property
    def request(self) -> Any:
        return self.req.raw


def normalize_request(request: Any) -> NormalizedRequest:
    if isinstance(request, NormalizedRequest):
        return request
    return NormalizedRequest(
        url=getattr(request, 'url', ''),
        method=getattr(request, 'method', 'GET'),
        headers=getattr(request, 'headers', None) or {},
        raw=request,
    )


def normalize_response(response: Any) -> NormalizedResponse:
    """
    Build the canonical response view for an engine response.

    No body is read and header maps are not copied. Normalizing an
    already normalized response returns it unchanged.
    
    Args:
        response: Playwright response (status, headers, request)
        
    Returns:
        NormalizedResponse
    """
    if isinstance(response, NormalizedResponse):
        return response

    headers = response.headers or {}
    return NormalizedResponse(
        status_code=response.status,
        headers=headers,
        content_length=parse_content_length(headers),
        content_type=get_header(headers, 'content-type'),
        req=normalize_request(response.request),
        url=getattr(response, 'url', ''),
        raw=response,
    )
