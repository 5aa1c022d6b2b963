#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Open Request Tracking

Keeps the set of requests whose navigation has completed but whose fetch
cycle has not been cleaned up yet. The crawler admits a new fetch only
while the set is below its concurrency limit; each fetch cycle adds and
removes only its own request.
"""

import asyncio
import logging
from typing import Any, List

from headless_fetch.core.exceptions import OpenRequestError

logger = logging.getLogger('open_requests')


class OpenRequestSet:
    """
    Lock-guarded collection of in-flight request handles.

    Handles are compared by identity, so engine objects need not be
    hashable and two equal-looking requests are still tracked separately.
    Removals wake the coroutines waiting in ``wait_below``.
    """

    def __init__(self):
        self._requests: List[Any] = []
        self._changed = asyncio.Condition()

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, request: Any) -> bool:
        return any(entry is request for entry in self._requests)

    async def add(self, request: Any) -> None:
        async with self._changed:
            self._requests.append(request)
            logger.debug(f"Open requests: {len(self._requests)}")

    async def remove(self, request: Any) -> None:
        """
        Remove a request previously added with ``add``.
        
        Args:
            request: The request handle to remove
            
        Raises:
            OpenRequestError: If the request is not in the set
        """
        async with self._changed:
            for index, entry in enumerate(self._requests):
                if entry is request:
                    del self._requests[index]
                    logger.debug(f"Open requests: {len(self._requests)}")
                    self._changed.notify_all()
                    return
        raise OpenRequestError(f"Request {request!r} is not an open request")

    async def wait_below(self, limit: int) -> None:
        """
        Wait until fewer than ``limit`` requests are open.

        Args:
            limit: Number of open requests at which callers are held back
        """
        async with self._changed:
            if len(self._requests) >= limit:
                logger.debug(f"Waiting for open requests to drop below {limit}")
            await self._changed.wait_for(lambda: len(self._requests) < limit)

    def snapshot(self) -> List[Any]:
        return list(self._requests)
