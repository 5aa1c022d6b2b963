#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Crawler Core Module

Holds the crawl configuration and the collaborators shared by the fetch
client:
- Work queue
- Event bus
- Per-domain authentication
- Open request accounting
- Concurrent fetching of queued URLs
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from headless_fetch.core.events import EventEmitter
from headless_fetch.core.exceptions import ConfigError, QueueError
from headless_fetch.core.fetch_client import FetchClient
from headless_fetch.core.queue import FetchQueue, MemoryFetchQueue, QueueItem, QueueStatus
from headless_fetch.middlewares.authentication import AuthenticationManager
from headless_fetch.middlewares.open_requests import OpenRequestSet
from headless_fetch.middlewares.proxy_middleware import ProxyConfig, proxy_from_settings
from headless_fetch.utils.browser_utils import BrowserSession

logger = logging.getLogger('crawler')

DEFAULT_TIMEOUT = 300000


class Crawler:
    """
    Owns the configuration, queue, event bus and fetch client of a crawl.
    """

    def __init__(
        self,
        queue: Optional[FetchQueue] = None,
        timeout: int = DEFAULT_TIMEOUT,
        max_concurrency: int = 5,
        ignore_invalid_ssl: bool = False,
        use_proxy: bool = False,
        proxy_hostname: Optional[str] = None,
        proxy_port: Optional[int] = None,
        proxy_user: Optional[str] = None,
        proxy_pass: Optional[str] = None,
        headless: bool = True,
        session: Optional[BrowserSession] = None
    ):
        """
        Initialize the crawler with the given parameters.

        Args:
            queue: Work queue; an in-memory queue is used if omitted
            timeout: Navigation timeout in milliseconds
            max_concurrency: Maximum number of fetch cycles running at once
            ignore_invalid_ssl: Whether to accept invalid TLS certificates
            use_proxy: Whether to route browser traffic through a proxy
            proxy_hostname: Proxy host
            proxy_port: Proxy port
            proxy_user: Proxy user name
            proxy_pass: Proxy password
            headless: Whether to run the browser headless
            session: Browser session to fetch with; built from the settings
                above if omitted
        """
        if timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {timeout}")
        if max_concurrency < 1:
            raise ConfigError(f"max_concurrency must be at least 1, got {max_concurrency}")

        self.queue = queue if queue is not None else MemoryFetchQueue()
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.ignore_invalid_ssl = ignore_invalid_ssl
        self.use_proxy = use_proxy
        self.proxy_hostname = proxy_hostname
        self.proxy_port = proxy_port
        self.proxy_user = proxy_user
        self.proxy_pass = proxy_pass
        self.headless = headless

        self.proxy: Optional[ProxyConfig] = proxy_from_settings(
            use_proxy, proxy_hostname, proxy_port, proxy_user, proxy_pass
        )
        self.events = EventEmitter()
        self.authentications = AuthenticationManager()
        self.open_requests = OpenRequestSet()
        self.fetch_client = FetchClient(self, session=session)

        logger.info(f"Initialized crawler (timeout {timeout}ms, concurrency {max_concurrency})")

    def on(self, event: str, listener: Callable[..., Any]) -> Callable[..., Any]:
        return self.events.on(event, listener)

    def add_urls(self, urls: List[str]) -> List[QueueItem]:
        """
        Queue URLs, skipping invalid or duplicate ones.

        Args:
            urls: URLs to queue

        Returns:
            The queue items created
        """
        items = []
        for url in urls:
            try:
                items.append(self.queue.add(url))
            except QueueError as e:
                logger.warning(f"Skipping {url}: {e}")
        return items

    async def fetch(self, queue_item: QueueItem) -> None:
        await self.fetch_client.fetch(queue_item)

    async def crawl(self, urls: Optional[List[str]] = None) -> List[QueueItem]:
        """
        Fetch every queued item, at most ``max_concurrency`` at a time.

        A fetch is only started while the open request set holds fewer
        than ``max_concurrency`` requests.

        The queue must support ``add`` and iteration, as MemoryFetchQueue does.

        Args:
            urls: URLs to queue before fetching

        Returns:
            All items of the queue after fetching

        Raises:
            BrowserLaunchError: If the browser could not be launched
        """
        if urls:
            self.add_urls(urls)

        pending = [item for item in self.queue if item.status == QueueStatus.QUEUED]
        logger.info(f"Starting crawl of {len(pending)} queued URLs")
        start_time = time.time()

        # Cycles still navigating are not open requests yet, so they are bounded separately
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch_bounded(item: QueueItem) -> None:
            async with semaphore:
                # Requests opened outside this crawl count against the limit too
                await self.open_requests.wait_below(self.max_concurrency)
                await self.fetch(item)

        try:
            results = await asyncio.gather(
                *(fetch_bounded(item) for item in pending),
                return_exceptions=True
            )
        finally:
            await self.close()

        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            logger.error(f"Crawl aborted with {len(errors)} error(s): {errors[0]}")
            raise errors[0]

        await self.events.drain()
        elapsed_time = time.time() - start_time
        logger.info(f"Crawl completed in {elapsed_time:.2f} seconds. Processed {len(pending)} URLs.")
        return list(self.queue)

    async def close(self) -> None:
        await self.fetch_client.session.close()

    def get_stats(self) -> Dict[str, Any]:
        """Return statistics about the crawl"""
        items = list(self.queue)
        stats: Dict[str, Any] = {status.value: 0 for status in QueueStatus}
        for item in items:
            stats[QueueStatus(item.status).value] += 1
        stats['total'] = len(items)
        stats['open_requests'] = len(self.open_requests)
        stats['content_size_total'] = sum(item.state_data.get('contentLength', 0) for item in items)
        return stats
