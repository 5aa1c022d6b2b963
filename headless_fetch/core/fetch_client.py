#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Browser Fetch Client

Fetches queue items with a headless browser and reports the outcome:
- Drives each queue item through spooled -> downloaded | timeout | failed
- Applies per-domain basic authentication
- Records latency, size, type, status code and headers in the queue
- Keeps the crawler's open request set exact on every exit path
- Emits fetchheaders, fetchcomplete, fetchtimeout, fetchclienterror and
  queueerror events
"""

import logging
import re
import time
from typing import Any, Dict, Mapping, Optional

from headless_fetch.core.events import Events
from headless_fetch.core.exceptions import BrowserLaunchError, HeadlessFetchError
from headless_fetch.core.queue import QueueItem, QueueStatus
from headless_fetch.middlewares.authentication import BasicAuthentication
from headless_fetch.utils.browser_utils import BrowserSession
from headless_fetch.utils.http_utils import (
    CLIENT_ERROR_CODE,
    NormalizedResponse,
    normalize_response,
)
from headless_fetch.utils.url_utils import get_origin

logger = logging.getLogger('fetch_client')

TIMEOUT_PATTERN = re.compile(r'timeout', re.IGNORECASE)

# Navigation is complete once no sub-resource requests are in flight
WAIT_UNTIL = 'networkidle'


def now_ms() -> int:
    return int(time.time() * 1000)


class FetchClient:
    """
    Fetches queue items through a shared browser session.

    The client reads its configuration and collaborators from the crawler
    it belongs to: ``queue``, ``events``, ``authentications``,
    ``open_requests``, ``timeout`` (milliseconds), ``ignore_invalid_ssl``,
    ``proxy`` and ``headless``.
    """

    def __init__(self, crawler, session: Optional[BrowserSession] = None):
        """
        Initialize the fetch client.

        Args:
            crawler: Crawler owning the queue, event bus and configuration
            session: Browser session to use; one is created from the
                crawler's configuration if omitted
        """
        self._crawler = crawler
        self.session = session or BrowserSession(
            ignore_invalid_ssl=crawler.ignore_invalid_ssl,
            proxy=crawler.proxy,
            headless=crawler.headless,
        )

    async def browser(self):
        """Start the browser or reuse the running instance."""
        return await self.session.browser()

    async def fetch(self, queue_item: QueueItem) -> None:
        """
        Fetch the URL of a queue item.

        Outcomes are reported through events and queue updates only.

        Args:
            queue_item: Item to fetch

        Raises:
            BrowserLaunchError: If the shared browser could not be launched
        """
        spooled = await self._update(queue_item, {'status': QueueStatus.SPOOLED})
        if spooled is None:
            return
        queue_item = spooled

        try:
            browser = await self.browser()
        except BrowserLaunchError as e:
            await self._on_error(e, queue_item)
            raise

        try:
            http_credentials = self._authenticate(queue_item)
            page = await browser.new_page(**self.session.page_options(http_credentials=http_credentials))
        except Exception as e:
            logger.error(f"Could not open a page for {queue_item.url}: {e}")
            await self._on_error(e, queue_item)
            return

        # Until handle_response takes the page over, it is closed here, also on cancellation
        handed_over = False
        try:
            time_commenced = now_ms()
            try:
                response = await page.goto(queue_item.url, timeout=self._crawler.timeout, wait_until=WAIT_UNTIL)
                if response is None:
                    raise HeadlessFetchError(f"Navigation to {queue_item.url} produced no response")
            except Exception as e:
                if TIMEOUT_PATTERN.search(str(e)):
                    await self._on_timeout(e, queue_item)
                else:
                    await self._on_error(e, queue_item)
                return

            try:
                response = normalize_response(response)
                # The open request count is used for admission control by the crawler
                await self._crawler.open_requests.add(response.request)
            except Exception as e:
                await self._on_error(e, queue_item)
                return
            handed_over = True
        finally:
            if not handed_over:
                await self._cleanup(page)

        await self.handle_response(queue_item, response, time_commenced, page)

    async def handle_response(
        self,
        queue_item: QueueItem,
        response: Any,
        time_commenced: Optional[int],
        page
    ) -> None:
        """
        Record a completed navigation and read the page body.

        Cleanup with the response always runs before this returns, so the
        request added to the open request set by ``fetch`` is removed.

        Args:
            queue_item: Item being fetched
            response: Engine or normalized response of the navigation
            time_commenced: Navigation start in epoch milliseconds
            page: Page the navigation ran in
        """
        response = normalize_response(response)
        time_headers_received = now_ms()
        if time_commenced is None:
            time_commenced = time_headers_received
        latency = time_headers_received - time_commenced

        try:
            updated = await self._update(queue_item, {
                'state_data': {
                    'requestLatency': latency,
                    'requestTime': latency,
                    'contentLength': response.content_length,
                    'contentType': response.content_type,
                    'code': response.status_code,
                    'headers': response.headers,
                }
            })
            if updated is not None:
                queue_item = updated
                self._emit(Events.FETCH_HEADERS, queue_item, response)

            downloaded = await self._update(queue_item, {
                'fetched': True,
                'status': QueueStatus.DOWNLOADED,
            })
            if downloaded is None:
                return
            queue_item = downloaded

            try:
                response_body = await page.content()
            except Exception as e:
                logger.error(f"Could not read body of {queue_item.url}: {e}")
                self._emit(Events.FETCH_CLIENT_ERROR, queue_item, e)
                return

            logger.info(f"Fetched {queue_item.url} ({response.status_code}, {latency}ms)")
            self._emit(Events.FETCH_COMPLETE, queue_item, response_body, response)
        finally:
            await self._cleanup(page, response)

    async def _update(self, queue_item: QueueItem, fields: Mapping[str, Any]) -> Optional[QueueItem]:
        """
        Apply a queue update, reporting a failure as a queueerror event.

        Returns:
            The updated item, or None if the update failed
        """
        try:
            return await self._crawler.queue.update(queue_item.id, fields)
        except Exception as e:
            logger.error(f"Queue update of item {queue_item.id} failed: {e}")
            self._emit(Events.QUEUE_ERROR, e, queue_item)
            return None

    def _emit(self, event: str, *args: Any) -> None:
        self._crawler.events.emit(event, *args)

    async def _cleanup(self, page, response: Optional[NormalizedResponse] = None) -> None:
        """
        Release the resources of a fetch cycle.

        Raises:
            OpenRequestError: If the response's request is not an open request
        """
        try:
            if response is not None:
                await self._crawler.open_requests.remove(response.request)
        finally:
            try:
                await page.close()
            except Exception as e:
                logger.warning(f"Error closing page: {e}")

    def _basic_auth_credentials(self, host: str) -> Optional[Dict[str, str]]:
        """
        Get the basic auth credentials for the host if there are any.

        Client certificate entries are not applied here.
        """
        host = (host or '').lower()
        authentications = self._crawler.authentications
        if authentications.has_auth_for(host):
            auth_config = authentications.get_auth_for(host)
            if isinstance(auth_config, BasicAuthentication):
                return auth_config.credentials()
        return None

    def _authenticate(self, queue_item: QueueItem) -> Optional[Dict[str, str]]:
        """
        Resolve the HTTP credentials the page for a queue item is opened with.

        Playwright answers the server's basic auth challenges with them, for
        the item's origin only.

        Args:
            queue_item: Item about to be fetched

        Returns:
            ``http_credentials`` for ``Browser.new_page``, or None
        """
        credentials = self._basic_auth_credentials(queue_item.host)
        if not credentials:
            return None

        logger.debug(f"Applying basic authentication for {queue_item.host}")
        return {**credentials, 'origin': get_origin(queue_item.url)}

    async def _on_timeout(self, error: Exception, queue_item: QueueItem) -> None:
        """The configured crawler timeout has expired."""
        logger.warning(f"Timeout fetching {queue_item.url}: {error}")
        updated = await self._update(queue_item, {
            'fetched': True,
            'status': QueueStatus.TIMEOUT,
        })
        if updated is not None:
            self._emit(Events.FETCH_TIMEOUT, updated, self._crawler.timeout)

    async def _on_error(self, error: Exception, queue_item: QueueItem) -> None:
        """Unknown error prevented the fetch operation."""
        logger.error(f"Error fetching {queue_item.url}: {error}")
        updated = await self._update(queue_item, {
            'fetched': True,
            'status': QueueStatus.FAILED,
            'state_data': {'code': CLIENT_ERROR_CODE},
        })
        self._emit(Events.FETCH_CLIENT_ERROR, updated or queue_item, error)
