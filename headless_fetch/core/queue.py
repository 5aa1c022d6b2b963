#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Fetch Queue Module

Defines the queue item model and the contract the fetch client uses to
mutate queue items, plus an in-memory queue implementation:
- Queue item lifecycle states
- Atomic update-by-id with merged state data
- URL validation and duplicate detection on insert
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse


from headless_fetch.core.exceptions import QueueError
from headless_fetch.utils.url_utils import get_domain, get_port, is_valid_url

logger = logging.getLogger('fetch_queue')

# Fields a queue update is allowed to touch
UPDATABLE_FIELDS = ('status', 'fetched', 'state_data')


class QueueStatus(str, Enum):
    QUEUED = 'queued'
    SPOOLED = 'spooled'
    DOWNLOADED = 'downloaded'
    TIMEOUT = 'timeout'
    FAILED = 'failed'


@dataclass
class QueueItem:
    """
    A single URL scheduled for fetching.

    ``state_data`` collects fetch metadata: requestLatency, requestTime,
    contentLength, contentType, code and headers.
    """
    id: int
    url: str
    host: str
    status: QueueStatus = QueueStatus.QUEUED
    fetched: bool = False
    state_data: Dict[str, Any] = field(default_factory=dict)
    depth: int = 0
    referrer: Optional[str] = None
    protocol: str = 'http'
    port: Optional[int] = None
    path: str = '/'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'url': self.url,
            'host': self.host,
            'status': self.status.value if isinstance(self.status, QueueStatus) else self.status,
            'fetched': self.fetched,
            'state_data': dict(self.state_data),
            'depth': self.depth,
            'referrer': self.referrer,
        }


class FetchQueue(ABC):
    """
    Contract between the fetch client and the work queue.

    All queue mutations made by the fetch client go through ``update``.
    """

    @abstractmethod
    async def update(self, item_id: int, fields: Mapping[str, Any]) -> QueueItem:
        """
        Apply a partial update to the item with the given id.

        Args:
            item_id: Identity of the queue item
            fields: Partial field set (status, fetched, state_data)

        Returns:
            The updated queue item

        Raises:
            QueueError: If the update could not be applied
        """
        pass


class MemoryFetchQueue(FetchQueue):
    """
    Queue that keeps its items in process memory, in insertion order.
    """

    def __init__(self, allow_duplicates: bool = False):
        self.allow_duplicates = allow_duplicates
        self._items: List[QueueItem] = []
        self._by_url: Dict[str, QueueItem] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def add(self, url: str, referrer: Optional[str] = None, depth: int = 0) -> QueueItem:
        """
        Add a URL to the queue.

        Args:
            url: Absolute http(s) URL
            referrer: URL of the page the link was found on
            depth: Crawl depth of the URL

        Returns:
            The new queue item

        Raises:
            QueueError: If the URL is invalid or already queued
        """
        if not is_valid_url(url):
            raise QueueError(f"Invalid URL: {url}")
        if not self.allow_duplicates and url in self._by_url:
            raise QueueError(f"URL already queued: {url}")

        parsed = urlparse(url)
        item = QueueItem(
            id=len(self._items),
            url=url,
            host=get_domain(url),
            depth=depth,
            referrer=referrer,
            protocol=parsed.scheme,
            port=get_port(url),
            path=parsed.path or '/',
        )
        self._items.append(item)
        self._by_url.setdefault(url, item)
        logger.debug(f"Queued {url} as item {item.id}")
        return item

    def get(self, item_id: int) -> QueueItem:
        if not isinstance(item_id, int) or not 0 <= item_id < len(self._items):
            raise QueueError(f"No queue item with id {item_id}", item_id)
        return self._items[item_id]

    async def update(self, item_id: int, fields: Mapping[str, Any]) -> QueueItem:
        item = self.get(item_id)

        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise QueueError(f"Cannot update fields {sorted(unknown)} of item {item_id}", item_id)

        if 'status' in fields:
            try:
                item.status = QueueStatus(fields['status'])
            except ValueError:
                raise QueueError(f"Unknown status {fields['status']!r}", item_id)
        if 'fetched' in fields:
            item.fetched = bool(fields['fetched'])
        if 'state_data' in fields:
            item.state_data.update(fields['state_data'])

        return item

    def oldest_unfetched_item(self) -> Optional[QueueItem]:
        for item in self._items:
            if item.status == QueueStatus.QUEUED:
                return item
        return None

    def count_items(self, **filters: Any) -> int:
        """
        Count items whose attributes equal every given filter value.

        Example: ``queue.count_items(fetched=True, status='timeout')``
        """
        count = 0
        for item in self._items:
            if all(getattr(item, name) == value for name, value in filters.items()):
                count += 1
        return count
