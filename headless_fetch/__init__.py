"""
Headless browser fetch client for web crawlers.
"""

from .core.crawler import Crawler
from .core.events import EventEmitter, Events
from .core.exceptions import (
    BrowserLaunchError,
    ConfigError,
    HeadlessFetchError,
    OpenRequestError,
    QueueError,
)
from .core.fetch_client import FetchClient
from .core.queue import FetchQueue, MemoryFetchQueue, QueueItem, QueueStatus
from .middlewares.authentication import AuthenticationManager

__version__ = '0.1.0'

__all__ = [
    'Crawler', 'FetchClient', 'EventEmitter', 'Events',
    'FetchQueue', 'MemoryFetchQueue', 'QueueItem', 'QueueStatus',
    'AuthenticationManager',
    'HeadlessFetchError', 'QueueError', 'BrowserLaunchError', 'OpenRequestError', 'ConfigError',
]
