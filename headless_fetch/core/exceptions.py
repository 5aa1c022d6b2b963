#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Exceptions raised by the fetch core.
"""


class HeadlessFetchError(Exception):
    """Base class for all errors raised by headless_fetch."""


class QueueError(HeadlessFetchError):
    """A queue update could not be applied."""

    def __init__(self, message: str, item_id=None):
        super().__init__(message)
        self.item_id = item_id


class BrowserLaunchError(HeadlessFetchError):
    """The browser process could not be started."""


class OpenRequestError(HeadlessFetchError, LookupError):
    """A request handle was expected in the open request set but is missing."""


class ConfigError(HeadlessFetchError):
    """Invalid crawler configuration."""
