#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Browser Utilities Module

Owns the Playwright browser used by the fetch client:
- Launch options derived from crawl configuration
- One lazily launched browser per session, shared by all fetch cycles
- Session shutdown
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from playwright.async_api import async_playwright, Browser, Playwright

from headless_fetch.core.exceptions import BrowserLaunchError
from headless_fetch.middlewares.proxy_middleware import ProxyConfig

logger = logging.getLogger('browser_utils')

# Browser options
BROWSER_TYPES = ['chromium', 'firefox', 'webkit']


def build_launch_options(
    headless: bool = True,
    ignore_invalid_ssl: bool = False,
    proxy: Optional[ProxyConfig] = None,
    extra_args: Optional[List[str]] = None
) -> Dict[str, Any]:
    """
    Build the keyword arguments for ``BrowserType.launch``.
    
    Args:
        headless: Whether to run in headless mode
        ignore_invalid_ssl: Whether certificate errors are ignored
        proxy: Upstream proxy, passed as a ``--proxy-server`` argument
        extra_args: Additional browser command line arguments
        
    Returns:
        Launch options; ``args`` is only present when there are arguments
    """
    args = list(extra_args or [])
    if ignore_invalid_ssl:
        args.append('--ignore-certificate-errors')
    if proxy is not None:
        args.append(f"--proxy-server={proxy.url()}")

    launch_options: Dict[str, Any] = {'headless': headless}
    if args:
        launch_options['args'] = args
    return launch_options


class BrowserSession:
    """
    Lazily launched browser shared by every fetch cycle of a fetch client.

    The first call to ``browser()`` starts the launch; every caller, whether
    it arrives during or after the launch, awaits the same task and gets
    the same browser or the same ``BrowserLaunchError``. A failed launch is
    not retried until the session is closed.
    """

    def __init__(
        self,
        ignore_invalid_ssl: bool = False,
        proxy: Optional[ProxyConfig] = None,
        headless: bool = True,
        browser_type: str = 'chromium',
        playwright_factory: Callable[[], Any] = async_playwright
    ):
        if browser_type not in BROWSER_TYPES:
            logger.warning(f"Invalid browser type {browser_type}, defaulting to chromium")
            browser_type = 'chromium'

        self.ignore_invalid_ssl = ignore_invalid_ssl
        self.proxy = proxy
        self.headless = headless
        self.browser_type = browser_type
        self._playwright_factory = playwright_factory
        self._launch_task: Optional[asyncio.Task] = None

    @property
    def launch_options(self) -> Dict[str, Any]:
        return build_launch_options(
            headless=self.headless,
            ignore_invalid_ssl=self.ignore_invalid_ssl,
            proxy=self.proxy,
        )

    def page_options(self, http_credentials: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Build the keyword arguments for ``Browser.new_page``.

        Args:
            http_credentials: Basic auth credentials, optionally scoped to an
                ``origin``, answered by the page on authentication challenges
        """
        options: Dict[str, Any] = {'ignore_https_errors': self.ignore_invalid_ssl}
        if http_credentials:
            options['http_credentials'] = http_credentials
        return options

    @property
    def is_launched(self) -> bool:
        task = self._launch_task
        return task is not None and task.done() and not task.cancelled() and task.exception() is None

    async def browser(self) -> Browser:
        """
        Get the session's browser, launching it on first use.
        
        Returns:
            The launched browser
            
        Raises:
            BrowserLaunchError: If the browser could not be launched
        """
        if self._launch_task is None:
            self._launch_task = asyncio.ensure_future(self._launch())
        # Shielded so a cancelled caller does not abort the shared launch
        _, browser = await asyncio.shield(self._launch_task)
        return browser

    async def _launch(self) -> Tuple[Playwright, Browser]:
        options = self.launch_options
        playwright = None
        try:
            playwright = await self._playwright_factory().start()
            launcher = getattr(playwright, self.browser_type)
            browser = await launcher.launch(**options)
        except Exception as e:
            logger.error(f"Failed to launch {self.browser_type} browser: {e}")
            if playwright is not None:
                await playwright.stop()
            raise BrowserLaunchError(f"Failed to launch {self.browser_type} browser: {e}") from e

        logger.info(f"Launched {self.browser_type} browser. Headless: {self.headless}, "
                    f"proxy: {'yes' if self.proxy else 'no'}")
        return playwright, browser

    async def close(self) -> None:
        """
        Close the browser and stop Playwright. A later ``browser()`` call
        launches a new browser.

        Each launch owns its Playwright driver, so a launch started while
        this call waits is left running.
        """
        task, self._launch_task = self._launch_task, None
        if task is None:
            return

        if not task.done():
            # Let a pending launch settle so its browser is not orphaned
            await asyncio.wait([task])

        if task.cancelled() or task.exception() is not None:
            return

        playwright, browser = task.result()
        try:
            await browser.close()
            logger.info(f"Closed {self.browser_type} browser")
        finally:
            await playwright.stop()
