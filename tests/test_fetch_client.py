"""
Tests for the browser fetch client.
"""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from headless_fetch.core.crawler import Crawler
from headless_fetch.core.events import Events
from headless_fetch.core.exceptions import BrowserLaunchError, OpenRequestError, QueueError
from headless_fetch.core.queue import QueueStatus
from headless_fetch.utils.http_utils import NormalizedResponse

from tests.fakes import (
    FakeBrowser,
    FakeResponse,
    FakeSession,
    FlakyQueue,
    event_names,
    record_events,
)

URL = 'https://example.com'


class FetchClientTestCase(unittest.IsolatedAsyncioTestCase):

    def make_crawler(self, outcomes, queue=None, timeout=30000, body='<html>ok</html>'):
        self.browser = FakeBrowser(outcomes, body=body)
        self.session = FakeSession(self.browser)
        self.crawler = Crawler(queue=queue, timeout=timeout, session=self.session)
        self.events = record_events(self.crawler)
        return self.crawler

    @property
    def page(self):
        self.assertEqual(len(self.browser.pages), 1)
        return self.browser.pages[0]


class TestSuccessfulFetch(FetchClientTestCase):

    async def test_successful_fetch_marks_item_downloaded(self):
        """Test the headers then complete events and the recorded state data."""
        response = FakeResponse(URL, status=200, headers={'content-length': '512', 'content-type': 'text/html'})
        crawler = self.make_crawler({URL: response})
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(event_names(self.events), [Events.FETCH_HEADERS, Events.FETCH_COMPLETE])
        self.assertEqual(item.status, QueueStatus.DOWNLOADED)
        self.assertTrue(item.fetched)
        self.assertEqual(item.state_data['contentLength'], 512)
        self.assertEqual(item.state_data['contentType'], 'text/html')
        self.assertEqual(item.state_data['code'], 200)
        self.assertEqual(item.state_data['headers'], response.headers)
        self.assertEqual(item.state_data['requestLatency'], item.state_data['requestTime'])
        self.assertGreaterEqual(item.state_data['requestLatency'], 0)

    async def test_fetch_complete_payload(self):
        """Test that fetchcomplete carries the item, body and normalized response."""
        response = FakeResponse(URL, status=201)
        crawler = self.make_crawler({URL: response}, body='<p>body</p>')
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        name, (queue_item, body, emitted) = self.events[-1]
        self.assertEqual(name, Events.FETCH_COMPLETE)
        self.assertIs(queue_item, item)
        self.assertEqual(body, '<p>body</p>')
        self.assertIsInstance(emitted, NormalizedResponse)
        self.assertEqual(emitted.status_code, 201)
        self.assertIs(emitted.raw, response)
        self.assertIs(emitted.req.raw, response.request)

    async def test_navigation_options(self):
        """Test that navigation is bounded by the crawl timeout and waits for network idle."""
        crawler = self.make_crawler({URL: FakeResponse(URL)}, timeout=1234)
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.page.goto.assert_awaited_once_with(URL, timeout=1234, wait_until='networkidle')

    async def test_unparsable_content_length_is_zero(self):
        """Test that a missing or invalid content-length is recorded as 0."""
        crawler = self.make_crawler({URL: FakeResponse(URL, headers={'content-length': 'abc'})})
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(item.state_data['contentLength'], 0)

    async def test_open_request_is_released_and_page_closed(self):
        """Test that the open request set is back to its size and the page is closed once."""
        crawler = self.make_crawler({URL: FakeResponse(URL)})
        sizes = []
        crawler.on(Events.FETCH_HEADERS, lambda *args: sizes.append(len(crawler.open_requests)))
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(sizes, [1])
        self.assertEqual(len(crawler.open_requests), 0)
        self.page.close.assert_awaited_once()

    async def test_spooled_before_browser_is_acquired(self):
        """Test that the item is spooled before the browser is requested."""
        crawler = self.make_crawler({URL: FakeResponse(URL)})
        item = crawler.queue.add(URL)
        statuses = []

        async def browser():
            statuses.append(item.status)
            return self.browser

        self.session.browser.side_effect = browser

        await crawler.fetch(item)

        self.assertEqual(statuses, [QueueStatus.SPOOLED])

    async def test_concurrent_fetches_share_open_requests(self):
        """Test that concurrent fetch cycles each add and remove only their own request."""
        urls = [f'https://example.com/page{i}' for i in range(3)]
        crawler = self.make_crawler({url: FakeResponse(url) for url in urls})
        items = [crawler.queue.add(url) for url in urls]

        await asyncio.gather(*(crawler.fetch(item) for item in items))

        self.assertEqual(len(crawler.open_requests), 0)
        self.assertTrue(all(item.status == QueueStatus.DOWNLOADED for item in items))
        self.assertEqual(event_names(self.events).count(Events.FETCH_COMPLETE), 3)
        for page in self.browser.pages:
            page.close.assert_awaited_once()


class TestFailedFetch(FetchClientTestCase):

    async def test_timeout(self):
        """Test that a timeout marks the item and reports the configured timeout."""
        crawler = self.make_crawler({URL: PlaywrightTimeoutError("Timeout 30000ms exceeded.")}, timeout=30000)
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(self.events, [(Events.FETCH_TIMEOUT, (item, 30000))])
        self.assertEqual(item.status, QueueStatus.TIMEOUT)
        self.assertTrue(item.fetched)
        self.assertNotIn('code', item.state_data)
        self.assertEqual(len(crawler.open_requests), 0)
        self.page.close.assert_awaited_once()

    async def test_timeout_is_matched_by_message(self):
        """Test that any error mentioning a timeout is treated as one."""
        crawler = self.make_crawler({URL: RuntimeError("Navigation TIMEOUT while loading")})
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(item.status, QueueStatus.TIMEOUT)

    async def test_generic_error(self):
        """Test that other navigation errors fail the item with code 600."""
        error = RuntimeError("net::ERR_NAME_NOT_RESOLVED")
        crawler = self.make_crawler({URL: error})
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(self.events, [(Events.FETCH_CLIENT_ERROR, (item, error))])
        self.assertEqual(item.status, QueueStatus.FAILED)
        self.assertTrue(item.fetched)
        self.assertEqual(item.state_data['code'], 600)
        self.assertEqual(len(crawler.open_requests), 0)
        self.page.close.assert_awaited_once()

    async def test_generic_error_reported_when_queue_update_fails(self):
        """Test that fetchclienterror is emitted and the page closed even if the queue rejects the update."""
        error = RuntimeError("net::ERR_CONNECTION_REFUSED")
        queue = FlakyQueue(lambda fields: fields.get('status') == QueueStatus.FAILED)
        crawler = self.make_crawler({URL: error}, queue=queue)
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(event_names(self.events), [Events.QUEUE_ERROR, Events.FETCH_CLIENT_ERROR])
        self.assertIsInstance(self.events[0][1][0], QueueError)
        self.assertIs(self.events[1][1][1], error)
        self.assertEqual(item.status, QueueStatus.SPOOLED)
        self.page.close.assert_awaited_once()

    async def test_timeout_queue_failure_still_cleans_up(self):
        """Test that a failing timeout update reports a queue error and closes the page."""
        queue = FlakyQueue(lambda fields: fields.get('status') == QueueStatus.TIMEOUT)
        crawler = self.make_crawler({URL: PlaywrightTimeoutError("Timeout 10ms exceeded.")}, queue=queue)
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(event_names(self.events), [Events.QUEUE_ERROR])
        self.page.close.assert_awaited_once()

    async def test_missing_response_fails_item(self):
        """Test that a navigation without a response is a client error."""
        crawler = self.make_crawler({URL: None})
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(item.status, QueueStatus.FAILED)
        self.assertEqual(event_names(self.events), [Events.FETCH_CLIENT_ERROR])
        self.page.close.assert_awaited_once()

    async def test_spool_failure_aborts(self):
        """Test that a failing spool update stops the fetch cycle."""
        queue = FlakyQueue(lambda fields: fields.get('status') == QueueStatus.SPOOLED)
        crawler = self.make_crawler({URL: FakeResponse(URL)}, queue=queue)
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(event_names(self.events), [Events.QUEUE_ERROR])
        self.assertIs(self.events[0][1][1], item)
        self.assertEqual(item.status, QueueStatus.QUEUED)
        self.session.browser.assert_not_awaited()

    async def test_browser_launch_failure(self):
        """Test that a launch failure fails the item and propagates."""
        error = BrowserLaunchError("chromium not installed")
        crawler = Crawler(session=FakeSession(error=error))
        events = record_events(crawler)
        item = crawler.queue.add(URL)

        with self.assertRaises(BrowserLaunchError):
            await crawler.fetch(item)

        self.assertEqual(events, [(Events.FETCH_CLIENT_ERROR, (item, error))])
        self.assertEqual(item.status, QueueStatus.FAILED)
        self.assertEqual(item.state_data['code'], 600)

    async def test_page_open_failure(self):
        """Test that a page that cannot be opened fails the item."""
        crawler = self.make_crawler({URL: FakeResponse(URL)})
        self.browser.new_page.side_effect = RuntimeError("Target closed")
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(item.status, QueueStatus.FAILED)
        self.assertEqual(event_names(self.events), [Events.FETCH_CLIENT_ERROR])


class TestHandleResponse(FetchClientTestCase):

    async def test_headers_update_failure_still_completes(self):
        """Test that a failing state data update skips fetchheaders only."""
        queue = FlakyQueue(lambda fields: 'state_data' in fields)
        crawler = self.make_crawler({URL: FakeResponse(URL)}, queue=queue)
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(event_names(self.events), [Events.QUEUE_ERROR, Events.FETCH_COMPLETE])
        self.assertEqual(item.status, QueueStatus.DOWNLOADED)
        self.assertEqual(len(crawler.open_requests), 0)

    async def test_downloaded_update_failure_releases_request(self):
        """Test that a failing downloaded update still cleans up the open request."""
        queue = FlakyQueue(lambda fields: fields.get('status') == QueueStatus.DOWNLOADED)
        crawler = self.make_crawler({URL: FakeResponse(URL)}, queue=queue)
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(event_names(self.events), [Events.FETCH_HEADERS, Events.QUEUE_ERROR])
        self.assertEqual(len(crawler.open_requests), 0)
        self.page.content.assert_not_awaited()
        self.page.close.assert_awaited_once()

    async def test_body_read_failure(self):
        """Test that a failing body read is reported and cleaned up."""
        crawler = self.make_crawler({URL: FakeResponse(URL)})
        item = crawler.queue.add(URL)
        error = RuntimeError("Execution context was destroyed")

        async def new_page(**kwargs):
            page = await FakeBrowser._new_page(self.browser, **kwargs)
            page.content.side_effect = error
            return page

        self.browser.new_page.side_effect = new_page

        await crawler.fetch(item)

        self.assertEqual(event_names(self.events), [Events.FETCH_HEADERS, Events.FETCH_CLIENT_ERROR])
        self.assertEqual(len(crawler.open_requests), 0)
        self.page.close.assert_awaited_once()

    async def test_unknown_open_request_is_an_error(self):
        """Test that cleanup refuses a response whose request was never opened, but closes the page."""
        crawler = self.make_crawler({})
        item = crawler.queue.add(URL)
        page = MagicMock()
        page.content = AsyncMock(return_value='')
        page.close = AsyncMock()

        with self.assertRaises(OpenRequestError):
            await crawler.fetch_client.handle_response(item, FakeResponse(URL), None, page)

        page.close.assert_awaited_once()


class TestAuthentication(FetchClientTestCase):

    async def test_basic_credentials_for_host(self):
        """Test that the stored basic credentials are resolved for the host."""
        crawler = self.make_crawler({})
        crawler.authentications.set_basic_auth('example.com', 'alice', 's3cret')

        credentials = crawler.fetch_client._basic_auth_credentials('example.com')

        self.assertEqual(credentials, {'username': 'alice', 'password': 's3cret'})

    async def test_credentials_lookup_ignores_host_case(self):
        """Test that hosts reported in mixed case still find their credentials."""
        crawler = self.make_crawler({})
        crawler.authentications.set_basic_auth('Example.COM', 'alice', 's3cret')

        self.assertEqual(crawler.fetch_client._basic_auth_credentials('example.com'),
                         {'username': 'alice', 'password': 's3cret'})
        self.assertEqual(crawler.fetch_client._basic_auth_credentials('EXAMPLE.com'),
                         {'username': 'alice', 'password': 's3cret'})

    async def test_x509_and_missing_entries_give_no_credentials(self):
        """Test that certificate entries and unknown hosts are not applied."""
        crawler = self.make_crawler({})
        crawler.authentications.set_x509_auth('example.com', '/certs/client.p12', 'phrase')

        self.assertIsNone(crawler.fetch_client._basic_auth_credentials('example.com'))
        self.assertIsNone(crawler.fetch_client._basic_auth_credentials('other.com'))

    async def test_page_authentication_uses_stored_credentials(self):
        """Test that the page is opened with credentials scoped to the item's origin."""
        crawler = self.make_crawler({URL: FakeResponse(URL)})
        crawler.authentications.set_basic_auth('example.com', 'alice', 's3cret')
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.browser.new_page.assert_awaited_once_with(
            ignore_https_errors=False,
            http_credentials={'username': 'alice', 'password': 's3cret', 'origin': 'https://example.com'},
        )
        self.page.route.assert_not_awaited()
        self.assertEqual(item.status, QueueStatus.DOWNLOADED)

    async def test_credentials_origin_keeps_explicit_port(self):
        url = 'https://example.com:8443/app'
        crawler = self.make_crawler({url: FakeResponse(url)})
        crawler.authentications.set_basic_auth('example.com', 'alice', 's3cret')
        item = crawler.queue.add(url)

        await crawler.fetch(item)

        credentials = self.browser.new_page.await_args.kwargs['http_credentials']
        self.assertEqual(credentials['origin'], 'https://example.com:8443')

    async def test_mixed_case_queue_host_is_authenticated(self):
        """Test that an item whose host is not lowercase still gets credentials."""
        crawler = self.make_crawler({URL: FakeResponse(URL)})
        crawler.authentications.set_basic_auth('example.com', 'alice', 's3cret')
        item = crawler.queue.add(URL)
        item.host = 'Example.com'

        await crawler.fetch(item)

        self.assertIn('http_credentials', self.browser.new_page.await_args.kwargs)

    async def test_no_authentication_without_entry(self):
        """Test that pages for hosts without credentials get no credentials."""
        crawler = self.make_crawler({URL: FakeResponse(URL)})
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.browser.new_page.assert_awaited_once_with(ignore_https_errors=False)

    async def test_authentication_failure_fails_item(self):
        """Test that an error while resolving credentials fails the item before a page is opened."""
        crawler = self.make_crawler({URL: FakeResponse(URL)})
        crawler.authentications.set_basic_auth('example.com', 'alice', 's3cret')
        crawler.fetch_client._authenticate = MagicMock(side_effect=RuntimeError("bad credentials"))
        item = crawler.queue.add(URL)

        await crawler.fetch(item)

        self.assertEqual(item.status, QueueStatus.FAILED)
        self.assertEqual(event_names(self.events), [Events.FETCH_CLIENT_ERROR])
        self.assertEqual(self.browser.pages, [])


class TestCancelledFetch(FetchClientTestCase):

    async def test_cancelled_navigation_closes_page(self):
        """Test that a fetch cancelled during navigation still closes its page."""
        crawler = self.make_crawler({URL: asyncio.CancelledError()})
        item = crawler.queue.add(URL)

        with self.assertRaises(asyncio.CancelledError):
            await crawler.fetch(item)

        self.page.close.assert_awaited_once()
        self.assertEqual(len(crawler.open_requests), 0)
        self.assertEqual(item.status, QueueStatus.SPOOLED)
        self.assertEqual(self.events, [])

    async def test_cancelled_task_closes_page(self):
        """Test that cancelling the fetching task while navigation is pending closes the page."""
        crawler = self.make_crawler({})
        navigating = asyncio.Event()

        async def goto(url, **kwargs):
            navigating.set()
            await asyncio.sleep(3600)

        async def new_page(**kwargs):
            page = await FakeBrowser._new_page(self.browser, **kwargs)
            page.goto.side_effect = goto
            return page

        self.browser.new_page.side_effect = new_page
        item = crawler.queue.add(URL)

        task = asyncio.ensure_future(crawler.fetch(item))
        await navigating.wait()
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.page.close.assert_awaited_once()


if __name__ == '__main__':
    unittest.main()
