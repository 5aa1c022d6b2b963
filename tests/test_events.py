"""
Tests for the event emitter.
"""

import asyncio
import unittest

from headless_fetch.core.events import EventEmitter, Events


class TestEventEmitter(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.emitter = EventEmitter()
        self.calls = []

    def test_listeners_called_in_registration_order(self):
        self.emitter.on(Events.FETCH_COMPLETE, lambda *args: self.calls.append(('first', args)))
        self.emitter.on(Events.FETCH_COMPLETE, lambda *args: self.calls.append(('second', args)))

        delivered = self.emitter.emit(Events.FETCH_COMPLETE, 'item', 'body', 'response')

        self.assertTrue(delivered)
        self.assertEqual(self.calls, [('first', ('item', 'body', 'response')),
                                      ('second', ('item', 'body', 'response'))])

    def test_emit_without_listeners(self):
        self.assertFalse(self.emitter.emit(Events.FETCH_TIMEOUT, 'item', 1000))

    def test_failing_listener_does_not_stop_delivery(self):
        """Test that a raising listener is skipped and later listeners still run."""
        def broken(*args):
            raise ValueError("listener bug")

        self.emitter.on(Events.QUEUE_ERROR, broken)
        self.emitter.on(Events.QUEUE_ERROR, lambda *args: self.calls.append(args))

        with self.assertLogs('events', level='ERROR'):
            self.emitter.emit(Events.QUEUE_ERROR, 'error', 'item')

        self.assertEqual(self.calls, [('error', 'item')])

    def test_once_and_off(self):
        listener = lambda *args: self.calls.append(args)
        self.emitter.once(Events.FETCH_HEADERS, listener)
        self.emitter.emit(Events.FETCH_HEADERS, 1)
        self.emitter.emit(Events.FETCH_HEADERS, 2)
        self.assertEqual(self.calls, [(1,)])

        self.emitter.on(Events.FETCH_HEADERS, listener)
        self.emitter.off(Events.FETCH_HEADERS, listener)
        self.emitter.emit(Events.FETCH_HEADERS, 3)
        self.assertEqual(self.calls, [(1,)])

    def test_on_works_as_decorator(self):
        @self.emitter.on(Events.FETCH_TIMEOUT)
        def on_timeout(item, timeout):
            self.calls.append(timeout)

        self.emitter.emit(Events.FETCH_TIMEOUT, 'item', 500)
        self.assertEqual(self.calls, [500])

    async def test_coroutine_listeners_are_scheduled(self):
        """Test that coroutine listeners run as tasks and can be drained."""
        async def listener(item):
            await asyncio.sleep(0)
            self.calls.append(item)

        self.emitter.on(Events.FETCH_CLIENT_ERROR, listener)
        self.emitter.emit(Events.FETCH_CLIENT_ERROR, 'item')
        self.assertEqual(self.calls, [])

        await self.emitter.drain()
        self.assertEqual(self.calls, ['item'])


if __name__ == '__main__':
    unittest.main()
