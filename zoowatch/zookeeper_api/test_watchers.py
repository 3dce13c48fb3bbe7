import unittest

from zoowatch.common.gate import CountingGate
from zoowatch.zookeeper_api.events import Event, EventKind, SessionState
from zoowatch.zookeeper_api.watchers import GlobalWatcher, PathWatcher

CONNECTED = Event(EventKind.SESSION, SessionState.SYNC_CONNECTED)
DISCONNECTED = Event(EventKind.SESSION, SessionState.DISCONNECTED)


def created(path: str) -> Event:
    return Event(EventKind.NODE_CREATED, SessionState.SYNC_CONNECTED, path)


class TestGlobalWatcher(unittest.TestCase):

    def test_ready_released_once(self):
        global_watcher = GlobalWatcher(CountingGate())
        self.assertFalse(global_watcher.ready())
        global_watcher.process(DISCONNECTED)
        self.assertFalse(global_watcher.ready())
        global_watcher.process(CONNECTED)
        global_watcher.process(CONNECTED)
        self.assertTrue(global_watcher.ready())
        self.assertTrue(global_watcher.await_ready(0))
        self.assertEqual(global_watcher.ready_gate().signals(), 1)

    def test_node_created_signals_sink(self):
        sink = CountingGate().arm(2)
        global_watcher = GlobalWatcher(sink)
        global_watcher.process(CONNECTED)
        self.assertEqual(sink.remaining(), 2)
        global_watcher.process(created('/one'))
        self.assertEqual(sink.remaining(), 1)

    def test_other_events_ignored(self):
        sink = CountingGate().arm(1)
        global_watcher = GlobalWatcher(sink)
        global_watcher.process(Event(EventKind.NODE_DELETED, SessionState.SYNC_CONNECTED, '/one'))
        global_watcher.process(Event(EventKind.NODE_DATA_CHANGED, SessionState.SYNC_CONNECTED, '/one'))
        self.assertEqual(sink.remaining(), 1)
        self.assertEqual(len(global_watcher.events()), 2)
        self.assertEqual(global_watcher.failures(), 0)


class TestPathWatcher(unittest.TestCase):

    def test_node_created_signals_sink(self):
        sink = CountingGate().arm(1)
        path_watcher = PathWatcher(sink)
        path_watcher.process(CONNECTED)
        self.assertFalse(sink.released())
        path_watcher.process(created('/two'))
        self.assertTrue(sink.released())
        self.assertEqual(path_watcher.events(), [CONNECTED, created('/two')])

    def test_callback_failure_is_contained(self):
        global_watcher = GlobalWatcher(None)
        global_watcher.process(created('/three'))
        self.assertEqual(global_watcher.failures(), 1)


if __name__ == '__main__':
    unittest.main()
