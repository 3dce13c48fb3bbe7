import io
import threading
import unittest
import unittest.mock

from zoowatch.common.gate import GateError
from zoowatch.zookeeper_api import watcher_fixture
from zoowatch.zookeeper_api.events import EventKind
from zoowatch.zookeeper_api.session import SessionNotReady, UsingKazoo
from zoowatch.zookeeper_api.testing import FakeKazooClient, NeverConnectedKazooClient, Operator, UnreachableKazooClient
from zoowatch.zookeeper_api.watcher_fixture import WatcherFixture

KWARGS = {'kazoo_client_class': FakeKazooClient, 'wait_timeout': 5}


def created(watcher) -> int:
    return len([e for e in watcher.events() if e.kind is EventKind.NODE_CREATED])


class TestWatcherFixture(unittest.TestCase):

    def setUp(self):
        self.stdout = unittest.mock.patch('sys.stdout', new_callable=io.StringIO).start()
        self.addCleanup(unittest.mock.patch.stopall)

        # The operator starts creating paths once the fixture prints its instructions.
        self.go = threading.Event()
        instruct = WatcherFixture.instruct

        def told(fixture, *paths):
            instruct(fixture, *paths)
            self.go.set()

        unittest.mock.patch.object(WatcherFixture, 'instruct', autospec=True, side_effect=told).start()

    def run_scenario(self, scenario, *paths):
        fixture = WatcherFixture(**KWARGS)
        fixture.set_up()
        client: FakeKazooClient = fixture.session().kazoo_client
        operator = Operator(client, *paths, go=self.go)
        operator.start()
        try:
            watched = scenario(fixture)
        finally:
            fixture.tear_down()
        operator.join(5)
        self.assertEqual(operator.created, list(paths))
        self.assertEqual(watched, list(paths))
        self.assertEqual(client.nodes(), [])
        self.assertIsNone(fixture.session())
        self.assertIn('closing ZooKeeper...', self.stdout.getvalue())
        return fixture

    def test_session_ready_before_first_operation(self):
        with WatcherFixture(**KWARGS) as fixture:
            self.assertTrue(fixture.global_watcher().ready())
            fixture.session().exists('/one')
        self.assertEqual(fixture.global_watcher().ready_gate().signals(), 1)

    def test_two_paths(self):
        fixture = self.run_scenario(WatcherFixture.two_paths, '/one', '/two')
        self.assertTrue(fixture.event_sink().released())
        self.assertEqual(created(fixture.global_watcher()), 1)
        self.assertEqual([created(w) for w in fixture.path_watchers()], [1])
        self.assertIn('create /one; create /two', self.stdout.getvalue())

    def test_duplicate_global(self):
        fixture = self.run_scenario(WatcherFixture.duplicate_global, '/three')
        self.assertEqual(fixture.event_sink().signals(), 1)
        self.assertEqual(created(fixture.global_watcher()), 1)
        self.assertIn('/three stat for the second exists: None', self.stdout.getvalue())

    def test_duplicate_path(self):
        fixture = self.run_scenario(WatcherFixture.duplicate_path, '/four')
        self.assertEqual(fixture.event_sink().signals(), 1)
        self.assertEqual(sum(created(w) for w in fixture.path_watchers()), 1)
        self.assertEqual(len(fixture.path_watchers()), 2)
        self.assertIn('create /four', self.stdout.getvalue())

    def test_run_by_name(self):
        threading.Thread(target=self.create_when_told, args=('/three',), daemon=True).start()
        fixture = watcher_fixture.run('duplicate_global', **KWARGS, session_class=CapturingSession)
        self.assertTrue(fixture.event_sink().released())
        self.assertIsNone(fixture.session())

    def create_when_told(self, path):
        if self.go.wait(5):
            CapturingSession.client.create(path)

    def test_absent_paths_tolerated_on_tear_down(self):
        fixture = WatcherFixture(**dict(KWARGS, wait_timeout=0.05))
        fixture.set_up()
        client: FakeKazooClient = fixture.session().kazoo_client
        with self.assertRaises(TimeoutError):
            fixture.two_paths()
        with self.assertLogs(watcher_fixture.__name__, level='INFO') as logs:
            fixture.tear_down()
        self.assertEqual(fixture.watched(), ['/one', '/two'])
        self.assertIsNone(fixture.session())
        self.assertTrue(client.closed)
        self.assertIn('Not deleting [/one]', '\n'.join(logs.output))
        self.assertIn('Not deleting [/two]', '\n'.join(logs.output))

    def test_tear_down_without_set_up(self):
        WatcherFixture(**KWARGS).tear_down('/one')

    def test_arm_twice_fails_loudly(self):
        with WatcherFixture(**KWARGS) as fixture:
            fixture.arm(1)
            with self.assertRaises(GateError):
                fixture.arm(1)

    def test_unreachable(self):
        with self.assertRaises(SessionNotReady):
            WatcherFixture(kazoo_client_class=UnreachableKazooClient).set_up()

    def test_never_connected(self):
        fixture = WatcherFixture(kazoo_client_class=NeverConnectedKazooClient, connect_timeout=0.05)
        with self.assertRaises(SessionNotReady):
            fixture.set_up()
        self.assertIsNone(fixture.session().kazoo_client)


class CapturingSession(UsingKazoo):

    client: FakeKazooClient = None

    def start(self) -> bool:
        started = super().start()
        CapturingSession.client = self.kazoo_client
        return started


if __name__ == '__main__':
    unittest.main()
