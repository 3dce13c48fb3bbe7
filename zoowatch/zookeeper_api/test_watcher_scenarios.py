import logging
import unittest

import zoowatch.config.settings
import zoowatch.tools.common
from zoowatch.zookeeper_api import watcher_fixture

_logger = logging.getLogger(__name__)

SETTINGS = zoowatch.config.settings.Settings()


@unittest.skipUnless(SETTINGS.operator(), 'set ZOOWATCH_OPERATOR=true and run ZooKeeper to drive these from zkCli.sh')
class TestWatcherScenarios(unittest.TestCase):

    """Operator driven, run each test on its own and create the printed paths from zkCli.sh while it waits."""

    @classmethod
    def setUpClass(cls):
        zoowatch.tools.common.configure_logging(SETTINGS.logging_level())
        _logger.info('Settings {}'.format(SETTINGS))

    def test_watchers(self):
        """Create /one then /two, the global watcher and the exists watcher each print one event."""
        fixture = watcher_fixture.run('two_paths', **SETTINGS.kwargs())
        self.assertTrue(fixture.event_sink().released())

    def test_global_watcher_at_most_trigger_once(self):
        """Two global watches are set on /three, create it and one event is printed by the global watcher."""
        fixture = watcher_fixture.run('duplicate_global', **SETTINGS.kwargs())
        self.assertEqual(fixture.event_sink().signals(), 1)

    def test_explicit_watcher_at_most_trigger_once(self):
        """Two exists watchers are set on /four, create it and one event is printed by an exists watcher."""
        fixture = watcher_fixture.run('duplicate_path', **SETTINGS.kwargs())
        self.assertEqual(fixture.event_sink().signals(), 1)


if __name__ == '__main__':
    unittest.main()
