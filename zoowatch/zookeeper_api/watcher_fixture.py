import contextlib
import logging
import sys
import typing

from kazoo.exceptions import KazooException, NoNodeError

import zoowatch.common.gate
import zoowatch.config.settings
import zoowatch.tools.common
from zoowatch.zookeeper_api.session import AbstractSession, SessionNotReady, UsingKazoo
from zoowatch.zookeeper_api.watchers import GlobalWatcher, PathWatcher

_logger = logging.getLogger(__name__)

SESSION_CLASS: str = 'session_class'


class WatcherFixture(contextlib.AbstractContextManager):

    """One session, one global watcher and one event sink per test.

    The fixture never creates znodes, an operator creates them from a shell (e.g. zkCli.sh) while wait() blocks.
    tear_down() deletes whatever the test watched and always closes the session."""

    def __init__(self, **kwargs) -> None:
        super().__init__()

        self._kwargs = kwargs

        self.__event_sink = zoowatch.common.gate.CountingGate('event-sink')
        self.__global_watcher = GlobalWatcher(self.__event_sink)
        self.__session: AbstractSession = None
        self.__path_watchers: typing.List[PathWatcher] = list()
        self.__watched: typing.List[str] = list()

    def __enter__(self):
        self.set_up()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.tear_down()

    def get_kv(self, k: str, v: object = None) -> object:
        return self._kwargs.get(k, v)

    def session(self) -> AbstractSession:
        return self.__session

    def event_sink(self) -> zoowatch.common.gate.CountingGate:
        return self.__event_sink

    def global_watcher(self) -> GlobalWatcher:
        return self.__global_watcher

    def path_watchers(self) -> typing.List[PathWatcher]:
        return list(self.__path_watchers)

    def set_up(self):
        session_class = self.get_kv(SESSION_CLASS) or UsingKazoo
        self.__session = session_class(self.__global_watcher, **self._kwargs)
        if not self.__session.start():
            raise SessionNotReady('Failed to connect to [{}]'.format(self.__session.hosts()))
        # Connect timeout also bounds the wait for synced-connected.
        if not self.__global_watcher.await_ready(self.__session.connect_timeout()):
            self.__session.stop()
            raise SessionNotReady('No synced-connected event from [{}]'.format(self.__session.hosts()))
        _logger.info('Session ready [{}].'.format(self.__session))

    def arm(self, count: int) -> zoowatch.common.gate.CountingGate:
        return self.__event_sink.arm(count)

    def watched(self) -> typing.List[str]:
        return list(self.__watched)

    def __watch(self, path: str):
        if path not in self.__watched:
            self.__watched.append(path)

    def watch_global(self, path: str, label: str = None):
        """Existence check on path using the session's global watcher."""
        self.__watch(path)
        stat = self.__session.exists(path, True)
        if label:
            print('{} stat for the {} exists: {}'.format(path, label, stat))
        return stat

    def watch_path(self, path: str, label: str = None):
        """Existence check on path with a fresh path watcher."""
        watcher = PathWatcher(self.__event_sink)
        self.__path_watchers.append(watcher)
        self.__watch(path)
        stat = self.__session.exists(path, watcher)
        if label:
            print('{} stat for the {} exists: {}'.format(path, label, stat))
        return stat

    def instruct(self, *paths: str):
        print('Waiting for [{}] event(s), in zkCli.sh issue: {}'.format(
            self.__event_sink.remaining(), '; '.join('create {}'.format(path) for path in paths)))
        sys.stdout.flush()

    def wait(self) -> bool:
        """Block until the event sink is released, forever unless a wait_timeout is configured."""
        return self.__event_sink.wait(self.get_kv(zoowatch.config.settings.WAIT_TIMEOUT))

    def wait_or_fail(self):
        if not self.wait():
            raise TimeoutError('Gave up waiting, [{}]'.format(self.__event_sink))

    def delete(self, path: str) -> bool:
        """Delete path whatever its version, an absent node is not an error."""
        try:
            self.__session.delete_node(path, -1)
            return True
        except NoNodeError:
            _logger.info('Not deleting [{}], it does not exist.'.format(path))
        except KazooException as exception:
            zoowatch.tools.common.log_exception(exception, logger=_logger, path=path)
        return False

    def tear_down(self, *paths: str):
        """Delete paths, by default every watched path, then close the session."""
        if self.__session is None:
            return
        try:
            for path in paths or self.watched():
                self.delete(path)
        finally:
            self.__session.stop()
            self.__session = None

    # Scenarios, each returns the paths it watched.

    def two_paths(self) -> typing.List[str]:
        """The global watcher on /one and a path watcher on /two, one event each."""
        one_path = '/one'
        two_path = '/two'
        self.arm(2)
        self.watch_global(one_path)
        self.watch_path(two_path)
        self.instruct(one_path, two_path)
        self.wait_or_fail()
        return [one_path, two_path]

    def duplicate_global(self) -> typing.List[str]:
        """The global watcher set twice on /three, at most one triggers."""
        path = '/three'
        self.arm(1)
        self.watch_global(path, 'first')
        self.watch_global(path, 'second')
        self.instruct(path)
        self.wait_or_fail()
        return [path]

    def duplicate_path(self) -> typing.List[str]:
        """Two path watchers set on /four, at most one triggers."""
        path = '/four'
        self.arm(1)
        self.watch_path(path, 'first')
        self.watch_path(path, 'second')
        self.instruct(path)
        self.wait_or_fail()
        return [path]


SCENARIOS: typing.Dict[str, typing.Callable[[WatcherFixture], typing.List[str]]] = {
    'two_paths': WatcherFixture.two_paths,
    'duplicate_global': WatcherFixture.duplicate_global,
    'duplicate_path': WatcherFixture.duplicate_path
}


def run(name: str, **kwargs) -> WatcherFixture:
    """Run the named scenario on its own session, deleting its paths and closing the session afterwards."""
    scenario = SCENARIOS[name]
    with WatcherFixture(**kwargs) as fixture:
        scenario(fixture)
    return fixture
