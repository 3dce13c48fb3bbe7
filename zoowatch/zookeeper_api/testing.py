import collections
import logging
import queue
import threading
import time
import typing

from kazoo.exceptions import BadVersionError, ConnectionClosedError, NodeExistsError, NoNodeError
from kazoo.handlers.threading import KazooTimeoutError
from kazoo.protocol.states import EventType, KazooState, KeeperState, WatchedEvent, ZnodeStat

_logger = logging.getLogger(__name__)


class FakeKazooClient(object):

    """In memory stand in for kazoo.client.KazooClient, only what the watcher harness uses.

    Like kazoo, data watchers are kept in a set per path, popped when an event fires and called on a callback thread.
    create()/set() play the part of the operator's shell."""

    def __init__(self, hosts: str = '127.0.0.1:2181', timeout: float = 10.0, **kwargs) -> None:
        super().__init__()
        self.hosts = hosts
        self.timeout = timeout

        self.__lock = threading.RLock()
        self.__nodes: typing.Dict[str, int] = dict()
        self.__data_watchers: typing.Dict[str, set] = collections.defaultdict(set)
        self.__listeners: typing.List[typing.Callable] = list()

        self.__callbacks = queue.Queue()
        self.__callback_thread: threading.Thread = None
        self.callback_threads: typing.Set[str] = set()

        self.started = False
        self.closed = False

    # Session.

    def add_listener(self, listener: typing.Callable):
        self.__listeners.append(listener)

    def start(self, timeout: float = 15):
        self.__callback_thread = threading.Thread(target=self.__dispatch, name='fake-kazoo-callback', daemon=True)
        self.__callback_thread.start()
        self.started = True
        self._connected()

    def _connected(self):
        self.__change_state(KazooState.CONNECTED)

    def stop(self):
        if not self.started:
            return
        self.started = False
        with self.__lock:
            watchers = [w for ws in self.__data_watchers.values() for w in ws]
            self.__data_watchers.clear()
        event = WatchedEvent(EventType.NONE, KeeperState.CLOSED, None)
        for watcher in watchers:
            self.__callbacks.put((watcher, event))
        self.__change_state(KazooState.LOST)
        self.__callbacks.put(None)
        self.__callback_thread.join(5)

    def close(self):
        self.closed = True

    def __change_state(self, state: str):
        for listener in list(self.__listeners):
            self.__callbacks.put((listener, state))

    def __dispatch(self):
        while True:
            item = self.__callbacks.get()
            try:
                if item is None:
                    return
                func, arg = item
                self.callback_threads.add(threading.current_thread().name)
                func(arg)
            except Exception:
                _logger.exception('Callback failed')
            finally:
                self.__callbacks.task_done()

    def drain(self):
        """Wait for queued callbacks to run."""
        self.__callbacks.join()

    # Nodes.

    def __check(self):
        if not self.started:
            raise ConnectionClosedError('Connection has been closed')

    def __stat(self, path: str) -> ZnodeStat:
        return ZnodeStat(0, 0, 0, 0, self.__nodes[path], 0, 0, 0, 0, 0, 0)

    def __fire(self, path: str, event_type: str):
        with self.__lock:
            watchers = self.__data_watchers.pop(path, set())
        event = WatchedEvent(event_type, KeeperState.CONNECTED, path)
        for watcher in watchers:
            self.__callbacks.put((watcher, event))

    def exists(self, path: str, watch: typing.Callable = None):
        self.__check()
        if watch is not None and not callable(watch):
            raise TypeError('Invalid type for watch (must be a callable): {}'.format(type(watch)))
        with self.__lock:
            if watch is not None:
                self.__data_watchers[path].add(watch)
            if path not in self.__nodes:
                return None
            return self.__stat(path)

    def create(self, path: str, value: bytes = b''):
        self.__check()
        with self.__lock:
            if path in self.__nodes:
                raise NodeExistsError()
            self.__nodes[path] = 0
        self.__fire(path, EventType.CREATED)
        return path

    def set(self, path: str, value: bytes = b'', version: int = -1):
        self.__check()
        with self.__lock:
            if path not in self.__nodes:
                raise NoNodeError()
            if version != -1 and version != self.__nodes[path]:
                raise BadVersionError()
            self.__nodes[path] += 1
            stat = self.__stat(path)
        self.__fire(path, EventType.CHANGED)
        return stat

    def delete(self, path: str, version: int = -1, recursive: bool = False):
        self.__check()
        with self.__lock:
            if path not in self.__nodes:
                raise NoNodeError()
            if version != -1 and version != self.__nodes[path]:
                raise BadVersionError()
            del self.__nodes[path]
        self.__fire(path, EventType.DELETED)
        return True

    def nodes(self) -> typing.List[str]:
        with self.__lock:
            return sorted(self.__nodes)

    def watchers(self, path: str) -> int:
        with self.__lock:
            return len(self.__data_watchers.get(path, ()))


class UnreachableKazooClient(FakeKazooClient):

    def start(self, timeout: float = 15):
        raise KazooTimeoutError('Connection time-out')


class NeverConnectedKazooClient(FakeKazooClient):

    """Starts, but never reports the session as connected."""

    def _connected(self):
        pass


class Operator(threading.Thread):

    """Plays the operator at the shell, creates each path once a watch is armed on it."""

    def __init__(self, client: FakeKazooClient, *paths: str, timeout: float = 5, go: threading.Event = None) -> None:
        super().__init__(name='operator', daemon=True)
        self.client = client
        self.go = go
        self.paths = paths
        self.timeout = timeout
        self.created: typing.List[str] = list()

    def run(self):
        deadline = time.monotonic() + self.timeout
        if self.go is not None and not self.go.wait(self.timeout):
            _logger.warning('Never told to go.')
            return
        for path in self.paths:
            while self.client.watchers(path) == 0:
                if time.monotonic() > deadline:
                    _logger.warning('No watch armed on [{}]'.format(path))
                    return
                time.sleep(0.01)
            self.client.create(path)
            self.created.append(path)
