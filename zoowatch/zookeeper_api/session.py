import abc
import contextlib
import logging
import threading
import typing

import kazoo.protocol.states
from kazoo.client import KazooClient
from kazoo.exceptions import KazooException
from kazoo.handlers.threading import KazooTimeoutError

from zoowatch.zookeeper_api.events import Event
from zoowatch.zookeeper_api.watchers import AbstractWatcher, GlobalWatcher

_logger = logging.getLogger(__name__)

ZOOKEEPER_HOSTS: str = 'zookeeper_hosts'
ZOOKEEPER_LOCALHOST: str = 'localhost:2181'
CONNECT_TIMEOUT: str = 'connect_timeout'
CONNECT_TIMEOUT_DEFAULT: float = 15.0
SESSION_TIMEOUT: str = 'session_timeout'
SESSION_TIMEOUT_DEFAULT: float = 10.0
KAZOO_CLIENT_CLASS: str = 'kazoo_client_class'

GLOBAL: str = 'global'
PATH: str = 'path'

Watch = typing.Union[None, bool, AbstractWatcher]


class SessionNotReady(Exception):

    """The session could not be established, or was not synced-connected in time."""

    pass


class Registration(object):

    """A watch armed on a path, handed to kazoo as the watch callable.

    Fires at most once, a registration that is no longer current in its table is dropped silently."""

    def __init__(self, registrations: 'Registrations', path: str, kind: str, watcher: AbstractWatcher) -> None:
        super().__init__()
        self.__registrations = registrations
        self.path = path
        self.kind = kind
        self.watcher = watcher

    def key(self) -> typing.Tuple[str, str]:
        return self.path, self.kind

    def __call__(self, watched_event: kazoo.protocol.states.WatchedEvent):
        if not self.__registrations.consume(self):
            _logger.debug('Dropping [{}] for released [{}].'.format(watched_event, self))
            return
        self.watcher.process(Event.from_watched_event(watched_event))

    def __str__(self) -> str:
        return 'Registration [{}] Kind [{}] Watcher [{}]'.format(self.path, self.kind, self.watcher.NAME)


class Registrations(object):

    """Armed registrations keyed by (path, kind), one per key until it fires."""

    def __init__(self) -> None:
        super().__init__()
        self.__lock = threading.RLock()
        self.__armed: typing.Dict[typing.Tuple[str, str], Registration] = dict()

    def register(self, path: str, kind: str, watcher: AbstractWatcher) -> typing.Tuple[Registration, bool]:
        """Return the armed registration for (path, kind) and whether it was created by this call."""
        with self.__lock:
            registration = self.__armed.get((path, kind))
            if registration is not None:
                if registration.watcher is not watcher:
                    _logger.info('[{}] already armed, not arming another [{}] watcher.'.format(registration, watcher.NAME))
                return registration, False
            registration = Registration(self, path, kind, watcher)
            self.__armed[registration.key()] = registration
            _logger.debug('Armed [{}].'.format(registration))
            return registration, True

    def consume(self, registration: Registration) -> bool:
        with self.__lock:
            if self.__armed.get(registration.key()) is not registration:
                return False
            del self.__armed[registration.key()]
            return True

    def discard(self, registration: Registration):
        self.consume(registration)

    def armed(self, path: str = None) -> typing.List[Registration]:
        with self.__lock:
            return [r for r in self.__armed.values() if path is None or r.path == path]

    def clear(self) -> int:
        with self.__lock:
            count = len(self.__armed)
            self.__armed.clear()
            return count


class AbstractSession(contextlib.AbstractContextManager):

    """An abstract session with a coordination service, owning a global watcher."""

    def __init__(self, global_watcher: GlobalWatcher, **kwargs):
        super().__init__()
        self._kwargs = kwargs
        self._global_watcher = global_watcher
        self._registrations = Registrations()

    def __enter__(self):
        if not self.start():
            raise SessionNotReady('Failed to start session to [{}]'.format(self.hosts()))
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop()

    def hosts(self) -> str:
        return self._kwargs.get(ZOOKEEPER_HOSTS) or ZOOKEEPER_LOCALHOST

    def connect_timeout(self) -> float:
        return float(self._kwargs.get(CONNECT_TIMEOUT) or CONNECT_TIMEOUT_DEFAULT)

    def session_timeout(self) -> float:
        return float(self._kwargs.get(SESSION_TIMEOUT) or SESSION_TIMEOUT_DEFAULT)

    def global_watcher(self) -> GlobalWatcher:
        return self._global_watcher

    def registrations(self) -> Registrations:
        return self._registrations

    def _registration_for(self, path: str, watch: Watch) -> typing.Tuple[typing.Optional[Registration], bool]:
        if watch is None or watch is False:
            return None, False
        if watch is True:
            return self._registrations.register(path, GLOBAL, self._global_watcher)
        if isinstance(watch, AbstractWatcher):
            return self._registrations.register(path, PATH, watch)
        raise TypeError('Expected None, True or a watcher, got [{}]'.format(type(watch)))

    @abc.abstractmethod
    def start(self) -> bool:
        pass

    @abc.abstractmethod
    def stop(self):
        pass

    @abc.abstractmethod
    def exists(self, path: str, watch: Watch = None):
        """Return the node stat or None, arming a watch on path when watch is True (global) or a watcher."""
        pass

    @abc.abstractmethod
    def delete_node(self, path: str, version: int = -1):
        pass


class UsingKazoo(AbstractSession):

    """Concrete session using Kazoo."""

    def __init__(self, global_watcher: GlobalWatcher, **kwargs):
        super().__init__(global_watcher, **kwargs)

        self.__open: bool = False

        self.__kazoo_client_class = kwargs.get(KAZOO_CLIENT_CLASS) or KazooClient

        self._kazoo_client: KazooClient = None

    @property
    def kazoo_client(self):
        return self._kazoo_client

    def is_open(self) -> bool:
        return self.__open

    def start(self) -> bool:
        _logger.debug('start() [{}]'.format(self.hosts()))
        try:
            self._kazoo_client = self.__kazoo_client_class(hosts=self.hosts(), timeout=self.session_timeout())
            self._kazoo_client.add_listener(self._state_listener)
            self._kazoo_client.start(timeout=self.connect_timeout())
            self.__open = True
        except (KazooException, KazooTimeoutError) as exception:
            _logger.warning('Failed to open [{}] [{}]'.format(self.hosts(), exception))
            self.__open = False
            self._close_client()
        return self.__open

    def _state_listener(self, state: str):
        # Called on the connection thread, must not block.
        self._global_watcher.process(Event.from_kazoo_state(state))

    def stop(self):
        _logger.debug('stop()')
        print('closing ZooKeeper...')
        released = self._registrations.clear()
        if released:
            _logger.info('Released [{}] armed registration(s).'.format(released))
        self.__open = False
        self._close_client()

    def _close_client(self):
        if self._kazoo_client is None:
            return
        try:
            self._kazoo_client.stop()
            self._kazoo_client.close()
        except KazooException as exception:
            _logger.warning('Failed to close [{}]'.format(exception))
        finally:
            self._kazoo_client = None

    def exists(self, path: str, watch: Watch = None):
        registration, created = self._registration_for(path, watch)
        try:
            stat = self._kazoo_client.exists(path, watch=registration)
        except Exception:
            if created:
                self._registrations.discard(registration)
            raise
        print('{} stat: {}'.format(path, stat))
        return stat

    def delete_node(self, path: str, version: int = -1):
        _logger.debug('delete_node(path [{}], version [{}])'.format(path, version))
        self._kazoo_client.delete(path, version)

    def __str__(self) -> str:
        return 'Hosts [{}] Open [{}]'.format(self.hosts(), self.__open)
