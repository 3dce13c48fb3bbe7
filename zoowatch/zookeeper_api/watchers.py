import abc
import logging
import threading
import typing

import zoowatch.common.gate
import zoowatch.tools.common
from zoowatch.zookeeper_api.events import Event

_logger = logging.getLogger(__name__)


class AbstractWatcher(abc.ABC):

    """A watcher receives Events, possibly on a thread other than the one that registered it.

    process() prints the event for the operator, records it and hands it to on_event().
    Exceptions from on_event() are logged so they never reach the client's dispatch thread."""

    NAME: str = 'abstract'

    def __init__(self, event_sink: zoowatch.common.gate.CountingGate) -> None:
        super().__init__()

        self._event_sink = event_sink

        self.__lock = threading.RLock()
        self.__events: typing.List[Event] = list()
        self.__failures: int = 0

    def event_sink(self) -> zoowatch.common.gate.CountingGate:
        return self._event_sink

    def process(self, event: Event):
        print('event in {} watch: {}'.format(self.NAME, event))
        _logger.debug('[{}] process [{}].'.format(self.NAME, event))
        with self.__lock:
            self.__events.append(event)
        try:
            self.on_event(event)
        except Exception as exception:
            with self.__lock:
                self.__failures += 1
            zoowatch.tools.common.log_exception(exception, logger=_logger, watcher=self.NAME, event=event)

    @abc.abstractmethod
    def on_event(self, event: Event):
        pass

    def events(self) -> typing.List[Event]:
        with self.__lock:
            return list(self.__events)

    def failures(self) -> int:
        with self.__lock:
            return self.__failures

    def __str__(self) -> str:
        return 'Watcher [{}] Events [{}]'.format(self.NAME, len(self.events()))


class GlobalWatcher(AbstractWatcher):

    """Session scoped watcher installed when the session is created.

    Releases the session ready gate on the first synced-connected state and signals the event sink for created nodes."""

    NAME = 'global'

    def __init__(self, event_sink: zoowatch.common.gate.CountingGate) -> None:
        super().__init__(event_sink)

        self.__ready = zoowatch.common.gate.CountingGate('session-ready').arm(1)

    def on_event(self, event: Event):
        if event.is_sync_connected():
            if self.__ready.signal():
                _logger.info('Session ready.')
        elif event.is_node_created():
            self._event_sink.signal()
        else:
            _logger.info('Ignoring [{}].'.format(event))

    def ready(self) -> bool:
        return self.__ready.released()

    def ready_gate(self) -> zoowatch.common.gate.CountingGate:
        return self.__ready

    def await_ready(self, timeout: typing.Optional[float] = None) -> bool:
        return self.__ready.wait(timeout)


class PathWatcher(AbstractWatcher):

    """One shot watcher passed to a single existence check."""

    NAME = 'exists'

    def on_event(self, event: Event):
        if event.is_node_created():
            self._event_sink.signal()
        else:
            _logger.info('Ignoring [{}].'.format(event))
