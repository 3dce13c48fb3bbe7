import logging
import threading
import typing

_logger = logging.getLogger(__name__)


class GateError(RuntimeError):

    """Raised when a gate is used out of order, e.g. armed twice or armed after a signal."""

    pass


class CountingGate(object):

    """A single use countdown gate.

    The test thread arm()s the gate and then wait()s on it, watcher callbacks signal() it from the dispatch thread.
    The remaining count only ever goes down and stops at zero, once released the gate stays released."""

    def __init__(self, name: str = 'gate') -> None:
        super().__init__()

        self.__name = name

        self.__condition = threading.Condition(threading.RLock())

        self.__remaining: typing.Optional[int] = None
        self.__signals: int = 0
        self.__released: bool = False

    def name(self) -> str:
        return self.__name

    def arm(self, count: int) -> 'CountingGate':
        if not isinstance(count, int) or isinstance(count, bool) or count <= 0:
            raise GateError('Gate [{}] count must be a positive int, got [{}]'.format(self.__name, count))
        with self.__condition:
            if self.__remaining is not None:
                raise GateError('Gate [{}] is already armed'.format(self.__name))
            if self.__signals > 0:
                raise GateError('Gate [{}] signalled [{}] time(s) before arm()'.format(self.__name, self.__signals))
            self.__remaining = count
            _logger.debug('Armed [{}] with count [{}].'.format(self.__name, count))
        return self

    def signal(self) -> bool:
        """Count down by one, returns False when the signal had no effect."""
        with self.__condition:
            if self.__released:
                _logger.debug('Gate [{}] already released, ignoring signal.'.format(self.__name))
                return False
            self.__signals += 1
            if self.__remaining is None:
                _logger.warning('Gate [{}] signalled before arm().'.format(self.__name))
                return False
            self.__remaining -= 1
            _logger.debug('Gate [{}] remaining [{}].'.format(self.__name, self.__remaining))
            if self.__remaining == 0:
                self.__released = True
                self.__condition.notify_all()
            return True

    def wait(self, timeout: typing.Optional[float] = None) -> bool:
        """Block until released. With timeout=None there is no limit, returns whether the gate was released."""
        with self.__condition:
            return self.__condition.wait_for(lambda: self.__released, timeout)

    def remaining(self) -> typing.Optional[int]:
        with self.__condition:
            return self.__remaining

    def signals(self) -> int:
        with self.__condition:
            return self.__signals

    def armed(self) -> bool:
        with self.__condition:
            return self.__remaining is not None

    def released(self) -> bool:
        with self.__condition:
            return self.__released

    def __str__(self) -> str:
        return 'Gate [{}] Remaining [{}] Released [{}]'.format(self.__name, self.remaining(), self.released())
