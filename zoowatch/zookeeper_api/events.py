import enum
import logging
import typing

import kazoo.protocol.states
from kazoo.protocol.states import EventType, KazooState, KeeperState

_logger = logging.getLogger(__name__)


class EventKind(enum.Enum):
    SESSION = 'session'
    NODE_CREATED = 'node_created'
    NODE_DELETED = 'node_deleted'
    NODE_DATA_CHANGED = 'node_data_changed'
    NODE_CHILDREN_CHANGED = 'node_children_changed'


class SessionState(enum.Enum):
    SYNC_CONNECTED = 'sync_connected'
    CONNECTING = 'connecting'
    DISCONNECTED = 'disconnected'
    EXPIRED = 'expired'
    AUTH_FAILED = 'auth_failed'
    CLOSED = 'closed'
    UNKNOWN = 'unknown'


_EVENT_KINDS: typing.Dict[str, EventKind] = {
    EventType.NONE: EventKind.SESSION,
    EventType.CREATED: EventKind.NODE_CREATED,
    EventType.DELETED: EventKind.NODE_DELETED,
    EventType.CHANGED: EventKind.NODE_DATA_CHANGED,
    EventType.CHILD: EventKind.NODE_CHILDREN_CHANGED
}

_KEEPER_STATES: typing.Dict[str, SessionState] = {
    KeeperState.CONNECTED: SessionState.SYNC_CONNECTED,
    KeeperState.CONNECTED_RO: SessionState.SYNC_CONNECTED,
    KeeperState.CONNECTING: SessionState.CONNECTING,
    KeeperState.EXPIRED_SESSION: SessionState.EXPIRED,
    KeeperState.AUTH_FAILED: SessionState.AUTH_FAILED,
    KeeperState.CLOSED: SessionState.CLOSED
}

# Kazoo reports connection transitions to listeners rather than as watched events.
_KAZOO_STATES: typing.Dict[str, SessionState] = {
    KazooState.CONNECTED: SessionState.SYNC_CONNECTED,
    KazooState.SUSPENDED: SessionState.DISCONNECTED,
    KazooState.LOST: SessionState.EXPIRED
}


class Event(typing.NamedTuple):

    """A watcher notification, either a session state change or a change to the znode at path."""

    kind: EventKind
    state: SessionState
    path: typing.Optional[str] = None

    @classmethod
    def from_watched_event(cls, watched_event: kazoo.protocol.states.WatchedEvent) -> 'Event':
        kind = _EVENT_KINDS.get(watched_event.type)
        if kind is None:
            _logger.warning('Unknown event type [{}], treating as a session event.'.format(watched_event.type))
            kind = EventKind.SESSION
        return cls(kind, _KEEPER_STATES.get(watched_event.state, SessionState.UNKNOWN), watched_event.path)

    @classmethod
    def from_kazoo_state(cls, kazoo_state: str) -> 'Event':
        return cls(EventKind.SESSION, _KAZOO_STATES.get(kazoo_state, SessionState.UNKNOWN))

    def is_node_created(self) -> bool:
        return self.kind is EventKind.NODE_CREATED

    def is_sync_connected(self) -> bool:
        return self.kind is EventKind.SESSION and self.state is SessionState.SYNC_CONNECTED

    def __str__(self) -> str:
        return 'Event [{}] State [{}] Path [{}]'.format(self.kind.name, self.state.name, self.path)
