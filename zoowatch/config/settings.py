import logging
import os
import typing

import yaml

import zoowatch.tools.common
import zoowatch.zookeeper_api.session

_logger = logging.getLogger(__name__)

CONFIG_ENV: str = 'ZOOWATCH_CONFIG'

WAIT_TIMEOUT: str = 'wait_timeout'
OPERATOR: str = 'operator'
LOGGING_LEVEL: str = 'logging_level'

DEFAULTS: typing.Dict[str, object] = {
    zoowatch.zookeeper_api.session.ZOOKEEPER_HOSTS: zoowatch.zookeeper_api.session.ZOOKEEPER_LOCALHOST,
    zoowatch.zookeeper_api.session.CONNECT_TIMEOUT: zoowatch.zookeeper_api.session.CONNECT_TIMEOUT_DEFAULT,
    zoowatch.zookeeper_api.session.SESSION_TIMEOUT: zoowatch.zookeeper_api.session.SESSION_TIMEOUT_DEFAULT,
    WAIT_TIMEOUT: None,
    OPERATOR: False,
    LOGGING_LEVEL: logging.getLevelName(logging.INFO)
}

# Setting key -> environment variable.
ENVIRONMENT: typing.Dict[str, str] = {
    zoowatch.zookeeper_api.session.ZOOKEEPER_HOSTS: 'ZOOKEEPER_HOSTS',
    zoowatch.zookeeper_api.session.CONNECT_TIMEOUT: 'ZOOWATCH_CONNECT_TIMEOUT',
    zoowatch.zookeeper_api.session.SESSION_TIMEOUT: 'ZOOWATCH_SESSION_TIMEOUT',
    WAIT_TIMEOUT: 'ZOOWATCH_WAIT_TIMEOUT',
    OPERATOR: 'ZOOWATCH_OPERATOR',
    LOGGING_LEVEL: 'LOGGING_LEVEL'
}

_FLOATS = {zoowatch.zookeeper_api.session.CONNECT_TIMEOUT, zoowatch.zookeeper_api.session.SESSION_TIMEOUT, WAIT_TIMEOUT}


class Settings(object):

    """Harness settings, later sources override earlier ones: defaults, YAML files, environment, kwargs."""

    def __init__(self, *files: str, environ: typing.Mapping[str, str] = None, **kwargs) -> None:
        super().__init__()

        self.__data: typing.Dict[str, object] = dict(DEFAULTS)

        if environ is None:
            environ = os.environ

        if not files and environ.get(CONFIG_ENV):
            files = (environ.get(CONFIG_ENV),)

        for name in files:
            self.__data.update(self.load(name))

        for k, env in ENVIRONMENT.items():
            v = environ.get(env)
            if v is not None and v != '':
                self.__data[k] = v

        self.__data.update({k: v for k, v in kwargs.items() if v is not None})

        for k in _FLOATS:
            self.__data[k] = self.__to_float(k, self.__data.get(k))
        self.__data[OPERATOR] = zoowatch.tools.common.to_bool(self.__data.get(OPERATOR))

    @staticmethod
    def load(name: str) -> typing.Dict[str, object]:
        """Load a YAML mapping, returning an empty dict when it cannot be read."""
        _logger.info('Loading [{}]'.format(name))
        try:
            with open(file=name, mode='r') as file:
                data = yaml.safe_load(file)
        except (OSError, yaml.YAMLError) as exception:
            _logger.warning('Failed to load [{}] [{}]'.format(name, zoowatch.tools.common.decode_exception(exception, logger=_logger)))
            return {}
        if data is None:
            return {}
        if not isinstance(data, dict):
            _logger.warning('Expected mapping in [{}] got [{}]'.format(name, type(data)))
            return {}
        return data

    def __to_float(self, k: str, v: object) -> typing.Optional[float]:
        if v is None or v == '':
            return DEFAULTS.get(k)
        try:
            return float(v)
        except (TypeError, ValueError):
            _logger.warning('Ignoring [{}]=[{}], not a number.'.format(k, v))
            return DEFAULTS.get(k)

    def get_kv(self, k: str, v: object = None) -> object:
        return self.__data.get(k, v)

    def kwargs(self) -> typing.Dict[str, object]:
        return dict(self.__data)

    def zookeeper_hosts(self) -> str:
        return self.__data[zoowatch.zookeeper_api.session.ZOOKEEPER_HOSTS]

    def connect_timeout(self) -> float:
        return self.__data[zoowatch.zookeeper_api.session.CONNECT_TIMEOUT]

    def wait_timeout(self) -> typing.Optional[float]:
        return self.__data[WAIT_TIMEOUT]

    def operator(self) -> bool:
        return self.__data[OPERATOR]

    def logging_level(self) -> str:
        return str(self.__data[LOGGING_LEVEL])

    def __str__(self) -> str:
        return ', '.join('[{}]=[{}]'.format(k, v) for k, v in self.__data.items())
