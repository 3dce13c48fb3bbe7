import logging
import sys
import traceback

_logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(threadName)s %(name)s %(levelname)s %(message)s'


def to_bool(v: object) -> bool:
    """Interpret a config value, typically a str from the environment, as a bool."""
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    return str(v).strip().lower() in {'1', 'true', 'yes', 'on'}


def configure_logging(level: object = logging.INFO):
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(stream=sys.stdout, level=level, format=LOG_FORMAT)


def decode_exception(exception: Exception, **kwargs) -> str:
    logger: logging.Logger = kwargs.get('logger')
    if logger is not None and logger.isEnabledFor(logging.DEBUG):
        return '{}\n{}'.format(exception, traceback.format_exc())
    return '{}'.format(exception)


def log_exception(exception: Exception, **kwargs):
    """Log the given exception and kwargs.
    If an exception occurs log a CATCH-22 warning with this exception and the given exception."""
    try:
        kwargs.get('logger', _logger).warning(
            '{}\n{}\n{}'.format(
                exception,
                '\n'.join(['{}: {}'.format(key, value) for key, value in kwargs.items() if key != 'logger']),
                traceback.format_exc()
            )
        )
    except Exception as catch_22:
        _logger.warning('CATCH-22 [{}] logging exception [{}].'.format(catch_22, exception))
