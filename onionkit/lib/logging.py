'''
Log formatting for onionkit.

Text output is the default.  Structured output (one JSON object per line) is
enabled with ``structlog=True`` or ``ONIONKIT_LOG_STRUCT`` and carries the
``params`` and ``error`` envelope built by ``getLogExtra()``.
'''
import os
import json
import logging

import onionkit.exc as s_exc
import onionkit.common as s_common

import onionkit.lib.const as s_const

logger = logging.getLogger(__name__)

def getLogExtra(**kwargs):
    '''
    Construct the ``extra=`` envelope for a log call.

    NOTE: If the key "exc" is specified, it will be used as
          an exception to generate standardized error info.
    '''
    exc = kwargs.pop('exc', None)
    extra = {'params': kwargs, 'loginfo': {}}

    if exc is not None:
        extra['loginfo']['error'] = s_common.excinfo(exc)

    return extra

class Formatter(logging.Formatter):
    '''
    Render log records as JSON lines.
    '''
    def genLogInfo(self, record):

        loginfo = {
            'message': record.getMessage(),
            'logger': {
                'name': record.name,
                'func': record.funcName,
            },
            'level': record.levelname,
            'time': self.formatTime(record, self.datefmt),
            'params': getattr(record, 'params', {}),
        }

        loginfo.update(getattr(record, 'loginfo', {}))

        if record.exc_info:
            loginfo['error'] = s_common.excinfo(record.exc_info[1])

        return loginfo

    def format(self, record):
        return json.dumps(self.genLogInfo(record), default=str)

class TextFormatter(logging.Formatter):

    def __init__(self, datefmt=None):
        super().__init__(fmt=s_const.LOG_FORMAT, datefmt=datefmt)

_glob_logconf = {}
def setup(**conf):
    '''
    Configure onionkit logging on the root logger.

    Args:
        level (int|str): The log level (default WARNING).
        structlog (bool): Emit JSON lines instead of text.
        datefmt (str): An optional strftime format for the time field.

    Notes:
        ``ONIONKIT_LOG_LEVEL``, ``ONIONKIT_LOG_STRUCT`` and ``ONIONKIT_LOG_DATEFORMAT``
        take precedence over the passed in values.

    Returns:
        dict: The resolved logging configuration.
    '''
    conf.update(getLogConfFromEnv())

    level = normLogLevel(conf.get('level') or logging.WARNING)

    conf['level'] = level
    conf['structlog'] = bool(conf.get('structlog'))

    fmtclass = Formatter if conf['structlog'] else TextFormatter

    handler = logging.StreamHandler()
    handler.setFormatter(fmtclass(datefmt=conf.get('datefmt')))

    # handed to spawned processes by s_coro.forked()
    _glob_logconf.clear()
    _glob_logconf.update(conf)

    logging.basicConfig(level=level, handlers=(handler,))

    logger.info('log level set to %s', s_const.LOG_LEVEL_INVERSE_CHOICES.get(level))

    return conf

def getLogConf():
    return dict(_glob_logconf)

def getLogConfFromEnv():

    conf = {}

    if (level := os.getenv('ONIONKIT_LOG_LEVEL')) is not None:
        conf['level'] = normLogLevel(level)

    if (datefmt := os.getenv('ONIONKIT_LOG_DATEFORMAT')) is not None:
        conf['datefmt'] = datefmt

    if (structlog := os.getenv('ONIONKIT_LOG_STRUCT')) is not None:
        conf['structlog'] = structlog.lower() in ('1', 'true')

    return conf

def normLogLevel(valu):
    '''
    Normalize a log level name or number to a logging level integer.

    Raises:
        BadArg: If the value is not a known log level.
    '''
    if isinstance(valu, str):

        valu = valu.strip()
        level = s_const.LOG_LEVEL_CHOICES.get(valu.upper())
        if level is not None:
            return level

        try:
            valu = int(valu)
        except ValueError:
            raise s_exc.BadArg(mesg=f'Invalid log level provided: {valu}', valu=valu) from None

    if isinstance(valu, int) and valu in s_const.LOG_LEVEL_INVERSE_CHOICES:
        return valu

    raise s_exc.BadArg(mesg=f'Invalid log level provided: {valu!r}', valu=valu)
