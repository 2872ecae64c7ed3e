import logging

# Logging related constants
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s ' \
             '[%(filename)s:%(funcName)s:%(threadName)s:%(processName)s]'
LOG_LEVEL_CHOICES = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}
LOG_LEVEL_INVERSE_CHOICES = {v: k for k, v in LOG_LEVEL_CHOICES.items()}

# Math related constants
kibibyte = 1024
mebibyte = 1024 * kibibyte

# time (in seconds) constants
minute = 60
hour = minute * 60
day = hour * 24

# tor time format for published / publication-time lines
TOR_TIME_FORMAT = '%Y-%m-%d %H:%M:%S'
