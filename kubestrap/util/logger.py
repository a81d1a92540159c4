"""Logging for kubestrap.

Every module creates its own logger with ``LOGGER = Logger(__name__)``.
Messages are printed to STDOUT, prefixed with a colored label:

.. code:: shell

    [-] error
    [!] warning
    [~] info
    [+] success

The verbosity is global and set once by the CLI through
``Logger.LOG_LEVEL`` or :attr:`Logger.level`.
"""

import logging
import sys
import time

# pylint: disable=no-name-in-module
from huepy import (bad, red, info as infomsg, yellow, run, grey,
                   good, green)

LOG_LEVELS = list(range(5))
DEFAULT_LOG_LEVEL = 3

# kubestrap verbosity -> python logging level
PY_LEVELS = {1: logging.ERROR,
             2: logging.WARNING,
             3: logging.INFO,
             4: logging.DEBUG}

LEVEL_NAMES = {'quiet': 0,
               'error': 1,
               'warning': 2,
               'info': 3,
               'debug': 4}


def get_logger(name):
    """Returns a Python logger with a single STDOUT handler.

    Calling it twice with the same name does not add a second handler.

    Args:
        name (str): The name of the Logger.

    Returns:
        A Python Logger.
    """

    log = logging.getLogger(name)
    set_level(log, Logger.LOG_LEVEL)

    if not log.handlers:
        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(logging.Formatter("%(message)s"))
        log.addHandler(sh)
        log.propagate = False

    return log


def set_level(logger, level):
    """Sets the logging level of a python logger.

    Level 0 disables the logger completely.

    Args:
        logger: A Python logger object.
        level (int): The kubestrap verbosity level.

    Raises:
        ValueError if log level is unsupported.
    """

    if level not in LOG_LEVELS:
        raise ValueError(f"log level {level} is not supported")

    logger.disabled = level == 0
    if level:
        logger.setLevel(PY_LEVELS[level])


class Singleton(type):
    """Metaclass returning one instance per class and logger name.

    Example:
        >>> log1 = Logger(__name__)
        >>> log2 = Logger(__name__)
        >>> id(log1) == id(log2)
        True
    """
    _instances = {}

    def __call__(cls, name, *args, **kwargs):
        key = (cls, name)
        if key not in cls._instances:
            cls._instances[key] = super(Singleton, cls).__call__(
                name, *args, **kwargs)
        else:
            cls._instances[key].__init__(name, *args, **kwargs)

        return cls._instances[key]


class Logger(metaclass=Singleton):
    """A proxy to ``logging.Logger`` that colors and labels messages.

    The levels are:

    .. code:: shell

        * 0 - quiet (no output)
        * 1 - error
        * 2 - warning
        * 3 - info
        * 4 - debug

    All functions support ``%``-style arguments.

    Example:
        >>> log = Logger(__name__)
        >>> log.info("%s %s", "hello", "world")
        [~] hello world

    Attributes:
        LOG_LEVEL (int): The log level used across the application.

    Args:
        name (str): The name of the logger.
    """

    LOG_LEVEL = DEFAULT_LOG_LEVEL

    def __init__(self, name):
        self.logger = get_logger(name)

    @property
    def level(self):
        """Returns the Python log level equivalent, 0 if disabled."""
        if self.logger.disabled:
            return 0

        return self.logger.level

    @level.setter
    def level(self, level):
        try:
            level = LEVEL_NAMES[level]
        except KeyError:
            level = int(level)

        set_level(self.logger, level)

    def error(self, msg, *args, color=True, **kwargs):
        """Logs a message on error level, in red with ``[-]``."""

        if color:
            msg = bad(red(msg))

        self.logger.error(msg, *args, **kwargs)

    def warning(self, msg, *args, color=True, **kwargs):
        """Logs a message on warning level, in yellow with ``[!]``."""

        if color:
            msg = infomsg(yellow(msg))

        self.logger.warning(msg, *args, **kwargs)

    def warn(self, msg, *args, color=True, **kwargs):
        """Same as :meth:`.Logger.warning`."""

        self.warning(msg, *args, **kwargs, color=color)

    def info(self, msg, *args, color=True, **kwargs):
        """Logs a message on info level, in grey with ``[~]``."""

        if color:
            msg = run(grey(msg))

        self.logger.info(msg, *args, **kwargs)

    def debug(self, msg, *args, color=True, **kwargs):
        """Logs a message on debug level, prefixed with a timestamp.

        Example:
            >>> log.debug("test")
            [20241019-155611] test
        """

        if color:
            now = time.strftime("%Y%m%d-%H%M%S")
            msg = grey(f"[{now}] {msg}")

        self.logger.debug(msg, *args, **kwargs)

    def success(self, msg, *args, color=True, **kwargs):
        """Indicates a success, in green with ``[+]`` on info level."""

        if color:
            msg = good(green(msg))

        self.logger.info(msg, *args, **kwargs)


def set_verbosity(level):
    """Sets the verbosity of every kubestrap logger, present and future.

    Args:
        level (int or str): A level from ``LOG_LEVELS`` or its name.

    Raises:
        ValueError if log level is unsupported.
    """
    try:
        level = LEVEL_NAMES[level]
    except KeyError:
        level = int(level)

    if level not in LOG_LEVELS:
        raise ValueError(f"log level {level} is not supported")

    Logger.LOG_LEVEL = level
    for instance in Singleton._instances.values():  # pylint: disable=protected-access
        set_level(instance.logger, level)
