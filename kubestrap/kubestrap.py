"""
kubestrap
=========

The main entry point of kubestrap.
Don't use it directly, instead install the package with setup.py.
It automatically creates an executable in your path.

"""
import argparse
import sys

import urllib3

from mach import mach1

from . import __version__, DEFAULT_BIN_DIR
from .config import ConfigError, read_config
from .fetch import HTTPError
from .provision.download import download as download_binaries
from .proxy.server import make_server, serve
from .util.logger import Logger, set_verbosity

LOGGER = Logger(__name__)


def _read_config(path):
    """read the configuration or exit with an error"""
    try:
        return read_config(path)
    except (ConfigError, HTTPError, OSError,
            urllib3.exceptions.HTTPError) as err:
        LOGGER.error(f"Error: can not read the configuration: {err}")
        sys.exit(1)


@mach1()
class Kubestrap:  # pylint: disable=no-self-use
    """
    The main entry point for the program. This class does the CLI parsing
    and decides which action should be taken
    """
    def __init__(self):
        self.parser.add_argument(  # pylint: disable=no-member
            "--version", action="store_true",
            help="show version and exit",
            default=argparse.SUPPRESS)

        verbosity_help = "".join([
            "set the verbosity level (",
            "0 = quiet, ",
            "1 = error, ",
            "2 = warning, ",
            "3 = info, ",
            "4 = debug)"])
        self.parser.add_argument("--verbosity",  # pylint: disable=no-member
                                 "-v",
                                 help=verbosity_help,
                                 choices=['0', '1', '2', '3', '4', 'quiet',
                                          'error', 'warning', 'info', 'debug'],
                                 type=str,
                                 default='3')

    def _get_version(self):
        print("%s version: %s" % (self.__class__.__name__, __version__))

    def _get_verbosity(self):
        pass

    def proxy(self, config: str = None):
        """
        Run the artifact caching proxy until SIGTERM or SIGINT

        config - configuration file
        """
        cfg = _read_config(config)

        try:
            server = make_server(cfg)
        except OSError as err:
            LOGGER.error(f"Error: can not start the proxy: {err}")
            sys.exit(1)

        serve(server)

    def download(self, config: str = None, dest: str = DEFAULT_BIN_DIR):
        """
        Install the control plane binaries from the artifact proxy

        config - configuration file
        dest - the directory to install the binaries to
        """
        cfg = _read_config(config)

        try:
            download_binaries(cfg, dest)
        except (HTTPError, OSError, ValueError,
                urllib3.exceptions.HTTPError) as err:
            LOGGER.error(f"Error: {err}")
            sys.exit(1)

        LOGGER.success("All binaries are installed in %s", dest)


def main():
    """
    run and execute kubestrap
    """
    k = Kubestrap()

    # pylint: disable=no-member
    k.parser.description = 'Bootstrap a single node Kubernetes control '\
                           'plane. The binaries are served by a local '\
                           'caching proxy, see "kubestrap proxy".'

    set_verbosity(k.parser.parse_args().verbosity)

    # the mach decorator analyzes the methods in the class and dynamically
    # creates the CLI parser. It also adds the method run to the class.
    k.run()  # pylint: disable=no-member
