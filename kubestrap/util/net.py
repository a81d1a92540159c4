"""Contains utility functions for network stuff"""

import socket

from netaddr import valid_ipv4, valid_ipv6

# any routable address works, UDP connect sends no packet
ROUTE_PROBE_ADDRESS = "8.8.8.8"


def is_port(port):
    """Checks if a port is valid"""

    return isinstance(port, int) and 0 <= port <= 65535


def is_ip(ip):
    """Checks if an IP is a valid IPv4 or IPv6 address"""

    return valid_ipv4(ip) or valid_ipv6(ip)


def default_route_address(probe=ROUTE_PROBE_ADDRESS):
    """Returns the local address the kernel would use to reach ``probe``.

    This is the address of the interface holding the default route, which
    is what the API server advertises when nothing else is configured.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.connect((probe, 80))
        return sock.getsockname()[0]


def short_hostname():
    """Returns the host name without its domain part"""
    return socket.gethostname().split(".", 1)[0]
