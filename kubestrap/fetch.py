"""
fetch.py
========

GET a URL and hand the streamed response body to a *sink*.

A sink is any callable accepting a file like object with a ``read`` method.
Whatever the sink returns is returned by :func:`fetch`::

    fetch(url, to_file("/tmp/kubelet", 0o755))
    fetch(url, untar("/usr/local/bin"))
    release = fetch(api_url, read_json, timeout=5)
"""
import http.client
import json
import os
import shutil
import tarfile

import urllib3

from kubestrap import BUFFER_SIZE
from kubestrap.util.logger import Logger

LOGGER = Logger(__name__)

# shared by all threads, urllib3 pools are thread safe
HTTP = urllib3.PoolManager()


class HTTPError(Exception):
    """An upstream answered with something else than 200 OK.

    Attributes:
        status (int): the upstream status code
        message (str): the upstream body text, or the status reason if the
            body was empty
    """

    def __init__(self, status, message):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


class FetchCancelled(Exception):
    """The consumer of a download went away before it finished"""


class _Body:
    """Wraps a response body and checks for cancellation before every read"""

    def __init__(self, response, cancelled=None):
        self.response = response
        self.cancelled = cancelled

    def read(self, amt=None):
        """read up to amt bytes, everything if amt is None"""
        if self.cancelled and self.cancelled():
            raise FetchCancelled("download cancelled by the client")
        if amt is not None and amt < 0:
            amt = None
        return self.response.read(amt)


def fetch(url, sink, timeout=None, headers=None, cancelled=None, pool=None):
    """Download url and stream the response body into sink.

    Args:
        url (str): the URL to GET
        sink (callable): receives a readable body, see :func:`to_file`,
            :func:`untar`, :func:`read_json`, :func:`read_text`
        timeout (float): seconds for the whole request, no limit if None
        headers (dict): extra request headers
        cancelled (callable): polled while streaming, a true result aborts
            the download with :class:`FetchCancelled`
        pool: a ``urllib3.PoolManager``, the module pool if None

    Return:
        whatever sink returns

    Raises:
        HTTPError if the response status is not 200
    """
    pool = pool or HTTP
    kwargs = {"headers": headers, "preload_content": False}
    if timeout is not None:
        kwargs["timeout"] = urllib3.Timeout(total=timeout)

    LOGGER.debug("GET %s", url)
    response = pool.request("GET", url, **kwargs)
    try:
        if response.status != 200:
            message = response.read().decode("utf-8", "replace").strip()
            if not message:
                message = http.client.responses.get(response.status, "")
            raise HTTPError(response.status, message)

        return sink(_Body(response, cancelled))
    finally:
        response.release_conn()


def to_file(dst, perm=0o644):
    """Returns a sink saving the body to dst.

    The file is created with perm, or truncated if it exists, and written
    through a fixed 5 MiB buffer.
    """
    def write(body):
        fd = os.open(dst, os.O_RDWR | os.O_CREAT | os.O_TRUNC, perm)
        with os.fdopen(fd, "wb") as fh:
            shutil.copyfileobj(body, fh, BUFFER_SIZE)
        return dst

    return write


def member_path(dst, name):
    """
    join an archive member name to dst, refusing names that leave dst
    """
    root = os.path.abspath(dst)
    target = os.path.abspath(os.path.join(root, name))
    if os.path.commonpath([root, target]) != root:
        raise ValueError(f"archive member {name!r} points outside of {dst}")
    return target


def extract_member(dst, tar, member):
    """
    the default tar filter: create directories, write regular files
    with their own mode, skip everything else.
    """
    target = member_path(dst, member.name)

    if member.isdir():
        os.makedirs(target, 0o755, exist_ok=True)
    elif member.isreg():
        os.makedirs(os.path.dirname(target), 0o755, exist_ok=True)
        to_file(target, member.mode)(tar.extractfile(member))


def untar(dst, *filters):
    """Returns a sink unpacking a tar.gz stream into dst.

    Every archive member is passed to each filter as
    ``filter(dst, tar, member)``. A filter decides on its own which members
    it writes and where; without filters :func:`extract_member` unpacks
    everything.
    """
    filters = filters or (extract_member,)

    def extract(body):
        with tarfile.open(fileobj=body, mode="r|gz") as tar:
            for member in tar:
                for tar_filter in filters:
                    tar_filter(dst, tar, member)
        return dst

    return extract


def read_json(body):
    """a sink decoding a JSON document"""
    return json.loads(body.read())


def read_text(body):
    """a sink decoding a text body"""
    return body.read().decode("utf-8")
