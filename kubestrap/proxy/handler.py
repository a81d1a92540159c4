"""
handler.py
==========

The caching proxy for release artifacts.

A request for ``/<name>/<version>`` is answered from the cache directory::

    <assets_dir>/<version>/<name>           the artifact
    <assets_dir>/<version>/<name>.sha256    its checksum file, optional

On a miss the checksum file and the artifact are downloaded from the
:class:`~kubestrap.proxy.endpoint.Endpoint` mounted for the request. Only
one request downloads a given artifact, concurrent requests for the same
artifact wait for it and serve the result.

Before serving, the artifact is checked against its checksum. A corrupt
artifact is removed together with its checksum file and the client is
redirected to the same URL, which downloads it again. An artifact without
checksum file is served as is.

A request for ``/<name>`` is redirected to the latest version.

:class:`Proxy` knows nothing about sockets. It turns a :class:`Request`
into a :class:`Response`, see :mod:`kubestrap.proxy.server` for the HTTP
part.
"""
import os
import posixpath
import stat
from urllib.parse import quote, unquote, urlsplit

from kubestrap import HASH_FILE_SUFFIX
from kubestrap.fetch import HTTPError, fetch, to_file
from kubestrap.proxy.semaphore import Semaphore
from kubestrap.util.logger import Logger
from kubestrap.util.util import remove_files, sha256sum

LOGGER = Logger(__name__)

NOT_FOUND = "404 page not found"
OCTET_STREAM = "application/octet-stream"
# a bare digest, hex encoded sha256
DIGEST_LENGTH = 64


class NotRegularFile(Exception):
    """A path in the cache exists but is not a regular file"""


class Request:  # pylint: disable=too-few-public-methods
    """
    What the proxy needs to know about an HTTP request.

    Args:
        method (str): the HTTP method
        path (str): the request target, a query string is ignored
        cancelled (callable): returns True once the client went away
    """

    def __init__(self, method, path, cancelled=None):
        self.method = method
        self.path = path
        self.cancelled = cancelled


class Response:  # pylint: disable=too-few-public-methods
    """
    The answer of the proxy.

    Either body holds the whole payload, or file names a file in the cache
    which is streamed to the client.
    """

    def __init__(self, status, headers=None, body=b"", file=None):
        self.status = status
        self.headers = headers or {}
        self.body = body
        self.file = file

    def __repr__(self):
        return f"Response({self.status}, {self.headers})"


def text_response(status, message):
    """a plain text response, formatted the same for every error"""
    body = (message + "\n").encode("utf-8")
    return Response(status, {"Content-Type": "text/plain; charset=utf-8",
                             "X-Content-Type-Options": "nosniff",
                             "Content-Length": str(len(body))}, body)


def redirect(location, status=307):
    """redirect the client to location"""
    return Response(status, {"Location": location, "Content-Length": "0"})


def error_response(err):
    """
    map an exception to a response

    ==========================  ==========================
    NotRegularFile              404
    NotImplementedError         501
    HTTPError                   the status and text upstream sent
    anything else               500 with the error text
    ==========================  ==========================
    """
    if isinstance(err, NotRegularFile):
        return text_response(404, NOT_FOUND)
    if isinstance(err, NotImplementedError):
        return text_response(501, str(err) or "not implemented")
    if isinstance(err, HTTPError):
        return text_response(err.status, err.message)
    return text_response(500, str(err))


def parse_digest(content, asset_name):
    """
    find the expected digest of asset_name in the content of a checksum file

    A checksum file holds either a bare hex digest or lines in the format
    of ``sha256sum``::

        <digest>  etcd-v3.5.16-linux-amd64.tar.gz
        <digest>  etcd-v3.5.16-linux-arm64.tar.gz

    Args:
        content (str): the checksum file content
        asset_name (str): the upstream name of the artifact

    Return:
        str: the digest, or None if the manifest has no entry for asset_name
    """
    content = content.strip()
    if len(content) == DIGEST_LENGTH:
        return content

    for line in content.splitlines():
        if asset_name in line:
            return line.split(" ", 1)[0]

    return None


def file_exists(path):
    """
    Return:
        bool: True for a regular file, False if nothing is at path

    Raises:
        NotRegularFile if path is a directory
    """
    try:
        mode = os.stat(path).st_mode
    except FileNotFoundError:
        return False

    if stat.S_ISDIR(mode):
        raise NotRegularFile(f"{path} is not a regular file")

    return True


def read_digest(hash_path, asset_name):
    """the expected digest stored in hash_path, None if unknown"""
    try:
        with open(hash_path, "rb") as fh:
            content = fh.read()
    except FileNotFoundError:
        return None
    except IsADirectoryError as err:
        raise NotRegularFile(f"{hash_path} is not a regular file") from err

    return parse_digest(content.decode("utf-8", "replace"), asset_name)


class Proxy:
    """
    Serve artifacts from assets_dir, fill it from upstream on misses.

    One instance serves all mounted endpoints, they share the cache and the
    download lock.

    Args:
        assets_dir (str): the cache directory
        semaphore (Semaphore): the download lock, a new one if None
        fetcher (callable): downloads a URL into a sink, see
            :func:`kubestrap.fetch.fetch`
    """

    def __init__(self, assets_dir, semaphore=None, fetcher=fetch):
        self.dir = assets_dir
        self.sem = semaphore or Semaphore()
        self.fetcher = fetcher

    def slot(self, name, version):
        """the artifact and checksum file paths of name and version"""
        file_path = os.path.join(self.dir, version, name)
        return file_path, file_path + HASH_FILE_SUFFIX

    def handle(self, request, endpoint):
        """
        Answer request with artifacts of endpoint.

        Never raises, errors are turned into responses.
        """
        if request.method not in ("GET", "HEAD"):
            return text_response(405, "Method Not Allowed")

        try:
            return self._handle(request, endpoint)
        except HTTPError as err:
            LOGGER.warning("%s %s: upstream answered %s", request.method,
                           request.path, err)
            return error_response(err)
        except Exception as err:  # pylint: disable=broad-except
            LOGGER.error("%s %s: %s", request.method, request.path, err)
            return error_response(err)

    def _handle(self, request, endpoint):
        path = urlsplit(request.path).path
        req_path = posixpath.normpath("/" + unquote(path)).lstrip("/")

        if not req_path or req_path.startswith(".") or \
                req_path.endswith(HASH_FILE_SUFFIX):
            return text_response(404, NOT_FOUND)

        parts = req_path.split("/")
        if len(parts) > 2 or parts[0].endswith(HASH_FILE_SUFFIX):
            return text_response(404, NOT_FOUND)

        name = parts[0]
        if len(parts) == 1:
            version = endpoint.last_tag()
            LOGGER.debug("latest version of %s is %s", name, version)
            return redirect("/" + quote(name) + "/" + quote(version))

        version = parts[1]
        file_path, hash_path = self.slot(name, version)

        if not file_exists(file_path):
            # only GET fills the cache, HEAD reports what is there
            if request.method == "HEAD":
                return text_response(404, NOT_FOUND)
            self.fill(req_path, endpoint, name, version, request.cancelled)

        headers = {}
        digest = read_digest(hash_path, endpoint.asset_name(name, version))
        if digest:
            headers["ETag"] = digest
            if sha256sum(file_path) != digest:
                LOGGER.warning("checksum of %s does not match %s, "
                               "removing it", req_path, digest)
                remove_files(file_path, hash_path)
                return redirect(path)

        headers["Content-Length"] = str(os.path.getsize(file_path))
        headers["Content-Type"] = OCTET_STREAM

        if request.method == "HEAD":
            return Response(200, headers)

        return Response(200, headers, file=file_path)

    def fill(self, key, endpoint, name, version, cancelled=None):
        """
        Download the checksum file and the artifact into the cache.

        Holds the download lock of key while doing so. Whoever waited for
        the lock finds the artifact in place and downloads nothing.
        """
        file_path, hash_path = self.slot(name, version)

        if self.sem.in_flight(key):
            LOGGER.debug("waiting for the running download of %s", key)

        with self.sem.hold(key):
            if file_exists(file_path):
                LOGGER.debug("%s was downloaded meanwhile", key)
                return

            LOGGER.info("downloading %s", key)
            url = endpoint.hash_file_url(name, version)
            self.download(url, hash_path, cancelled)

            url = endpoint.file_url(name, version)
            self.download(url, file_path, cancelled)
            LOGGER.success("%s cached", key)

    def download(self, url, path, cancelled=None):
        """
        Save url to path.

        The body is written to a hidden sibling first and renamed to path
        once complete, so path never holds a partial download.
        """
        directory, filename = os.path.split(path)
        os.makedirs(directory, 0o755, exist_ok=True)

        part = os.path.join(directory, "." + filename + ".part")
        try:
            self.fetcher(url, to_file(part, 0o644), cancelled=cancelled)
            os.replace(part, path)
        finally:
            remove_files(part)
