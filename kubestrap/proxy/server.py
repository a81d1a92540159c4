"""
server.py
=========

The HTTP side of the artifact proxy.

A Flask application mounts one endpoint per path prefix, every request is
served in its own thread by the threaded werkzeug server:

==============  ===================================
``/coredns/``   GitHub releases of coredns/coredns
``/etcd/``      GitHub releases of etcd-io/etcd
``/``           the Kubernetes release CDN
==============  ===================================

The longest matching prefix wins. A mount prefix requested without its
trailing slash is redirected to it.
"""
import functools
import select
import signal
import socket
import threading
from urllib.parse import urlsplit

from flask import Flask, Response as FlaskResponse, request
from werkzeug.serving import ThreadedWSGIServer, WSGIRequestHandler
from werkzeug.wsgi import wrap_file

from kubestrap import BUFFER_SIZE, __version__
from kubestrap.proxy.endpoint import GithubEndpoint, KubeEndpoint
from kubestrap.proxy.handler import (NOT_FOUND, Proxy, Request, redirect,
                                     text_response)
from kubestrap.util.logger import Logger
from kubestrap.util.util import strip_v

LOGGER = Logger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)

METHODS = ["GET", "HEAD"]

# the client socket of a request, put into the WSGI environ by
# ProxyRequestHandler
CONNECTION_KEY = "kubestrap.connection"


def coredns_endpoint(token=None):
    """coredns publishes coredns_1.11.3_linux_amd64.tgz and a .sha256 file"""
    return GithubEndpoint(
        "coredns", "coredns",
        file=lambda v: f"coredns_{strip_v(v)}_linux_amd64.tgz",
        hash_file=lambda v: f"coredns_{strip_v(v)}_linux_amd64.tgz.sha256",
        token=token)


def etcd_endpoint(token=None):
    """etcd publishes etcd-v3.5.16-linux-amd64.tar.gz and one SHA256SUMS"""
    return GithubEndpoint(
        "etcd-io", "etcd",
        file=lambda v: f"etcd-{v}-linux-amd64.tar.gz",
        hash_file=lambda v: "SHA256SUMS",
        token=token)


def default_routes(config):
    """
    the endpoints of all artifacts a control plane needs

    Args:
        config (dict): the kubestrap configuration
    """
    token = config.get("githubToken")
    return [("/coredns/", coredns_endpoint(token)),
            ("/etcd/", etcd_endpoint(token)),
            ("/", KubeEndpoint(base_url=config["kubernetesBaseURL"]))]


def client_disconnected(connection):
    """
    tell whether the client closed the connection

    A closed socket is readable and reading it returns nothing.
    """
    try:
        readable, _, _ = select.select([connection], [], [], 0)
        if not readable:
            return False
        return connection.recv(1, socket.MSG_PEEK) == b""
    except OSError:
        return True


def to_flask(response, path):
    """
    Turn a proxy response into a Flask response.

    A cached file is opened before any header is sent. If it vanished since
    it was validated the client is sent back to path.
    """
    if response.file is None:
        return FlaskResponse(response.body or None, response.status,
                             response.headers)

    try:
        fh = open(response.file, "rb")
    except FileNotFoundError:
        LOGGER.warning("%s was removed before it could be sent",
                       response.file)
        response = redirect(path)
        return FlaskResponse(None, response.status, response.headers)
    except OSError as err:
        LOGGER.error("can not open %s: %s", response.file, err)
        response = text_response(500, str(err))
        return FlaskResponse(response.body, response.status,
                             response.headers)

    return FlaskResponse(wrap_file(request.environ, fh, BUFFER_SIZE),
                         response.status, response.headers,
                         direct_passthrough=True)


def _view(proxy, endpoint):
    """the view function answering every request below one prefix"""

    def serve_artifact(path=""):  # pylint: disable=unused-argument
        raw_path = request.environ.get("RAW_URI") or request.full_path
        connection = request.environ.get(CONNECTION_KEY)
        cancelled = None
        if connection is not None:
            cancelled = functools.partial(client_disconnected, connection)

        response = proxy.handle(Request(request.method, raw_path, cancelled),
                                endpoint)
        return to_flask(response, urlsplit(raw_path).path)

    return serve_artifact


def _slash_redirect(prefix):

    def add_slash():
        response = redirect(prefix, status=301)
        return FlaskResponse(None, response.status, response.headers)

    return add_slash


def _error_handler(status, message):

    def handle_error(err):
        response = text_response(status, message)
        valid_methods = getattr(err, "valid_methods", None)
        if valid_methods:
            response.headers["Allow"] = ", ".join(sorted(valid_methods))
        return FlaskResponse(response.body, response.status, response.headers)

    return handle_error


def create_app(proxy, routes):
    """
    Create the Flask application serving proxy.

    Args:
        proxy (Proxy): serves the requests
        routes (list): (prefix, endpoint) tuples, prefixes end with "/"

    Return:
        Flask: the WSGI application
    """
    app = Flask(__name__, static_folder=None)

    for prefix, endpoint in routes:
        name = "proxy" + prefix.replace("/", "_")
        view = _view(proxy, endpoint)
        for rule in (prefix, prefix + "<path:path>"):
            app.add_url_rule(rule, name, view, methods=METHODS,
                             provide_automatic_options=False)

        if prefix != "/":
            app.add_url_rule(prefix.rstrip("/"), name + "_slash",
                             _slash_redirect(prefix), methods=METHODS,
                             provide_automatic_options=False)

    app.register_error_handler(404, _error_handler(404, NOT_FOUND))
    app.register_error_handler(405, _error_handler(405,
                                                   "Method Not Allowed"))
    return app


class ProxyRequestHandler(WSGIRequestHandler):
    """Hands the client socket to the application and logs to LOGGER"""

    server_version = "kubestrap/" + __version__

    def make_environ(self):
        environ = super().make_environ()
        environ[CONNECTION_KEY] = self.connection
        return environ

    def log(self, type, message, *args):  # pylint: disable=redefined-builtin
        LOGGER.debug("%s %s", self.address_string(), message % args)


class ProxyServer(ThreadedWSGIServer):
    """
    A thread per request HTTP server answering with proxy.

    Args:
        address (tuple): (host, port) to listen on, port 0 picks a free one
        proxy (Proxy): serves the requests
        routes (list): (prefix, endpoint) tuples
    """

    def __init__(self, address, proxy, routes):
        self.proxy = proxy
        super().__init__(address[0], address[1], create_app(proxy, routes),
                         handler=ProxyRequestHandler)

    @property
    def url(self):
        """the base URL the server listens on"""
        host, port = self.server_address[:2]
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{port}"


def make_server(config, routes=None):
    """create the proxy server for config, with the default routes if None"""
    proxy = Proxy(config["assetsDir"])
    routes = routes or default_routes(config)
    address = (config["controlPlain"]["localAPIEndpoint"]["advertiseAddress"],
               config["proxyPort"])
    return ProxyServer(address, proxy, routes)


def serve(server, stop=None):
    """
    Serve until SIGTERM or SIGINT is received, or stop is set.

    Must be called from the main thread when no stop event is given, since
    only the main thread receives signals.

    Args:
        server (ProxyServer): the server to run
        stop (threading.Event): an external way to stop the server
    """
    stop = stop or threading.Event()

    if threading.current_thread() is threading.main_thread():
        for signum in SHUTDOWN_SIGNALS:
            signal.signal(signum, lambda *_: stop.set())

    worker = threading.Thread(target=server.serve_forever,
                              name="kubestrap-proxy", daemon=True)
    worker.start()
    LOGGER.success("proxy listening on %s", server.url)

    while not stop.wait(0.5):
        pass
    LOGGER.info("shutting down the proxy ...")
    server.shutdown()
    server.server_close()
    worker.join()
    LOGGER.success("proxy stopped")
