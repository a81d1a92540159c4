"""
download.py
===========

Install the control plane binaries from the artifact proxy.

The proxy is asked like any other HTTP client would. Plain binaries are
written as executables, the etcd and coredns release archives are
unpacked on the fly.
"""
import os
import posixpath

from kubestrap import DEFAULT_BIN_DIR
from kubestrap.config import proxy_url
from kubestrap.fetch import fetch, to_file, untar
from kubestrap.util.logger import Logger

LOGGER = Logger(__name__)

KUBE_BINARIES = ("kube-apiserver",
                 "kube-controller-manager",
                 "kube-scheduler",
                 "kubelet")

ETCD_BINARIES = ("etcd", "etcdctl")


class ProxyURL:
    """
    Build the proxy URLs of the versions named in the configuration.

    Example:
        >>> urls = ProxyURL(config)
        >>> urls.etcd()
        'http://10.0.0.10:18080/etcd/v3.5.16'
    """

    def __init__(self, config):
        self.prefix = proxy_url(config)
        self.versions = config["controlPlain"]

    def _url(self, name, version):
        return f"{self.prefix}/{name}/{version}"

    def etcd(self):
        return self._url("etcd", self.versions["etcdVersion"])

    def coredns(self):
        return self._url("coredns", self.versions["corednsVersion"])

    def kube(self, name):
        return self._url(name, self.versions["kubernetesVersion"])


def etcd_filter(dst, tar, member):
    """
    unpack only etcd and etcdctl, flat into dst

    The release archive keeps them in a versioned directory, e.g.
    ``etcd-v3.5.16-linux-amd64/etcdctl``.
    """
    if not member.isreg():
        return

    basename = posixpath.basename(member.name)
    if basename in ETCD_BINARIES:
        to_file(os.path.join(dst, basename), 0o755)(tar.extractfile(member))


def download_steps(config, bin_dir=DEFAULT_BIN_DIR):
    """
    Return:
        list: (name, url, sink) of everything a control plane node needs
    """
    urls = ProxyURL(config)

    steps = [("etcd", urls.etcd(), untar(bin_dir, etcd_filter)),
             ("coredns", urls.coredns(), untar(bin_dir))]
    steps += [(name, urls.kube(name),
               to_file(os.path.join(bin_dir, name), 0o755))
              for name in KUBE_BINARIES]
    return steps


def download(config, bin_dir=DEFAULT_BIN_DIR):
    """
    Download all control plane binaries into bin_dir.

    Stops at the first failure.

    Raises:
        kubestrap.fetch.HTTPError if the proxy can not deliver a binary
    """
    os.makedirs(bin_dir, 0o755, exist_ok=True)

    for name, url, sink in download_steps(config, bin_dir):
        LOGGER.info("downloading %s from %s ...", name, url)
        fetch(url, sink)
        LOGGER.success("%s installed", name)
