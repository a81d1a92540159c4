"""Tests for installing the control plane binaries"""
import io
import os
import stat

import pytest

from kubestrap.fetch import HTTPError, untar
from kubestrap.provision import download as provision
from kubestrap.provision.download import (KUBE_BINARIES, ProxyURL,
                                          download, download_steps,
                                          etcd_filter)

from .testdata import targz

CONFIG = {"proxyPort": 18080,
          "controlPlain": {"localAPIEndpoint": {"advertiseAddress": "10.0.0.10"},
                           "etcdVersion": "v3.5.16",
                           "corednsVersion": "v1.11.3",
                           "kubernetesVersion": "v1.31.1"}}

PROXY = "http://10.0.0.10:18080"

ETCD_ARCHIVE = targz({
    "etcd-v3.5.16-linux-amd64": None,
    "etcd-v3.5.16-linux-amd64/etcd": b"etcd",
    "etcd-v3.5.16-linux-amd64/etcdctl": b"etcdctl",
    "etcd-v3.5.16-linux-amd64/etcdutl": b"etcdutl",
    "etcd-v3.5.16-linux-amd64/README.md": b"readme",
})


def test_proxy_urls():
    urls = ProxyURL(CONFIG)
    assert urls.etcd() == PROXY + "/etcd/v3.5.16"
    assert urls.coredns() == PROXY + "/coredns/v1.11.3"
    assert urls.kube("kubelet") == PROXY + "/kubelet/v1.31.1"


def test_etcd_filter(tmp_path):
    untar(str(tmp_path), etcd_filter)(io.BytesIO(ETCD_ARCHIVE))

    assert sorted(os.listdir(tmp_path)) == ["etcd", "etcdctl"]
    assert (tmp_path / "etcdctl").read_bytes() == b"etcdctl"
    assert stat.S_IMODE(os.stat(tmp_path / "etcd").st_mode) == 0o755


def test_download_steps(tmp_path):
    names = [(name, url) for name, url, _ in
             download_steps(CONFIG, str(tmp_path))]
    assert names[:2] == [("etcd", PROXY + "/etcd/v3.5.16"),
                         ("coredns", PROXY + "/coredns/v1.11.3")]
    assert [name for name, _ in names[2:]] == list(KUBE_BINARIES)


class ProxyStub:
    """answers like the proxy would, by URL"""

    def __init__(self, files):
        self.files = files
        self.requests = []

    def __call__(self, url, sink, **kwargs):
        self.requests.append(url)
        if url not in self.files:
            raise HTTPError(404, "404 page not found")
        return sink(io.BytesIO(self.files[url]))


def test_download(monkeypatch, tmp_path):
    files = {PROXY + "/etcd/v3.5.16": ETCD_ARCHIVE,
             PROXY + "/coredns/v1.11.3": targz({"coredns": b"coredns"})}
    files.update({PROXY + f"/{name}/v1.31.1": name.encode()
                  for name in KUBE_BINARIES})
    stub = ProxyStub(files)
    monkeypatch.setattr(provision, "fetch", stub)
    bin_dir = tmp_path / "bin"

    download(CONFIG, str(bin_dir))

    assert sorted(os.listdir(bin_dir)) == sorted(
        ["etcd", "etcdctl", "coredns"] + list(KUBE_BINARIES))
    assert (bin_dir / "kube-apiserver").read_bytes() == b"kube-apiserver"
    assert os.access(bin_dir / "kubelet", os.X_OK)
    assert len(stub.requests) == 2 + len(KUBE_BINARIES)


def test_download_stops_at_first_failure(monkeypatch, tmp_path):
    stub = ProxyStub({PROXY + "/etcd/v3.5.16": ETCD_ARCHIVE})
    monkeypatch.setattr(provision, "fetch", stub)

    with pytest.raises(HTTPError):
        download(CONFIG, str(tmp_path))

    assert stub.requests == [PROXY + "/etcd/v3.5.16",
                             PROXY + "/coredns/v1.11.3"]
