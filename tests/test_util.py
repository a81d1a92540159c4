import hashlib
import os
import unittest
import unittest.mock

import pytest

from kubestrap.util.net import is_ip, is_port, short_hostname
from kubestrap.util.util import remove_files, sha256sum, strip_v


def test_sha256sum(tmp_path):
    path = tmp_path / "kubelet"
    path.write_bytes(b"kubelet" * 1000)
    assert sha256sum(str(path)) == \
        hashlib.sha256(b"kubelet" * 1000).hexdigest()


def test_sha256sum_empty_file(tmp_path):
    path = tmp_path / "empty"
    path.write_bytes(b"")
    assert sha256sum(str(path)) == hashlib.sha256(b"").hexdigest()


def test_remove_files(tmp_path):
    kubelet = tmp_path / "kubelet"
    checksum = tmp_path / "kubelet.sha256"
    kubelet.write_bytes(b"x")
    checksum.write_bytes(b"y")

    remove_files(str(kubelet), str(checksum), str(tmp_path / "missing"))

    assert not os.listdir(tmp_path)


def test_remove_files_tries_all_paths(tmp_path):
    directory = tmp_path / "v1.31.0"
    directory.mkdir()
    kubelet = tmp_path / "kubelet"
    kubelet.write_bytes(b"x")

    with pytest.raises(OSError):
        remove_files(str(directory), str(kubelet))

    assert not kubelet.exists()


def test_strip_v():
    assert strip_v("v1.11.3") == "1.11.3"
    assert strip_v("1.11.3") == "1.11.3"
    assert strip_v("") == ""


class Test_net(unittest.TestCase):

    def test_is_ip(self):
        for ip in ("10.0.0.10", "127.0.0.1", "::1", "fd00::10"):
            assert is_ip(ip), ip

        for ip in ("10.0.0.256", "localhost", "", "fd00::10::1"):
            assert not is_ip(ip), ip

    def test_is_port(self):
        for port in (0, 80, 6443, 18080, 65535):
            assert is_port(port)

        for port in (-1, 65536, "6443", None):
            assert not is_port(port)

    def test_short_hostname(self):
        with unittest.mock.patch("socket.gethostname",
                                 return_value="master-1.cluster.local"):
            assert short_hostname() == "master-1"
