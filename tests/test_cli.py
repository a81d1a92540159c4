import sys

import pytest

from kubestrap import config as kconfig
from kubestrap import kubestrap
from kubestrap.fetch import HTTPError
from kubestrap.kubestrap import _read_config, main


@pytest.fixture(autouse=True)
def host(monkeypatch):
    monkeypatch.setattr(kconfig, "default_route_address",
                        lambda: "10.0.0.10")
    monkeypatch.setattr(kconfig, "short_hostname", lambda: "master-1")


def test_help(monkeypatch, capsys):
    """
    It should be possible to call kubestrap --help without a configuration
    """
    monkeypatch.setattr(sys, "argv", ["kubestrap", "--help"])

    with pytest.raises(SystemExit) as err:
        main()

    assert err.value.code == 0
    assert "usage:" in capsys.readouterr().out


def test_read_config_exits_on_invalid_port(tmp_path):
    path = tmp_path / "kubestrap.yml"
    path.write_text("proxyPort: 99999\n"
                    "controlPlain:\n"
                    "  kubernetesVersion: v1.31.1\n")

    with pytest.raises(SystemExit) as err:
        _read_config(str(path))

    assert err.value.code == 1


def test_read_config_exits_on_missing_file(tmp_path):
    with pytest.raises(SystemExit):
        _read_config(str(tmp_path / "missing.yml"))


def test_read_config_exits_when_version_is_unknown(monkeypatch):
    def unreachable(path):
        raise HTTPError(503, "Service Unavailable")

    monkeypatch.setattr(kubestrap, "read_config", unreachable)

    with pytest.raises(SystemExit) as err:
        _read_config(None)

    assert err.value.code == 1


def test_download_exits_on_proxy_errors(monkeypatch, tmp_path):
    def failing(config, dest):
        raise HTTPError(404, "404 page not found")

    monkeypatch.setattr(kubestrap, "download_binaries", failing)
    monkeypatch.setattr(kubestrap, "read_config",
                        lambda path: {"assetsDir": str(tmp_path)})

    with pytest.raises(SystemExit) as err:
        kubestrap.Kubestrap().download(dest=str(tmp_path))

    assert err.value.code == 1
