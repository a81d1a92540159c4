"""
config.py
=========

Read the kubestrap configuration file and fill in defaults.

The configuration is a YAML file, all keys are optional::

    nodeName: master-1
    assetsDir: ~/kubernetes
    proxyPort: 18080
    githubToken: ghp_...
    controlPlain:
      localAPIEndpoint:
        advertiseAddress: 10.0.0.10
        bindPort: 6443
      etcdVersion: v3.5.16
      corednsVersion: v1.11.3
      kubernetesVersion: v1.31.1

It is handed around as a plain ``dict``.
"""
import copy
import os

import yaml

from kubestrap import KUBERNETES_DL_URL
from kubestrap.proxy.endpoint import KubeEndpoint
from kubestrap.util.logger import Logger
from kubestrap.util.net import (default_route_address, is_ip, is_port,
                                short_hostname)

LOGGER = Logger(__name__)

DEFAULT_SERVICE_DNS_DOMAIN = "cluster.local"
DEFAULT_SERVICES_SUBNET = "172.18.0.0/21"
DEFAULT_POD_SUBNET = "172.21.0.0/18"
DEFAULT_IMAGE_REPOSITORY = "registry.k8s.io"
DEFAULT_ETCD_VERSION = "v3.5.16"
DEFAULT_COREDNS_VERSION = "v1.11.3"
DEFAULT_ASSETS_DIR = "~/kubernetes"
DEFAULT_KUBE_APISERVER_PORT = 6443
DEFAULT_PROXY_PORT = 18080


class ConfigError(Exception):
    """The configuration can not be used"""


def read_config(path=None):
    """
    Read the configuration file at path and apply the defaults.

    Args:
        path (str): the YAML file, only defaults are used if empty

    Return:
        dict: the complete configuration

    Raises:
        ConfigError if the file is not a YAML mapping or has invalid values
    """
    config = {}
    if path:
        with open(path, 'r') as stream:
            try:
                config = yaml.safe_load(stream) or {}
            except yaml.YAMLError as err:
                raise ConfigError(f"{path}: {err}") from err

        if not isinstance(config, dict):
            raise ConfigError(f"{path}: expected a mapping")

    return set_defaults(config)


def set_defaults(config, kube_endpoint=None):
    """
    Return a copy of config with every missing value filled in.

    Finding some defaults has side effects: the Kubernetes version is the
    latest stable release, the advertise address the address of the
    default route and the node name the host name.

    Args:
        config (dict): the configuration as read from the file
        kube_endpoint (KubeEndpoint): asked for the latest stable version

    Raises:
        ConfigError for invalid values
    """
    config = copy.deepcopy(config)
    control_plane = config.setdefault("controlPlain", {}) or {}
    config["controlPlain"] = control_plane
    api_endpoint = control_plane.setdefault("localAPIEndpoint", {}) or {}
    control_plane["localAPIEndpoint"] = api_endpoint

    config.setdefault("imageRepository", DEFAULT_IMAGE_REPOSITORY)
    config.setdefault("kubernetesBaseURL", KUBERNETES_DL_URL)
    control_plane.setdefault("etcdVersion", DEFAULT_ETCD_VERSION)
    control_plane.setdefault("corednsVersion", DEFAULT_COREDNS_VERSION)
    control_plane.setdefault("podSubnet", DEFAULT_POD_SUBNET)
    control_plane.setdefault("serviceSubnet", DEFAULT_SERVICES_SUBNET)
    control_plane.setdefault("dnsDomain", DEFAULT_SERVICE_DNS_DOMAIN)

    if not control_plane.get("kubernetesVersion"):
        kube_endpoint = kube_endpoint or KubeEndpoint(
            base_url=config["kubernetesBaseURL"])
        control_plane["kubernetesVersion"] = kube_endpoint.last_tag()
        LOGGER.debug("latest stable kubernetes is %s",
                     control_plane["kubernetesVersion"])

    config["proxyPort"] = config.get("proxyPort") or DEFAULT_PROXY_PORT
    config["assetsDir"] = os.path.expanduser(
        config.get("assetsDir") or DEFAULT_ASSETS_DIR)

    if not api_endpoint.get("advertiseAddress"):
        api_endpoint["advertiseAddress"] = default_route_address()
    if not api_endpoint.get("bindPort"):
        api_endpoint["bindPort"] = DEFAULT_KUBE_APISERVER_PORT

    if not config.get("nodeName"):
        config["nodeName"] = short_hostname()

    validate(config)
    return config


def validate(config):
    """
    Raises:
        ConfigError if an address or a port is invalid
    """
    api_endpoint = config["controlPlain"]["localAPIEndpoint"]
    address = str(api_endpoint["advertiseAddress"])
    if not is_ip(address):
        raise ConfigError(f"advertiseAddress {address} is not an IP address")

    for key, port in (("proxyPort", config["proxyPort"]),
                      ("bindPort", api_endpoint["bindPort"])):
        if not is_port(port):
            raise ConfigError(f"{key} {port!r} is not a valid port")


def proxy_url(config):
    """the URL of the artifact proxy on this node"""
    address = config["controlPlain"]["localAPIEndpoint"]["advertiseAddress"]
    if ":" in address:
        address = f"[{address}]"
    return "http://%s:%d" % (address, config["proxyPort"])
