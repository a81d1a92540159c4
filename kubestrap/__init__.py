# pylint: disable=missing-docstring
from importlib import metadata

try:
    __version__ = metadata.version('kubestrap')
except metadata.PackageNotFoundError:
    __version__ = '0.1.0'

# Defining some constants
HASH_FILE_SUFFIX = ".sha256"
BUFFER_SIZE = 5 * 1024 * 1024
DEFAULT_BIN_DIR = "/usr/local/bin"
KUBERNETES_DL_URL = "https://dl.k8s.io"
KUBERNETES_STABLE_URL = f"{KUBERNETES_DL_URL}/release/stable-1.txt"
