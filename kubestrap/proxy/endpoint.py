"""
endpoint.py
===========

Endpoints resolve an artifact name and version to the upstream URLs of
the artifact and of its checksum file, and know the latest released
version.

Nothing is cached here, every call asks upstream again.
"""
from urllib.parse import quote

from kubestrap import HASH_FILE_SUFFIX, KUBERNETES_DL_URL, KUBERNETES_STABLE_URL
from kubestrap.fetch import HTTPError, fetch, read_json, read_text
from kubestrap.util.logger import Logger

LOGGER = Logger(__name__)

# seconds, independent of the client request which triggered the call
RESOLVE_TIMEOUT = 5


class AssetNotFound(HTTPError):
    """The upstream release has no asset with the requested name"""

    def __init__(self, message):
        super().__init__(404, message)


class Endpoint:
    """
    The capabilities the proxy needs from an upstream.

    Subclasses override all methods except :meth:`asset_name`. Calling a
    capability which is not overridden raises ``NotImplementedError``,
    which the proxy answers with 501.
    """

    def file_url(self, file_hint, version):
        """return the download URL of the artifact"""
        raise NotImplementedError("not implemented")

    def hash_file_url(self, file_hint, version):
        """return the download URL of the artifact's checksum file"""
        raise NotImplementedError("not implemented")

    def last_tag(self):
        """return the latest released version"""
        raise NotImplementedError("not implemented")

    def asset_name(self, file_hint, version):  # pylint: disable=unused-argument
        """
        return the name the artifact is published under upstream. A
        checksum manifest lists the artifact by this name.
        """
        return file_hint


class GithubEndpoint(Endpoint):
    """
    Resolve artifacts from the releases of a GitHub repository.

    Asset names differ from project to project, so they are derived from
    the version tag by two callables.

    Args:
        owner (str): the repository owner, e.g. "etcd-io"
        repo (str): the repository name, e.g. "etcd"
        file (callable): version tag -> artifact asset name
        hash_file (callable): version tag -> checksum asset name
        token (str): optional API token, raises the API rate limit
        api_url (str): the GitHub API base URL
        timeout (float): seconds for each API call
    """
    API_URL = "https://api.github.com"

    def __init__(self, owner, repo, file, hash_file, token=None,
                 api_url=API_URL, timeout=RESOLVE_TIMEOUT):
        self.owner = owner
        self.repo = repo
        self.file = file
        self.hash_file = hash_file
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def __repr__(self):
        return f"GithubEndpoint({self.owner}/{self.repo})"

    def _release(self, ref):
        url = f"{self.api_url}/repos/{self.owner}/{self.repo}/releases/{ref}"
        headers = {"Accept": "application/vnd.github+json",
                   "User-Agent": "kubestrap"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        return fetch(url, read_json, timeout=self.timeout, headers=headers)

    def _asset_url(self, tag, filename):
        release = self._release("tags/" + quote(tag, safe=""))
        for asset in release.get("assets", []):
            if asset.get("name") == filename:
                LOGGER.debug("%r resolved %s %s", self, filename, tag)
                return asset["browser_download_url"]

        raise AssetNotFound(
            f"file {filename} not found in release {tag} of "
            f"{self.owner}/{self.repo}")

    def file_url(self, file_hint, version):
        return self._asset_url(version, self.file(version))

    def hash_file_url(self, file_hint, version):
        return self._asset_url(version, self.hash_file(version))

    def last_tag(self):
        return self._release("latest")["tag_name"]

    def asset_name(self, file_hint, version):
        return self.file(version)


class KubeEndpoint(Endpoint):
    """
    Resolve Kubernetes binaries from the Kubernetes release CDN.

    The URLs follow a fixed pattern, only :meth:`last_tag` asks the CDN.

    Args:
        base_url (str): the CDN base URL
        stable_url (str): a plain text file holding the latest stable version
        timeout (float): seconds for the stable version lookup
    """
    URL_PATTERN = "{base}/{version}/bin/linux/amd64/{file}"

    def __init__(self, base_url=KUBERNETES_DL_URL,
                 stable_url=KUBERNETES_STABLE_URL, timeout=RESOLVE_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.stable_url = stable_url
        self.timeout = timeout

    def __repr__(self):
        return f"KubeEndpoint({self.base_url})"

    def file_url(self, file_hint, version):
        return self.URL_PATTERN.format(base=self.base_url, version=version,
                                       file=file_hint)

    def hash_file_url(self, file_hint, version):
        return self.file_url(file_hint, version) + HASH_FILE_SUFFIX

    def last_tag(self):
        return fetch(self.stable_url, read_text, timeout=self.timeout).strip()
