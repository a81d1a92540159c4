"""
General purpose utilities
"""
import hashlib
import os

from kubestrap import BUFFER_SIZE


def sha256sum(path):
    """
    calculate the hex encoded sha256 digest of a file

    Args:
        path (str): the file to hash

    Return:
        str: the hex digest in lower case
    """
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(BUFFER_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def remove_files(*paths):
    """
    remove all given files, missing files are ignored.

    All paths are attempted even when one of them fails, the first error
    is raised afterwards.
    """
    error = None
    for path in paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            continue
        except OSError as err:
            error = error or err
    if error:
        raise error


def strip_v(version):
    """
    strip the leading "v" of a version tag: v1.11.3 -> 1.11.3
    """
    if version.startswith("v"):
        return version[1:]
    return version
