"""Conversion between filesystem paths and file:// URIs."""

from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname


def uri_from_path(path: str) -> str:
    """
    Convert an absolute filesystem path to a file URI.

    Args:
        path: Absolute path

    Returns:
        Percent-encoded ``file://`` URI
    """
    return Path(path).as_uri()


def path_from_uri(uri: str) -> str:
    """
    Convert a file URI to a filesystem path.

    Args:
        uri: A ``file://`` URI

    Returns:
        The decoded absolute path, without a trailing separator unless it
        is the root

    Raises:
        ValueError: If the URI does not use the file scheme
    """
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        raise ValueError(f"Not a file URI: {uri}")
    path = url2pathname(parsed.path)
    return path.rstrip("/") or path[:1]
