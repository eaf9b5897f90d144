"""
Path helpers: validasi node path dan pembuatan ancestor nodes.
"""

import logging
from typing import List

from .errors import InvalidPathError, NodeExistsError

logger = logging.getLogger(__name__)


def validate_path(path: str) -> str:
    """
    Check bahwa path absolute, tanpa trailing slash dan tanpa segment kosong.
    Root ("/") valid.
    """
    if not isinstance(path, str) or not path.startswith('/'):
        raise InvalidPathError(str(path), "must start with '/'")

    if path == '/':
        return path

    if path.endswith('/'):
        raise InvalidPathError(path, "must not end with '/'")

    if '' in path[1:].split('/'):
        raise InvalidPathError(path, "contains an empty segment")

    return path


def parent_path(path: str) -> str:
    """Parent dari path, contoh: /a/b -> /a, /a -> /"""
    parent = validate_path(path).rsplit('/', 1)[0]
    return parent or '/'


def all_prefixes(path: str) -> List[str]:
    """
    Generate semua prefixes dari path, root ke leaf.

    Contoh:
        all_prefixes('/a/b/c') -> ['/a', '/a/b', '/a/b/c']
    """
    validate_path(path)
    if path == '/':
        raise InvalidPathError(path, "must name a node below the root")

    segments = path[1:].split('/')
    return ['/' + '/'.join(segments[:i + 1]) for i in range(len(segments))]


async def ensure_path(client, path: str) -> None:
    """
    Pastikan setiap prefix dari path ada sebagai durable node.

    "Already exists" dianggap sukses, error lain di-propagate.
    Aman dipanggil concurrent dari banyak process.
    """
    for prefix in all_prefixes(path):
        try:
            await client.create_node(prefix, durable=True)
            logger.debug(f"Created node {prefix}")
        except NodeExistsError:
            pass
