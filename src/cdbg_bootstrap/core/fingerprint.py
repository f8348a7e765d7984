"""Deployment version fingerprint.

The fingerprint identifies a unique combination of application files and
deployment metadata. Every instance of one deployment computes the same value
and therefore loads the same agent archive from storage, while any change to
the application or its metadata selects a fresh archive.

The digest is compatible with the ``format_env_gce.sh`` bootstrap script so
that hosts running either tool agree on the fingerprint.
"""

import hashlib
import os
from pathlib import Path
from typing import Iterable, List

import structlog

logger = structlog.get_logger()

_BLOCK_SIZE = 64 * 1024


def list_app_files(app_dirs: Iterable[str]) -> List[str]:
    """Return every regular file under ``app_dirs``, following symlinks, sorted.

    A directory link that resolves to one of its own ancestors is a loop and
    is not descended into.
    """
    files: List[str] = []
    for app_dir in app_dirs:
        if os.path.isfile(app_dir):
            files.append(app_dir)
            continue
        ancestors = {app_dir: ()}
        for root, dirs, names in os.walk(app_dir, followlinks=True):
            chain = ancestors.pop(root, ()) + (os.path.realpath(root),)
            for name in list(dirs):
                child = os.path.join(root, name)
                if os.path.realpath(child) in chain:
                    logger.warning("Skipping file system loop", path=child)
                    dirs.remove(name)
                else:
                    ancestors[child] = chain
            for name in names:
                path = os.path.join(root, name)
                if os.path.isfile(path):
                    files.append(path)
    return sorted(files)


def file_digest(path: str) -> str:
    """MD5 of a file's content, streamed."""
    hasher = hashlib.md5()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(_BLOCK_SIZE), b""):
            hasher.update(block)
    return hasher.hexdigest()


def metadata_suffix(project_id: str, module: str, version: str, service_account: bool) -> str:
    return (
        f"Project ID: {project_id}, module: {module}, version: {version}, "
        f"service_account: {1 if service_account else 0}"
    )


def compute_fingerprint(
    app_dirs: Iterable[str],
    project_id: str,
    module: str,
    version: str,
    service_account: bool,
) -> str:
    """Compute the version fingerprint for the current deployment.

    Whitespace runs in the hashed text collapse to a single space, as in the
    shell pipeline this digest is compatible with. Metadata values that differ
    only in whitespace (``"3"`` and ``"3 "``) therefore share a fingerprint.

    Args:
        app_dirs: Application directories (or single files such as a jar).
        project_id: Cloud project ID.
        module: Application module, may be empty.
        version: Application version label, may be empty.
        service_account: Whether service account authentication is enabled.

    Returns:
        32 character hex digest.

    Raises:
        OSError: If an application file cannot be read.
    """
    files = list_app_files(app_dirs)
    digests = "\n".join(file_digest(path) for path in files)
    text = digests + metadata_suffix(project_id, module, version, service_account)
    # Whitespace runs collapse to single spaces, followed by a newline.
    normalized = " ".join(text.split()) + "\n"
    fingerprint = hashlib.md5(normalized.encode("utf-8")).hexdigest()
    logger.debug("Computed version fingerprint", fingerprint=fingerprint, file_count=len(files))
    return fingerprint
