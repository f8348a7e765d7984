"""Publish-or-fetch of the agent archive for a version fingerprint.

If the archive for the current fingerprint is not in the bucket yet, the
latest canonical agent is copied there with a create-if-absent precondition.
Concurrent bootstraps for the same fingerprint may all attempt the copy; only
one succeeds and all of them then download that same object, so every
instance of a deployment ends up with a byte-identical agent.

Known gap: the downloaded archive is not checked for a digital signature.
"""

from __future__ import annotations

import os
import shutil
import tarfile
import tempfile
from pathlib import Path

import structlog

from cdbg_bootstrap.core.exceptions import (
    ArtifactError,
    ArtifactUnavailableError,
    StorageError,
)
from cdbg_bootstrap.storage.base import ObjectStore

logger = structlog.get_logger()


def _is_within(base: Path, target: Path) -> bool:
    return target == base or base in target.parents


def _safe_extract_tar(tf: tarfile.TarFile, dest_dir: Path) -> None:
    """Extract a tarball into dest_dir, rejecting members that escape it."""
    dest_dir.mkdir(parents=True, exist_ok=True)
    base = dest_dir.resolve()
    for member in tf.getmembers():
        member_path = Path(member.name)
        if member_path.is_absolute() or ".." in member_path.parts:
            raise ArtifactError(f"Archive contains unsafe path: {member.name}")
        target = (base / member_path).resolve()
        if not _is_within(base, target):
            raise ArtifactError(f"Archive member escapes destination: {member.name}")
        if member.issym() or member.islnk():
            link_base = target.parent if member.issym() else base
            link_target = (link_base / member.linkname).resolve()
            if Path(member.linkname).is_absolute() or not _is_within(base, link_target):
                raise ArtifactError(f"Archive link escapes destination: {member.name}")
        elif member.isdev():
            raise ArtifactError(f"Archive contains device file: {member.name}")
    tf.extractall(dest_dir, filter="data")


class ArtifactCoordinator:
    """Owns the agent archive object and the local installation built from it."""

    def __init__(
        self,
        store: ObjectStore,
        agent_path: Path,
        source_bucket: str,
        source_object: str,
        archive_name: str = "cdbg_java_agent.tar.gz",
    ):
        self.store = store
        self.agent_path = Path(agent_path)
        self.source_bucket = source_bucket
        self.source_object = source_object
        self.archive_name = archive_name

    def object_key(self, fingerprint: str) -> str:
        return f"{fingerprint}/{self.archive_name}"

    def installation_dir(self, fingerprint: str) -> Path:
        return self.agent_path / fingerprint

    def staging_path(self, fingerprint: str) -> Path:
        base, _, ext = self.archive_name.partition(".")
        name = f"{base}-{fingerprint}.{ext}" if ext else f"{base}-{fingerprint}"
        return self.agent_path / name

    def try_fetch(self, bucket: str, fingerprint: str) -> bool:
        """Download and unpack the archive for ``fingerprint``.

        Returns:
            True if the agent is now installed locally, False if the object
            could not be downloaded.

        Raises:
            ArtifactError: If the downloaded archive cannot be unpacked.
        """
        key = self.object_key(fingerprint)
        archive = self.staging_path(fingerprint)
        logger.info("Trying to download the agent binary", bucket=bucket, key=key)

        try:
            self.store.download(bucket, key, archive)
        except StorageError as e:
            logger.info("Agent binary not available", bucket=bucket, key=key, error=str(e))
            archive.unlink(missing_ok=True)
            return False

        try:
            self._install(archive, fingerprint)
        finally:
            archive.unlink(missing_ok=True)
        return True

    def _install(self, archive: Path, fingerprint: str) -> Path:
        target = self.installation_dir(fingerprint)
        self.agent_path.mkdir(parents=True, exist_ok=True)
        staging_dir = Path(tempfile.mkdtemp(prefix=f".{fingerprint}-", dir=self.agent_path))
        try:
            with tarfile.open(archive, "r:*") as tf:
                _safe_extract_tar(tf, staging_dir)
        except (tarfile.TarError, OSError) as e:
            shutil.rmtree(staging_dir, ignore_errors=True)
            raise ArtifactError(f"Failed to unpack agent archive {archive}: {e}") from e
        except ArtifactError:
            shutil.rmtree(staging_dir, ignore_errors=True)
            raise

        try:
            os.rename(staging_dir, target)
        except OSError:
            if not target.is_dir():
                shutil.rmtree(staging_dir, ignore_errors=True)
                raise
            # Already installed by an earlier run on this host.
            shutil.rmtree(staging_dir, ignore_errors=True)
        logger.info("Agent binaries extracted", path=str(target))
        return target

    def try_publish(self, bucket: str, fingerprint: str) -> bool:
        """Copy the canonical agent into the bucket unless it is already there.

        Returns:
            True if this call created the object. False if another writer got
            there first, or the copy failed; either way the caller fetches again.
        """
        key = self.object_key(fingerprint)
        logger.info(
            "Copying agent binary",
            source=f"gs://{self.source_bucket}/{self.source_object}",
            destination=f"gs://{bucket}/{key}",
        )
        try:
            created = self.store.copy_if_absent(self.source_bucket, self.source_object, bucket, key)
        except StorageError as e:
            logger.warning("Agent binary copy failed", bucket=bucket, key=key, error=str(e))
            return False
        if not created:
            logger.info("Agent binary already published", bucket=bucket, key=key)
        return created

    def provision(self, bucket: str, fingerprint: str) -> Path:
        """Fetch the agent, publishing it first if the bucket lacks it."""
        if not self.try_fetch(bucket, fingerprint):
            self.try_publish(bucket, fingerprint)
            if not self.try_fetch(bucket, fingerprint):
                raise ArtifactUnavailableError(
                    f"Agent archive gs://{bucket}/{self.object_key(fingerprint)} unavailable after publish"
                )
        return self.installation_dir(fingerprint)
