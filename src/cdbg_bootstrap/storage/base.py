"""
Storage interface used by the bucket and artifact coordinators.

The coordinators only rely on these four operations. ``copy_if_absent`` must be
an atomic create-if-absent write: when several writers race for the same
destination, exactly one of them succeeds.
"""
from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from cdbg_bootstrap.core.models import BucketInfo


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol for bucket and object operations."""

    def create_bucket(self, name: str, project_id: str) -> bool:
        """
        Create a project-private bucket.

        Returns:
            True if the bucket was created, False if it already existed

        Raises:
            StorageError: For any other failure
        """
        ...

    def get_bucket(self, name: str) -> BucketInfo:
        """
        Fetch bucket metadata.

        Raises:
            ObjectNotFoundError: If the bucket does not exist
            StorageError: For other failures
        """
        ...

    def copy_if_absent(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> bool:
        """
        Server-side copy that only succeeds if the destination does not exist.

        Returns:
            True if this call created the destination, False if it already existed

        Raises:
            ObjectNotFoundError: If the source does not exist
            StorageError: For other failures
        """
        ...

    def download(self, bucket: str, key: str, dest: Path) -> Path:
        """
        Download an object to a local file.

        Raises:
            ObjectNotFoundError: If the object does not exist
            StorageError: For other failures
        """
        ...
