"""Per-project storage bucket creation and ownership verification."""

import structlog

from cdbg_bootstrap.core.exceptions import OwnershipMismatchError, StorageError
from cdbg_bootstrap.core.models import BucketInfo
from cdbg_bootstrap.storage.base import ObjectStore

logger = structlog.get_logger()


class BucketCoordinator:
    """Makes sure the agent bucket exists and belongs to this project.

    Downloading from the bucket before the ownership check is not safe: a
    bucket with the expected name may have been created by someone else.
    """

    def __init__(self, store: ObjectStore, prefix: str):
        self.store = store
        self.prefix = prefix

    def bucket_name(self, project_id: str) -> str:
        return f"{self.prefix}{project_id}"

    def ensure_bucket(self, project_id: str) -> str:
        name = self.bucket_name(project_id)
        logger.info("Creating GCS bucket", bucket=name)
        try:
            self.store.create_bucket(name, project_id)
        except StorageError as e:
            # Ownership verification decides whether the bucket is usable.
            logger.warning("Bucket creation failed", bucket=name, error=str(e))
        return name

    def verify_ownership(self, name: str, expected_project_number: str) -> BucketInfo:
        logger.info("Verifying bucket ownership", bucket=name, project_number=expected_project_number)
        try:
            info = self.store.get_bucket(name)
        except StorageError as e:
            if e.status_code != 403:
                raise
            # Exists (or cannot be created) but is not readable with our credential.
            logger.error(
                "Bucket could not be created or belongs to another GCP project",
                bucket=name,
                expected=expected_project_number,
                error=str(e),
            )
            raise OwnershipMismatchError(name, str(expected_project_number), None) from e
        if info.project_number != str(expected_project_number):
            logger.error(
                "Bucket could not be created or belongs to another GCP project",
                bucket=name,
                expected=expected_project_number,
                actual=info.project_number,
            )
            raise OwnershipMismatchError(name, str(expected_project_number), info.project_number)
        logger.info("GCS bucket is ready", bucket=name)
        return info

    def prepare(self, project_id: str, project_number: str) -> str:
        """Ensure and verify the bucket; returns its name."""
        name = self.ensure_bucket(project_id)
        self.verify_ownership(name, project_number)
        return name
