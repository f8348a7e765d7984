"""Custom exceptions for the agent bootstrap."""

from typing import Optional


class BootstrapError(Exception):
    """Base exception for all bootstrap errors."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class FatalBootstrapError(BootstrapError):
    """Errors that abort the bootstrap instead of being retried."""

    exit_code = 1


class ConfigurationError(FatalBootstrapError):
    """Configuration error."""
    pass


class AuthenticationError(FatalBootstrapError):
    """No credential could be obtained."""
    pass


class OwnershipMismatchError(FatalBootstrapError):
    """Storage bucket belongs to a different project."""

    def __init__(self, bucket: str, expected: str, actual: Optional[str]):
        super().__init__(
            f"Bucket {bucket} could not be created or belongs to another GCP project "
            f"(expected project number {expected}, got {actual})",
            code="bucket_ownership_mismatch",
        )
        self.bucket = bucket
        self.expected = expected
        self.actual = actual


class SelfTestError(FatalBootstrapError):
    """Self-test could not confirm a working agent."""
    pass


class StorageError(BootstrapError):
    """Storage backend communication error."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message, code=code)
        self.status_code = status_code


class ObjectNotFoundError(StorageError):
    """Object or bucket does not exist."""
    pass


class PreconditionFailedError(StorageError):
    """Conditional write rejected because the target already exists."""
    pass


class ArtifactError(BootstrapError):
    """Agent archive could not be unpacked."""
    pass


class ArtifactUnavailableError(ArtifactError):
    """Agent archive still missing after publishing."""
    pass
