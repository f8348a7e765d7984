"""End-to-end agent provisioning for one bootstrap run."""

from __future__ import annotations

import time
from typing import Callable, Optional

import structlog

from cdbg_bootstrap.auth.identity import IdentityProvider
from cdbg_bootstrap.core.config import RETRY_DELAY_SECONDS, Settings
from cdbg_bootstrap.core.exceptions import SelfTestError
from cdbg_bootstrap.core.fingerprint import compute_fingerprint
from cdbg_bootstrap.core.models import Credential, LaunchOptions
from cdbg_bootstrap.provision.artifact import ArtifactCoordinator
from cdbg_bootstrap.provision.bucket import BucketCoordinator
from cdbg_bootstrap.provision.options import format_agent_options
from cdbg_bootstrap.provision.retry import retry
from cdbg_bootstrap.storage.base import ObjectStore
from cdbg_bootstrap.utils.boot_metrics import BootMetrics
from cdbg_bootstrap.utils.logging import bind_run_context

logger = structlog.get_logger()


class AgentBootstrapper:
    """Provisions the agent and formats its launch options.

    Identity and fingerprint are resolved once. Storage work runs inside a
    bounded retry loop and never fails the run, except for a bucket owned by
    another project, which aborts it.
    """

    def __init__(
        self,
        settings: Settings,
        identity_provider: IdentityProvider,
        store_factory: Callable[[Credential], ObjectStore],
        sleep: Optional[Callable[[float], None]] = None,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ):
        self.settings = settings
        self.identity_provider = identity_provider
        self.store_factory = store_factory
        self.sleep = sleep if sleep is not None else time.sleep
        self.retry_delay = retry_delay
        self.metrics = BootMetrics()
        self.credential: Optional[Credential] = None
        self.fingerprint: Optional[str] = None

    def authenticate(self) -> Credential:
        with self.metrics.phase("identity"):
            self.credential = self.identity_provider.get_credential()
        return self.credential

    def compute_fingerprint(self) -> str:
        credential = self.credential or self.authenticate()
        with self.metrics.phase("fingerprint"):
            self.fingerprint = compute_fingerprint(
                self.settings.app_dirs,
                project_id=credential.project_id,
                module=self.settings.module,
                version=self.settings.version,
                service_account=self.settings.enable_service_account_auth,
            )
        bind_run_context(fingerprint=self.fingerprint)
        return self.fingerprint

    def prepare_agent(self) -> bool:
        """Make the agent for the current fingerprint available locally.

        Returns:
            True if an attempt succeeded, False if all attempts failed.

        Raises:
            OwnershipMismatchError: If the bucket belongs to another project.
        """
        credential = self.credential
        fingerprint = self.fingerprint
        store = self.store_factory(credential)
        buckets = BucketCoordinator(store, self.settings.gcs_bucket_prefix)
        artifacts = ArtifactCoordinator(
            store,
            agent_path=self.settings.agent_path,
            source_bucket=self.settings.source_bucket,
            source_object=self.settings.source_object,
            archive_name=self.settings.archive_name,
        )

        def attempt() -> None:
            bucket = buckets.prepare(credential.project_id, credential.project_number)
            bind_run_context(bucket=bucket)
            artifacts.provision(bucket, fingerprint)

        with self.metrics.phase("provision"):
            prepared = retry(attempt, self.settings.retry_attempts, self.retry_delay, sleep=self.sleep)
        if not prepared:
            logger.warning(
                "Cloud Debugger agent could not be prepared",
                attempts=self.settings.retry_attempts,
            )
        return prepared

    def format_options(self, log_to_stderr: bool = False) -> LaunchOptions:
        with self.metrics.phase("format"):
            return format_agent_options(
                self.settings, self.fingerprint, self.credential, log_to_stderr=log_to_stderr
            )

    def run(self) -> LaunchOptions:
        """Normal bootstrap: returns options, empty when the agent is unavailable."""
        self.authenticate()
        fingerprint = self.compute_fingerprint()

        installation = self.settings.agent_path / fingerprint
        if self.settings.skip_download:
            logger.debug("Skipping agent download")
        elif installation.is_dir():
            logger.debug("Agent already installed", path=str(installation))
        else:
            self.prepare_agent()

        options = self.format_options()
        self._log_metrics()
        return options

    def self_test(self) -> LaunchOptions:
        """Verify that the agent can be installed and formatted.

        Raises:
            SelfTestError: If the agent binary is missing or no options could be formatted.
        """
        if self.credential is None:
            self.authenticate()
        if self.fingerprint is None:
            self.compute_fingerprint()

        if not self.settings.skip_download:
            self.prepare_agent()

        agent_binary = self.settings.agent_path / self.fingerprint / self.settings.agent_binary_name
        if not agent_binary.is_file():
            raise SelfTestError(f"Debugger agent was not downloaded: {agent_binary}", code="agent_missing")

        options = self.format_options(log_to_stderr=self.settings.verbose)
        if not options.enabled:
            raise SelfTestError("Debugger not available", code="options_empty")
        self._log_metrics()
        return options

    def _log_metrics(self) -> None:
        self.metrics.finish()
        logger.debug("Bootstrap timings", **self.metrics.to_dict())
