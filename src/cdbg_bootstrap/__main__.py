"""CLI entrypoint: prints the JVM agent option for the Cloud Debugger."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import httpx
import structlog
from pydantic import ValidationError

from cdbg_bootstrap.auth.identity import select_identity_provider
from cdbg_bootstrap.core.config import Settings
from cdbg_bootstrap.core.exceptions import ConfigurationError, FatalBootstrapError
from cdbg_bootstrap.provision.bootstrap import AgentBootstrapper
from cdbg_bootstrap.storage.gcs import GcsObjectStore
from cdbg_bootstrap.utils.logging import setup_logging

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cdbg-bootstrap",
        description=(
            "Downloads the Cloud Debugger Java agent and prints the -agentpath "
            "option enabling it on Google Compute Engine."
        ),
        argument_default=argparse.SUPPRESS,
    )
    parser.add_argument(
        "-a", "--app_class_path", dest="app_dirs", action="append",
        help="directory with application class files (repeatable)",
    )
    parser.add_argument("--module", help="application module")
    parser.add_argument("-v", "--version", help="application major version")
    parser.add_argument("--gcs_bucket_prefix", help="prefix for the GCS bucket name")
    parser.add_argument("--retry_attempts", type=int, help="attempts to copy and download the agent")
    parser.add_argument(
        "--skip_download", action="store_true",
        help="only format the option, assuming the agent was downloaded earlier",
    )
    parser.add_argument("--agent_logs_dir", help="local directory for agent logs")
    parser.add_argument("--agent_path", help="local directory to store the agent")
    parser.add_argument(
        "--enable_service_account_auth", action="store_true",
        help="authenticate with a service account private key instead of the metadata server",
    )
    parser.add_argument("--project_id", help="project of the service account")
    parser.add_argument("--project_number", help="project number of --project_id")
    parser.add_argument("--service_account_email", help="service account email")
    parser.add_argument("--service_account_p12_file", help="service account private key file")
    parser.add_argument("--env", help="dotenv file with CDBG_* configuration")
    parser.add_argument("--verbose", action="store_true", help="verbose logging to stderr")
    parser.add_argument("--test", dest="test_mode", action="store_true", help="verify the agent setup")
    return parser


def load_settings(argv: Optional[List[str]] = None) -> Settings:
    """Parse the command line into Settings.

    Raises:
        ConfigurationError: If the --env file does not exist or the resulting
            configuration is invalid.
    """
    overrides = vars(build_parser().parse_args(argv))
    env_file = overrides.pop("env", None)
    if env_file is not None and not Path(env_file).is_file():
        raise ConfigurationError(f"Configuration file not found: {env_file}", code="env_file_missing")
    try:
        return Settings(_env_file=env_file, **overrides)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {e}", code="invalid_settings") from e


def _self_test(bootstrapper: AgentBootstrapper) -> int:
    settings = bootstrapper.settings
    print("Configuration options:")
    for key, value in settings.model_dump().items():
        print(f"  {key}={value}")

    print("\nVerifying authentication...")
    credential = bootstrapper.authenticate()
    print(f"Authenticated as project {credential.project_id} ({credential.source.value})")

    print("\nComputing application version hash...")
    print(f"Version hash: {bootstrapper.compute_fingerprint()}")

    print("\nVerifying agent download...")
    options = bootstrapper.self_test()
    print(f"Debugger agent library: {options.agent_binary}")
    print(f"Debugger agent arguments: {options.render()}")
    print("Test completed")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    try:
        settings = load_settings(argv)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return e.exit_code

    setup_logging(settings.log_level, settings.log_format)
    logger.debug("Configuration", **settings.model_dump(mode="json"))

    with httpx.Client(timeout=httpx.Timeout(settings.request_timeout_seconds)) as client:
        bootstrapper = AgentBootstrapper(
            settings,
            select_identity_provider(settings, client),
            lambda credential: GcsObjectStore(
                client,
                credential,
                api_base=settings.storage_api_base,
                download_base=settings.storage_download_base,
            ),
        )
        try:
            if settings.test_mode:
                return _self_test(bootstrapper)
            options = bootstrapper.run()
        except FatalBootstrapError as e:
            logger.error("Bootstrap aborted", error=str(e), code=e.code)
            if settings.test_mode:
                print(f"Test failed: {e}")
            return e.exit_code
        except OSError as e:
            logger.error("Local I/O error", error=str(e))
            return 1

    print(options.render())
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
