"""Formats the JVM ``-agentpath`` option for an installed agent."""

import os
from typing import List, Tuple

import structlog

from cdbg_bootstrap.core.config import Settings
from cdbg_bootstrap.core.models import Credential, LaunchOptions

logger = structlog.get_logger()


def description_suffix(module: str, version: str) -> str:
    return "".join(f"-{part}" for part in (module, version) if part)


def format_agent_options(
    settings: Settings,
    fingerprint: str,
    credential: Credential,
    log_to_stderr: bool = False,
) -> LaunchOptions:
    """Build agent options, or empty options if the agent is not installed."""
    agent_dir = settings.agent_path / fingerprint
    agent_binary = agent_dir / settings.agent_binary_name

    if not agent_binary.is_file():
        logger.debug("Cloud Debugger agent not found", path=str(agent_binary))
        return LaunchOptions()

    options: List[Tuple[str, str]] = [
        ("log_dir", settings.agent_logs_dir),
        ("logtostderr", "true" if log_to_stderr else "false"),
        ("cdbg_agentdir", str(agent_dir)),
        ("cdbg_description_suffix", description_suffix(settings.module, settings.version)),
        ("cdbg_extra_class_path", os.pathsep.join(settings.app_dirs)),
    ]
    if settings.controller:
        options.append(("cdbg_controller", settings.controller))
    if settings.enable_service_account_auth:
        options.extend(
            [
                ("enable_service_account_auth", "true"),
                ("project_id", credential.project_id),
                ("project_number", credential.project_number),
                ("service_account_email", settings.service_account_email),
                ("service_account_p12_file", settings.service_account_p12_file),
            ]
        )

    return LaunchOptions(agent_binary=agent_binary, options=options)
