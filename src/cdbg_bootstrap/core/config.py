"""Configuration management for the agent bootstrap."""

import re
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Delay between provisioning attempts is not configurable.
RETRY_DELAY_SECONDS = 1.0

GCE_SOURCE_OBJECT = "compute-java/debian-wheezy/cdbg_java_agent_gce.tar.gz"
SERVICE_ACCOUNT_SOURCE_OBJECT = "compute-java/debian-wheezy/cdbg_java_agent_service_account.tar.gz"


class Settings(BaseSettings):
    """Bootstrap configuration settings.

    Built once at startup from (in increasing priority) defaults, an optional
    dotenv file, ``CDBG_*`` environment variables and command line values.
    The instance is frozen and handed to every component.
    """

    model_config = SettingsConfigDict(
        env_prefix="CDBG_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Application
    app_dirs: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="Directories with application class files",
    )
    module: str = Field("", description="Application module")
    version: str = Field("", description="Application major version")

    # Storage
    gcs_bucket_prefix: str = Field("cdbg-agent_", description="Prefix for the GCS bucket name")
    source_bucket: str = Field("cloud-debugger", description="Bucket holding the canonical agent")
    archive_name: str = Field("cdbg_java_agent.tar.gz", description="Agent archive object name")
    retry_attempts: int = Field(5, ge=0, description="Attempts to copy and download the agent")
    skip_download: bool = Field(False, description="Only format the command line")

    # Local agent
    agent_path: Path = Field(Path("/opt/cdbg"), description="Local directory to store the agent")
    agent_logs_dir: str = Field("/tmp", description="Local directory for agent logs")
    agent_binary_name: str = Field("cdbg_java_agent.so", description="Agent library file name")
    controller: Optional[str] = Field(None, description="Debugger controller URL override")

    # Authentication
    enable_service_account_auth: bool = False
    project_id: Optional[str] = None
    project_number: Optional[str] = None
    service_account_email: Optional[str] = None
    service_account_p12_file: Optional[str] = None

    # Endpoints
    metadata_url: str = "http://metadata.google.internal/computeMetadata/v1"
    storage_api_base: str = "https://www.googleapis.com"
    storage_download_base: str = "https://storage.googleapis.com"
    auth_tool_url: str = (
        "http://storage.googleapis.com/cloud-debugger/compute-java/cdbg_service_account_auth.jar"
    )
    request_timeout_seconds: Optional[float] = Field(
        None, description="Per-request timeout; None waits indefinitely"
    )

    # Observability
    verbose: bool = False
    test_mode: bool = False
    log_format: str = Field("console", pattern="^(console|json)$")

    @field_validator("app_dirs", mode="before")
    @classmethod
    def parse_app_dirs(cls, v):
        """Accept comma or whitespace separated directory lists."""
        if v is None:
            return []
        if isinstance(v, str):
            return [d for d in re.split(r"[,\s]+", v) if d]
        return [str(d).strip() for d in v if str(d).strip()]

    @model_validator(mode="after")
    def check_service_account_fields(self) -> "Settings":
        if self.enable_service_account_auth:
            missing = [
                name
                for name in (
                    "project_id",
                    "project_number",
                    "service_account_email",
                    "service_account_p12_file",
                )
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    "service account authentication requires: " + ", ".join(missing)
                )
        return self

    @property
    def log_level(self) -> str:
        return "DEBUG" if self.verbose else "WARNING"

    @property
    def source_object(self) -> str:
        """Canonical agent archive for the configured auth mode."""
        if self.enable_service_account_auth:
            return SERVICE_ACCOUNT_SOURCE_OBJECT
        return GCE_SOURCE_OBJECT
