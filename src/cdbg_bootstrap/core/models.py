"""Core data models for the agent bootstrap."""

from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class CredentialSource(str, Enum):
    AMBIENT = "ambient"
    SERVICE_ACCOUNT = "service_account"


class Credential(BaseModel):
    """Bearer token plus the project it was issued for."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(..., repr=False)
    source: CredentialSource
    project_id: str
    project_number: str

    @property
    def authorization(self) -> str:
        """Value for the ``Authorization`` header."""
        return f"Bearer {self.token}"


class BucketInfo(BaseModel):
    """Storage bucket metadata relevant to ownership checks."""

    model_config = ConfigDict(frozen=True)

    name: str
    project_number: Optional[str] = None


class LaunchOptions(BaseModel):
    """JVM agent options for a locally installed debugger agent."""

    model_config = ConfigDict(frozen=True)

    agent_binary: Optional[Path] = None
    options: List[Tuple[str, str]] = Field(default_factory=list)

    @property
    def enabled(self) -> bool:
        return self.agent_binary is not None and bool(self.options)

    def render(self) -> str:
        """Render as a ``-agentpath:`` argument, or an empty string when disabled."""
        if not self.enabled:
            return ""
        joined = ",".join(f"--{key}={value}" for key, value in self.options)
        return f"-agentpath:{self.agent_binary}={joined}"
