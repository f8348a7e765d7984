"""Credential acquisition from the metadata server or a service account key."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Protocol

import httpx
import structlog

from cdbg_bootstrap.core.config import Settings
from cdbg_bootstrap.core.exceptions import AuthenticationError
from cdbg_bootstrap.core.models import Credential, CredentialSource

logger = structlog.get_logger()

METADATA_HEADERS = {"Metadata-Flavor": "Google"}
AUTH_TOOL_NAME = "cdbg_auth_tool.jar"


class IdentityProvider(Protocol):
    """Produces a Credential or raises AuthenticationError."""

    def get_credential(self) -> Credential:
        ...


class MetadataIdentityProvider:
    """Ambient identity from the GCE metadata server."""

    def __init__(self, client: httpx.Client, metadata_url: str):
        self.client = client
        self.metadata_url = metadata_url.rstrip("/")

    def _get(self, path: str) -> httpx.Response:
        url = f"{self.metadata_url}/{path}"
        try:
            resp = self.client.get(url, headers=METADATA_HEADERS)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Metadata request {url} failed: {e}", code="metadata_unavailable") from e
        return resp

    def get_credential(self) -> Credential:
        logger.debug("Querying metadata service", url=self.metadata_url)

        try:
            token_info = self._get("instance/service-accounts/default/token").json()
        except ValueError as e:
            raise AuthenticationError("Malformed token response from metadata service", code="metadata_malformed") from e
        token = token_info.get("access_token") if isinstance(token_info, dict) else None
        project_id = self._get("project/project-id").text.strip()
        project_number = self._get("project/numeric-project-id").text.strip()

        if not token or not project_id or not project_number:
            raise AuthenticationError(
                "Metadata service returned incomplete project information",
                code="metadata_malformed",
            )

        logger.debug("Project metadata", project_id=project_id, project_number=project_number)
        return Credential(
            token=token,
            source=CredentialSource.AMBIENT,
            project_id=project_id,
            project_number=project_number,
        )


class ServiceAccountIdentityProvider:
    """Exchanges a service account private key for an access token.

    The exchange is done by a helper jar that is downloaded once into the agent
    directory. It prints the token on success; on failure it prints exception
    details to stderr and exits with a non-zero status.
    """

    def __init__(
        self,
        client: httpx.Client,
        agent_path: Path,
        tool_url: str,
        email: str,
        p12_file: str,
        project_id: str,
        project_number: str,
    ):
        self.client = client
        self.tool_path = Path(agent_path) / AUTH_TOOL_NAME
        self.tool_url = tool_url
        self.email = email
        self.p12_file = p12_file
        self.project_id = project_id
        self.project_number = project_number

    def ensure_tool(self) -> Path:
        """Download the auth helper unless a non-empty copy is already cached."""
        if self.tool_path.is_file() and self.tool_path.stat().st_size > 0:
            logger.debug("Auth tool already exists", path=str(self.tool_path))
            return self.tool_path

        self.tool_path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Downloading auth tool", url=self.tool_url, dest=str(self.tool_path))
        try:
            resp = self.client.get(self.tool_url, follow_redirects=True)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Failed to download auth tool: {e}", code="auth_tool_unavailable") from e

        tmp = self.tool_path.with_name(self.tool_path.name + ".downloading")
        tmp.write_bytes(resp.content)
        tmp.replace(self.tool_path)
        return self.tool_path

    def get_credential(self) -> Credential:
        logger.debug("Exchanging service account private key for OAuth access token", email=self.email)
        tool = self.ensure_tool()

        try:
            result = subprocess.run(
                ["java", "-jar", str(tool), self.email, self.p12_file],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise AuthenticationError(f"Failed to run auth tool: {e}", code="auth_tool_failed") from e

        if result.returncode != 0:
            raise AuthenticationError(
                f"Auth tool exited with code {result.returncode}: {result.stderr.strip()}",
                code="auth_tool_failed",
            )

        token = result.stdout.strip()
        if not token:
            raise AuthenticationError("Auth tool returned an empty token", code="auth_tool_failed")

        return Credential(
            token=token,
            source=CredentialSource.SERVICE_ACCOUNT,
            project_id=self.project_id,
            project_number=self.project_number,
        )


def select_identity_provider(settings: Settings, client: httpx.Client) -> IdentityProvider:
    """Pick the credential source once, from configuration."""
    if settings.enable_service_account_auth:
        return ServiceAccountIdentityProvider(
            client,
            agent_path=settings.agent_path,
            tool_url=settings.auth_tool_url,
            email=settings.service_account_email,
            p12_file=settings.service_account_p12_file,
            project_id=settings.project_id,
            project_number=settings.project_number,
        )
    return MetadataIdentityProvider(client, settings.metadata_url)
