"""
Tests for Settings parsing and validation.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from cdbg_bootstrap.core.config import (
    GCE_SOURCE_OBJECT,
    SERVICE_ACCOUNT_SOURCE_OBJECT,
    Settings,
)


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.app_dirs == []
    assert settings.gcs_bucket_prefix == "cdbg-agent_"
    assert settings.agent_path == Path("/opt/cdbg")
    assert settings.agent_logs_dir == "/tmp"
    assert settings.retry_attempts == 5
    assert settings.enable_service_account_auth is False
    assert settings.request_timeout_seconds is None
    assert settings.log_level == "WARNING"
    assert settings.source_object == GCE_SOURCE_OBJECT


def test_settings_are_frozen():
    settings = Settings(_env_file=None)
    with pytest.raises(ValidationError):
        settings.module = "other"


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("CDBG_APP_DIRS", "/opt/app/classes, /opt/app/lib.jar")
    monkeypatch.setenv("CDBG_MODULE", "checkout")
    monkeypatch.setenv("CDBG_RETRY_ATTEMPTS", "2")
    monkeypatch.setenv("CDBG_VERBOSE", "true")
    monkeypatch.setenv("CDBG_CONTROLLER", "https://controller.example")

    settings = Settings(_env_file=None)

    assert settings.app_dirs == ["/opt/app/classes", "/opt/app/lib.jar"]
    assert settings.module == "checkout"
    assert settings.retry_attempts == 2
    assert settings.log_level == "DEBUG"
    assert settings.controller == "https://controller.example"


def test_env_file_and_override_priority(tmp_path: Path, monkeypatch):
    env_file = tmp_path / "cdbg.env"
    env_file.write_text("CDBG_MODULE=from-file\nCDBG_VERSION=7\nCDBG_AGENT_PATH=/srv/cdbg\n")
    monkeypatch.setenv("CDBG_VERSION", "8")

    settings = Settings(_env_file=env_file, agent_path="/var/cdbg")

    assert settings.module == "from-file"
    assert settings.version == "8"
    assert settings.agent_path == Path("/var/cdbg")


def test_negative_retry_attempts_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, retry_attempts=-1)


def test_service_account_requires_fields():
    with pytest.raises(ValidationError) as exc_info:
        Settings(_env_file=None, enable_service_account_auth=True, project_id="p")
    message = str(exc_info.value)
    assert "project_number" in message
    assert "service_account_email" in message


def test_service_account_source_object():
    settings = Settings(
        _env_file=None,
        enable_service_account_auth=True,
        project_id="p",
        project_number="1",
        service_account_email="sa@p.iam.gserviceaccount.com",
        service_account_p12_file="/k.p12",
    )
    assert settings.source_object == SERVICE_ACCOUNT_SOURCE_OBJECT


def test_invalid_log_format():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, log_format="xml")
