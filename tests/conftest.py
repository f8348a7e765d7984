"""
Pytest configuration and fixtures for cdbg-bootstrap tests.
"""

import io
import os
import tarfile
from pathlib import Path
from typing import Dict, Optional

import pytest

from cdbg_bootstrap.core.config import GCE_SOURCE_OBJECT, SERVICE_ACCOUNT_SOURCE_OBJECT, Settings
from cdbg_bootstrap.core.models import Credential, CredentialSource
from cdbg_bootstrap.storage.memory import InMemoryObjectStore

PROJECT_ID = "my-project"
PROJECT_NUMBER = "123456789"


def make_agent_archive(files: Optional[Dict[str, bytes]] = None) -> bytes:
    """Build an in-memory .tar.gz agent distribution."""
    if files is None:
        files = {
            "cdbg_java_agent.so": b"\x7fELF fake agent",
            "cdbg_java_agent_internals.jar": b"PK fake jar",
        }
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


@pytest.fixture(autouse=True)
def clear_cdbg_env(monkeypatch):
    """
    Remove CDBG_* variables so the developer's environment never leaks into Settings.
    """
    for key in list(os.environ):
        if key.upper().startswith("CDBG_"):
            monkeypatch.delenv(key)


@pytest.fixture
def agent_archive() -> bytes:
    return make_agent_archive()


@pytest.fixture
def ambient_credential() -> Credential:
    return Credential(
        token="ya29.test-token",
        source=CredentialSource.AMBIENT,
        project_id=PROJECT_ID,
        project_number=PROJECT_NUMBER,
    )


@pytest.fixture
def store(agent_archive) -> InMemoryObjectStore:
    s = InMemoryObjectStore({PROJECT_ID: PROJECT_NUMBER})
    s.seed_object("cloud-debugger", GCE_SOURCE_OBJECT, agent_archive)
    s.seed_object("cloud-debugger", SERVICE_ACCOUNT_SOURCE_OBJECT, agent_archive)
    return s


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    d = tmp_path / "app"
    (d / "com" / "example").mkdir(parents=True)
    (d / "com" / "example" / "Main.class").write_bytes(b"\xca\xfe\xba\xbe main")
    (d / "com" / "example" / "Util.class").write_bytes(b"\xca\xfe\xba\xbe util")
    (d / "config.yml").write_text("server: {}\n")
    return d


@pytest.fixture
def settings_factory(tmp_path: Path, app_dir: Path):
    def make(**overrides) -> Settings:
        values = {
            "agent_path": tmp_path / "cdbg",
            "app_dirs": [str(app_dir)],
            "module": "checkout",
            "version": "3",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return make


@pytest.fixture(autouse=True)
def reset_structlog():
    """Tests that call setup_logging bind the logger to captured streams; undo that."""
    yield
    import structlog
    from structlog.contextvars import clear_contextvars

    clear_contextvars()
    structlog.reset_defaults()
