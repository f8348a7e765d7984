"""Tests for the deployment version fingerprint."""

import hashlib
import os
from pathlib import Path

import pytest

from cdbg_bootstrap.core.fingerprint import compute_fingerprint, list_app_files


def _fp(app_dirs, **kwargs):
    params = dict(project_id="my-project", module="checkout", version="3", service_account=False)
    params.update(kwargs)
    return compute_fingerprint(app_dirs, **params)


def test_fingerprint_is_deterministic(app_dir: Path):
    first = _fp([str(app_dir)])
    second = _fp([str(app_dir)])
    assert first == second
    assert len(first) == 32
    assert all(c in "0123456789abcdef" for c in first)


def test_identical_content_in_another_location_matches(tmp_path: Path, app_dir: Path):
    # Paths only order the files; they are not part of the digest.
    copy = tmp_path / "copy"
    for src in app_dir.rglob("*"):
        if src.is_file():
            dst = copy / src.relative_to(app_dir)
            dst.parent.mkdir(parents=True, exist_ok=True)
            dst.write_bytes(src.read_bytes())
    assert _fp([str(app_dir)]) == _fp([str(copy)])


def test_single_byte_change_changes_fingerprint(app_dir: Path):
    before = _fp([str(app_dir)])
    target = app_dir / "com" / "example" / "Util.class"
    data = bytearray(target.read_bytes())
    data[-1] ^= 0x01
    target.write_bytes(bytes(data))
    assert _fp([str(app_dir)]) != before


def test_new_file_changes_fingerprint(app_dir: Path):
    before = _fp([str(app_dir)])
    (app_dir / "extra.properties").write_text("a=b\n")
    assert _fp([str(app_dir)]) != before


@pytest.mark.parametrize(
    "field,value",
    [
        ("project_id", "other-project"),
        ("module", "payments"),
        ("version", "4"),
        ("service_account", True),
    ],
)
def test_metadata_change_changes_fingerprint(app_dir: Path, field, value):
    assert _fp([str(app_dir)], **{field: value}) != _fp([str(app_dir)])


def test_matches_shell_pipeline_digest(app_dir: Path):
    files = sorted(str(p) for p in app_dir.rglob("*") if p.is_file())
    digests = [hashlib.md5(Path(f).read_bytes()).hexdigest() for f in files]
    text = "\n".join(digests) + "Project ID: my-project, module: checkout, version: 3, service_account: 0"
    expected = hashlib.md5((" ".join(text.split()) + "\n").encode()).hexdigest()
    assert _fp([str(app_dir)]) == expected


def test_no_app_dirs_hashes_metadata_only():
    text = "Project ID: p, module: , version: 1, service_account: 1"
    expected = hashlib.md5((" ".join(text.split()) + "\n").encode()).hexdigest()
    assert compute_fingerprint([], project_id="p", module="", version="1", service_account=True) == expected


def test_list_app_files_sorted_across_dirs_and_follows_symlinks(tmp_path: Path):
    a = tmp_path / "b_dir"
    b = tmp_path / "a_dir"
    a.mkdir()
    b.mkdir()
    (a / "z.class").write_bytes(b"z")
    (b / "y.class").write_bytes(b"y")
    shared = tmp_path / "shared"
    shared.mkdir()
    (shared / "lib.class").write_bytes(b"lib")
    os.symlink(shared, a / "linked")

    files = list_app_files([str(a), str(b)])

    assert files == sorted(files)
    assert str(a / "linked" / "lib.class") in files
    assert str(b / "y.class") in files


def test_jar_file_as_app_path(tmp_path: Path):
    jar = tmp_path / "app.jar"
    jar.write_bytes(b"PK jar")
    assert list_app_files([str(jar)]) == [str(jar)]


def test_unreadable_file_raises_os_error(app_dir: Path, monkeypatch):
    import builtins

    real_open = builtins.open

    def failing_open(path, *args, **kwargs):
        if str(path).endswith("Main.class"):
            raise PermissionError("denied")
        return real_open(path, *args, **kwargs)

    monkeypatch.setattr(builtins, "open", failing_open)
    with pytest.raises(OSError):
        _fp([str(app_dir)])


def test_symlink_loops_are_skipped(tmp_path: Path):
    app = tmp_path / "app"
    nested = app / "com" / "example"
    nested.mkdir(parents=True)
    (nested / "Main.class").write_bytes(b"main")
    os.symlink(app, app / "loop1")
    os.symlink(app, app / "loop2")
    os.symlink(app / "com", nested / "up")

    files = list_app_files([str(app)])

    assert files == [str(nested / "Main.class")]


def test_whitespace_only_metadata_difference_shares_fingerprint(app_dir: Path):
    assert _fp([str(app_dir)], version="3 ") == _fp([str(app_dir)], version="3")
