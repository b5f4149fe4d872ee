"""Tests for the lock store."""

import json

import pytest

from ontlock.errors import LockConflictError, LockParseError
from ontlock.kernel.hash_utils import hash_snapshot
from ontlock.lockfile import (
    LOCKFILE_NAME,
    LOCKFILE_VERSION,
    lock_exists,
    lockfile_path,
    read_lock,
    verify_lock,
    write_lock,
)


def _write(tmp_path, sample_snapshot, **kwargs):
    return write_lock(tmp_path, sample_snapshot, hash_snapshot(sample_snapshot), **kwargs)


def test_absent_lock_reads_none(tmp_path):
    assert read_lock(tmp_path) is None
    assert not lock_exists(tmp_path)


def test_write_then_read(tmp_path, sample_snapshot):
    written = _write(tmp_path, sample_snapshot)

    assert lock_exists(tmp_path)
    assert lockfile_path(tmp_path) == tmp_path / LOCKFILE_NAME
    record = read_lock(tmp_path)
    assert record.version == LOCKFILE_VERSION == 1
    assert record.hash == hash_snapshot(sample_snapshot)
    assert record.snapshot == sample_snapshot
    assert record.approved_at == written.approved_at
    assert record.approved_at.tzinfo is not None


def test_file_format(tmp_path, sample_snapshot):
    """Sorted keys, 2-space indent, trailing newline, camelCase snapshot under 'ontology'."""
    _write(tmp_path, sample_snapshot)
    text = (tmp_path / "ont.lock").read_text(encoding="utf-8")

    assert text.endswith("}\n")
    assert text.startswith('{\n  "approvedAt": ')
    data = json.loads(text)
    assert list(data) == ["approvedAt", "hash", "ontology", "version"]
    assert data["ontology"]["accessGroups"] == ["admin", "public"]
    assert "inputsSchema" in data["ontology"]["functions"]["getUser"]


def test_write_overwrites_and_leaves_no_temp_files(tmp_path, sample_snapshot):
    _write(tmp_path, sample_snapshot)
    _write(tmp_path, sample_snapshot)
    assert [p.name for p in tmp_path.iterdir()] == ["ont.lock"]


def test_write_creates_directory(tmp_path, sample_snapshot):
    target = tmp_path / "nested" / "dir"
    _write(target, sample_snapshot)
    assert lock_exists(target)


def test_expected_hash_guards_concurrent_approval(tmp_path, sample_snapshot):
    current = hash_snapshot(sample_snapshot)

    # None: no lock may exist yet
    _write(tmp_path, sample_snapshot, expected_hash=None)

    with pytest.raises(LockConflictError) as excinfo:
        _write(tmp_path, sample_snapshot, expected_hash=None)
    assert excinfo.value.found_hash == current

    with pytest.raises(LockConflictError):
        _write(tmp_path, sample_snapshot, expected_hash="0" * 16)

    _write(tmp_path, sample_snapshot, expected_hash=current)


@pytest.mark.parametrize(
    "content, message",
    [
        ("not json", "invalid JSON"),
        ("[1, 2]", "expected a JSON object"),
        ('{"version": 2, "hash": "0000000000000000"}', "unsupported lockfile version 2"),
        ('{"version": true}', "unsupported lockfile version"),
        ('{"version": 1, "hash": "abc"}', "invalid lock record"),
    ],
)
def test_corrupt_lock_raises_parse_error(tmp_path, content, message):
    (tmp_path / "ont.lock").write_text(content, encoding="utf-8")
    with pytest.raises(LockParseError, match=message):
        read_lock(tmp_path)


def test_verify_lock_detects_tampering(tmp_path, sample_snapshot):
    _write(tmp_path, sample_snapshot)
    verify_lock(read_lock(tmp_path))

    path = tmp_path / "ont.lock"
    data = json.loads(path.read_text(encoding="utf-8"))
    data["ontology"]["functions"]["getUser"]["access"] = ["admin", "public"]
    path.write_text(json.dumps(data), encoding="utf-8")

    with pytest.raises(LockParseError, match="does not match its snapshot"):
        verify_lock(read_lock(tmp_path))
