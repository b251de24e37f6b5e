"""Tests for the lock model, digest and lock file I/O."""

from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from errors import LockDigestMismatch, LockFileError
from lockfile import BinaryData, Lock, compute_digest, lock_path_for, read_lock_file, write_lock_file

JQ = BinaryData(
    name="jq",
    provider="github",
    version="jq-1.7.1",
    download_url="https://github.com/jqlang/jq/releases/download/jq-1.7.1/jq-linux-amd64",
)
PREBUILT = BinaryData(
    name="prebuilt",
    provider="github",
    version="v0.1.0",
    download_url="https://github.com/cluttrdev/prebuilt/releases/download/v0.1.0/prebuilt.tar.gz",
    extract_path="prebuilt",
)


class TestDigest:
    """Content digest of resolved binaries."""

    def test_format(self):
        digest = compute_digest([JQ])
        assert digest.startswith("sha256:")
        assert len(digest) == len("sha256:") + 64

    def test_independent_of_order(self):
        assert compute_digest([JQ, PREBUILT]) == compute_digest([PREBUILT, JQ])

    def test_changes_with_content(self):
        changed = BinaryData(name="jq", provider="github", version="jq-1.7", download_url=JQ.download_url)
        assert compute_digest([JQ]) != compute_digest([changed])


class TestLock:
    """Lock construction, verification and selection."""

    def test_create_sorts_and_stamps(self):
        lock = Lock.create([PREBUILT, JQ])
        assert [b.name for b in lock.binaries] == ["jq", "prebuilt"]
        assert lock.generated.tzinfo is not None
        assert lock.generated.microsecond == 0
        assert lock.verify()

    def test_verify_detects_tampering(self):
        lock = Lock.create([JQ])
        assert not Lock(generated=lock.generated, digest=lock.digest, binaries=(PREBUILT,)).verify()

    def test_select(self):
        lock = Lock.create([PREBUILT, JQ])
        assert lock.select(["prebuilt"]) == [PREBUILT]
        assert lock.select([]) == [JQ, PREBUILT]
        assert lock.select(["unknown"]) == []

    def test_serialized_fields(self):
        assert JQ.to_dict() == {
            "name": "jq",
            "provider": "github",
            "version": "jq-1.7.1",
            "downloadURL": JQ.download_url,
        }
        assert PREBUILT.to_dict()["extractPath"] == "prebuilt"
        assert BinaryData.from_dict(PREBUILT.to_dict()) == PREBUILT


class TestLockFile:
    """Reading and writing lock files."""

    def test_lock_path_replaces_extension(self):
        assert lock_path_for(".prebuilt.yaml") == Path(".prebuilt.lock")
        assert lock_path_for("conf/tools.yml") == Path("conf/tools.lock")

    def test_round_trip(self, tmp_path):
        lock = Lock.create([PREBUILT, JQ])
        path = write_lock_file(lock, tmp_path / "prebuilt.lock")
        loaded = read_lock_file(path)
        assert loaded.digest == lock.digest
        assert loaded.binaries == lock.binaries
        assert loaded.generated == lock.generated

    def test_file_layout(self, tmp_path):
        lock = Lock(
            generated=datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc),
            digest=compute_digest([JQ]),
            binaries=(JQ,),
        )
        path = write_lock_file(lock, tmp_path / "prebuilt.lock")
        doc = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert list(doc) == ["generated", "digest", "binaries"]
        assert doc["generated"] in ("2024-05-01T12:30:00Z", datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc))
        assert "extractPath" not in doc["binaries"][0]

    def test_write_leaves_no_temp_files(self, tmp_path):
        write_lock_file(Lock.create([JQ]), tmp_path / "prebuilt.lock")
        assert [p.name for p in tmp_path.iterdir()] == ["prebuilt.lock"]

    def test_unquoted_timestamp_is_accepted(self, tmp_path):
        path = tmp_path / "prebuilt.lock"
        path.write_text(
            "generated: 2024-05-01T12:30:00Z\n"
            f"digest: {compute_digest([JQ])}\n"
            "binaries:\n"
            f"  - name: jq\n    provider: github\n    version: jq-1.7.1\n    downloadURL: {JQ.download_url}\n",
            encoding="utf-8",
        )
        lock = read_lock_file(path)
        assert lock.generated == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        assert lock.binaries == (JQ,)

    def test_digest_mismatch(self, tmp_path):
        path = write_lock_file(Lock.create([JQ]), tmp_path / "prebuilt.lock")
        path.write_text(path.read_text(encoding="utf-8").replace("jq-1.7.1", "jq-1.6"), encoding="utf-8")
        with pytest.raises(LockDigestMismatch) as exc_info:
            read_lock_file(path)
        assert exc_info.value.metadata["path"] == str(path)

    @pytest.mark.parametrize("content", [
        "just a string\n",
        "generated: 2024-05-01T12:30:00Z\nbinaries: []\n",
        "generated: yesterday\ndigest: sha256:00\nbinaries: []\n",
        "digest: sha256:00\nbinaries: {}\n",
        "binaries: [\n",
        "generated: 2024-05-01T12:30:00Z\ndigest: sha256:00\nbinaries:\n  - provider: github\n",
    ])
    def test_malformed(self, tmp_path, content):
        path = tmp_path / "prebuilt.lock"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(LockFileError):
            read_lock_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_lock_file(tmp_path / "absent.lock")
