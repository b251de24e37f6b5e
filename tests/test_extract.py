"""Tests for extracting binaries from archives."""

import io
import tarfile
import zipfile

import pytest

from errors import ExtractError
from install.extract import extract


def _make_tar(path, members, mode="w:gz"):
    with tarfile.open(path, mode) as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


def _make_zip(path, members):
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return path


class TestTar:
    """Tar archives of any compression."""

    @pytest.mark.parametrize("filename,mode", [
        ("tool.tar.gz", "w:gz"),
        ("tool.tgz", "w:gz"),
        ("tool.tar.xz", "w:xz"),
        ("tool.tar.bz2", "w:bz2"),
        ("tool.tar", "w"),
    ])
    def test_extracts_member(self, tmp_path, filename, mode):
        archive = _make_tar(tmp_path / filename, {"tool/bin/tool": b"binary", "README": b"docs"}, mode)
        out = extract(archive, "tool/bin/tool")
        assert out == tmp_path / "tool" / "bin" / "tool"
        assert out.read_bytes() == b"binary"

    def test_dot_slash_member_names(self, tmp_path):
        archive = _make_tar(tmp_path / "tool.tar.gz", {"./tool": b"binary"})
        assert extract(archive, "tool").read_bytes() == b"binary"

    def test_missing_member(self, tmp_path):
        archive = _make_tar(tmp_path / "tool.tar.gz", {"other": b"x"})
        with pytest.raises(ExtractError, match="file not found"):
            extract(archive, "tool")

    def test_corrupt_archive(self, tmp_path):
        archive = tmp_path / "tool.tar.gz"
        archive.write_bytes(b"not a tarball")
        with pytest.raises(ExtractError):
            extract(archive, "tool")


class TestZip:
    """Zip archives."""

    def test_extracts_member(self, tmp_path):
        archive = _make_zip(tmp_path / "tool.zip", {"dist/tool.exe": b"MZ"})
        out = extract(archive, "dist/tool.exe")
        assert out.read_bytes() == b"MZ"

    def test_missing_member(self, tmp_path):
        archive = _make_zip(tmp_path / "tool.zip", {"dist/other": b"x"})
        with pytest.raises(ExtractError):
            extract(archive, "dist/tool")


class TestRejected:
    """Unsupported formats and unsafe member paths."""

    def test_unsupported_format(self, tmp_path):
        archive = tmp_path / "tool.rar"
        archive.write_bytes(b"x")
        with pytest.raises(ExtractError, match="unsupported archive"):
            extract(archive, "tool")

    @pytest.mark.parametrize("member", ["../evil", "a/../../evil", "/etc/passwd", "", "."])
    def test_escaping_paths(self, tmp_path, member):
        archive = _make_tar(tmp_path / "tool.tar.gz", {"tool": b"x"})
        with pytest.raises(ExtractError):
            extract(archive, member)
        assert not (tmp_path.parent / "evil").exists()
