"""Tests for the command line interface."""

import logging
from unittest.mock import patch

import pytest
import requests

from args import parse_args
from common.http_client import BearerAuth
from constants import Constants, ExitCodes
from lockfile import Lock, lock_path_for, read_lock_file, write_lock_file
from lockfile.models import BinaryData
from prebuilt import exit_code_for, main, run
from errors import Cancelled, HTTPRequestError, NameNotFound

RELEASES = "https://api.github.com/repos/cluttrdev/prebuilt/releases?per_page=100"

CONFIG = """
global:
  installDir: {install_dir}
binaries:
  - name: prebuilt
    version: "<1.0"
    provider: github://cluttrdev/prebuilt?asset=prebuilt_{{{{ .Version }}}}_linux-amd64
  - name: tool
    version: 2.0.0
    provider: https://example.com/dl/{{{{ .Version }}}}/tool
"""

PREBUILT_URL = "https://github.com/cluttrdev/prebuilt/releases/download/v0.1.0/prebuilt_v0.1.0_linux-amd64"
TOOL_URL = "https://example.com/dl/2.0.0/tool"

UNNAMED_CONFIG = """
global:
  installDir: {install_dir}
binaries:
  - version: 1.0.0
    provider: https://example.com/dl/{{{{ .Version }}}}/tool-linux
"""

UNNAMED_URL = "https://example.com/dl/1.0.0/tool-linux"

INLINE_CONFIG = """
global:
  installDir: {install_dir}
binaries:
  - name: private
    version: 1.0.0
    provider:
      name: internal
      downloadUrl: https://internal.example/dl/{{{{ .Version }}}}/private
      authToken: s3cret
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CONFIG", "LOGLEVEL", "LOG_FORMAT", "LOGFILE", "DEBUG", "TIMEOUT", "QUIET"):
        monkeypatch.delenv(Constants.ENV_PREFIX + name, raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_prebuilt_managed", False):
            root.removeHandler(handler)
            handler.close()


@pytest.fixture
def workspace(tmp_path):
    config = tmp_path / ".prebuilt.yaml"
    config.write_text(CONFIG.format(install_dir=tmp_path / "bin"), encoding="utf-8")
    return tmp_path, config


@pytest.fixture
def routes(response_factory):
    return {
        RELEASES: response_factory(json_data=[
            {"tag_name": "v1.0.0"}, {"tag_name": "v0.1.0"}, {"tag_name": "v0.0.1"},
        ]),
        PREBUILT_URL: response_factory(chunks=[b"prebuilt-binary"]),
        TOOL_URL: response_factory(chunks=[b"tool-binary"]),
    }


def _argv(command, config, tmp_path, *extra):
    return [command, "-c", str(config), "--logfile", str(tmp_path / "prebuilt.log"), "-q", *extra]


class TestParseArgs:
    """Argument parsing and environment defaults."""

    def test_defaults(self):
        args = parse_args(["install"])
        assert args.COMMAND == "install"
        assert args.CONFIG == Constants.DEFAULT_CONFIG_FILE
        assert args.LOG_LEVEL == "INFO"
        assert args.LOG_FORMAT == "text"
        assert args.NAMES == []
        assert args.TIMEOUT is None
        assert not args.QUIET

    def test_names_and_options(self):
        args = parse_args(["install", "jq", "prebuilt", "--loglevel", "debug", "--timeout", "5"])
        assert args.NAMES == ["jq", "prebuilt"]
        assert args.LOG_LEVEL == "DEBUG"
        assert args.TIMEOUT == 5.0

    def test_debug_flag(self):
        assert parse_args(["lock", "--debug"]).LOG_LEVEL == "DEBUG"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PREBUILT_CONFIG", "other.yaml")
        monkeypatch.setenv("PREBUILT_LOG_FORMAT", "json")
        monkeypatch.setenv("PREBUILT_QUIET", "true")
        monkeypatch.setenv("PREBUILT_TIMEOUT", "12.5")
        args = parse_args(["lock"])
        assert args.CONFIG == "other.yaml"
        assert args.LOG_FORMAT == "json"
        assert args.QUIET
        assert args.TIMEOUT == 12.5

    def test_command_line_beats_environment(self, monkeypatch):
        monkeypatch.setenv("PREBUILT_CONFIG", "other.yaml")
        assert parse_args(["lock", "-c", "mine.yaml"]).CONFIG == "mine.yaml"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_invalid_timeout(self):
        with pytest.raises(SystemExit):
            parse_args(["lock", "--timeout", "-1"])


class TestExitCodes:
    """Mapping failures to exit codes."""

    def test_mapping(self):
        assert exit_code_for(Cancelled("x")) is ExitCodes.INTERRUPTED
        assert exit_code_for(KeyboardInterrupt()) is ExitCodes.INTERRUPTED
        assert exit_code_for(HTTPRequestError("x")) is ExitCodes.CONNECTION_ERROR
        assert exit_code_for(NameNotFound("x")) is ExitCodes.FAILURE


class TestVersion:
    """The version subcommand."""

    def test_prints_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["version"])
        assert exc_info.value.code == 0
        assert Constants.VERSION in capsys.readouterr().out


class TestLock:
    """The lock subcommand."""

    def test_writes_lock(self, workspace, routes, url_router):
        tmp_path, config = workspace
        with patch.object(requests.Session, "get", side_effect=url_router(routes)):
            assert run(_argv("lock", config, tmp_path)) is ExitCodes.SUCCESS
        lock = read_lock_file(lock_path_for(config))
        assert [(b.name, b.version) for b in lock.binaries] == [("prebuilt", "v0.1.0"), ("tool", "2.0.0")]

    def test_failure_writes_nothing(self, workspace, response_factory, url_router, capsys):
        tmp_path, config = workspace
        routes = {RELEASES: response_factory(status=500, text="boom", reason="Internal Server Error")}
        with patch.object(requests.Session, "get", side_effect=url_router(routes)):
            assert run(_argv("lock", config, tmp_path)) is ExitCodes.FAILURE
        assert not lock_path_for(config).exists()
        err = capsys.readouterr().err
        assert "500" in err
        assert f"See {tmp_path / 'prebuilt.log'} for details" in err
        assert "name=prebuilt" in (tmp_path / "prebuilt.log").read_text(encoding="utf-8")

    def test_connection_error_exit_code(self, workspace):
        tmp_path, config = workspace
        with patch.object(requests.Session, "get", side_effect=requests.ConnectionError("refused")):
            assert run(_argv("lock", config, tmp_path)) is ExitCodes.CONNECTION_ERROR

    def test_missing_config(self, tmp_path):
        assert run(_argv("lock", tmp_path / "absent.yaml", tmp_path)) is ExitCodes.FAILURE


class TestInstall:
    """The install subcommand and lock reuse."""

    def test_first_install_resolves_and_writes_lock(self, workspace, routes, url_router):
        tmp_path, config = workspace
        with patch.object(requests.Session, "get", side_effect=url_router(routes)):
            assert run(_argv("install", config, tmp_path)) is ExitCodes.SUCCESS
        assert (tmp_path / "bin" / "prebuilt").read_bytes() == b"prebuilt-binary"
        assert (tmp_path / "bin" / "tool").read_bytes() == b"tool-binary"
        assert lock_path_for(config).exists()

    def test_existing_lock_is_reused(self, workspace, routes, url_router):
        tmp_path, config = workspace
        pinned = BinaryData(name="tool", provider="https", version="1.0.0",
                            download_url="https://example.com/dl/1.0.0/tool")
        write_lock_file(Lock.create([pinned]), lock_path_for(config))
        routes["https://example.com/dl/1.0.0/tool"] = routes[TOOL_URL]
        router = url_router(routes)
        with patch.object(requests.Session, "get", side_effect=router):
            assert run(_argv("install", config, tmp_path, "tool")) is ExitCodes.SUCCESS
        assert router.calls == ["https://example.com/dl/1.0.0/tool"]

    def test_unknown_name(self, workspace, routes, url_router):
        tmp_path, config = workspace
        with patch.object(requests.Session, "get", side_effect=url_router(routes)) as mock_get:
            assert run(_argv("install", config, tmp_path, "nope")) is ExitCodes.FAILURE
        mock_get.assert_not_called()

    def test_name_missing_from_lock(self, workspace, capsys):
        tmp_path, config = workspace
        pinned = BinaryData(name="tool", provider="https", version="1.0.0",
                            download_url="https://example.com/dl/1.0.0/tool")
        write_lock_file(Lock.create([pinned]), lock_path_for(config))
        assert run(_argv("install", config, tmp_path, "prebuilt")) is ExitCodes.FAILURE
        assert "run 'lock'" in capsys.readouterr().err

    def test_tampered_lock(self, workspace):
        tmp_path, config = workspace
        path = lock_path_for(config)
        pinned = BinaryData(name="tool", provider="https", version="1.0.0",
                            download_url="https://example.com/dl/1.0.0/tool")
        write_lock_file(Lock.create([pinned]), path)
        path.write_text(path.read_text(encoding="utf-8").replace("1.0.0", "6.6.6"), encoding="utf-8")
        assert run(_argv("install", config, tmp_path)) is ExitCodes.FAILURE

    def test_partial_install_failure(self, workspace, routes, url_router, capsys):
        tmp_path, config = workspace
        del routes[PREBUILT_URL]
        with patch.object(requests.Session, "get", side_effect=url_router(routes)):
            assert run(_argv("install", config, tmp_path)) is ExitCodes.FAILURE
        assert (tmp_path / "bin" / "tool").read_bytes() == b"tool-binary"
        assert "installation failed: ['prebuilt']" in capsys.readouterr().err


class TestInstallUnnamed:
    """Binaries without a configured name are installed under their derived name."""

    @pytest.fixture
    def config(self, tmp_path):
        path = tmp_path / ".prebuilt.yaml"
        path.write_text(UNNAMED_CONFIG.format(install_dir=tmp_path / "bin"), encoding="utf-8")
        return path

    def test_first_install(self, tmp_path, config, response_factory, url_router):
        router = url_router({UNNAMED_URL: response_factory(chunks=[b"tool-binary"])})
        with patch.object(requests.Session, "get", side_effect=router):
            assert run(_argv("install", config, tmp_path)) is ExitCodes.SUCCESS
        assert (tmp_path / "bin" / "tool-linux").read_bytes() == b"tool-binary"
        assert [b.name for b in read_lock_file(lock_path_for(config)).binaries] == ["tool-linux"]

    def test_existing_lock_is_reused(self, tmp_path, config, response_factory, url_router):
        pinned = BinaryData(name="tool-linux", provider="https", version="1.0.0", download_url=UNNAMED_URL)
        write_lock_file(Lock.create([pinned]), lock_path_for(config))
        router = url_router({UNNAMED_URL: response_factory(chunks=[b"tool-binary"])})
        with patch.object(requests.Session, "get", side_effect=router):
            assert run(_argv("install", config, tmp_path)) is ExitCodes.SUCCESS
        assert router.calls == [UNNAMED_URL]
        assert (tmp_path / "bin" / "tool-linux").read_bytes() == b"tool-binary"

    def test_lock_from_other_template(self, tmp_path, config, capsys):
        pinned = BinaryData(name="tool-darwin", provider="https", version="1.0.0",
                            download_url="https://example.com/dl/1.0.0/tool-darwin")
        write_lock_file(Lock.create([pinned]), lock_path_for(config))
        assert run(_argv("install", config, tmp_path)) is ExitCodes.FAILURE
        assert "run 'lock'" in capsys.readouterr().err


class TestInstallInlineProvider:
    """Inline providers keep their credentials when the lock is reused."""

    def test_download_is_authenticated(self, tmp_path, response_factory):
        config = tmp_path / ".prebuilt.yaml"
        config.write_text(INLINE_CONFIG.format(install_dir=tmp_path / "bin"), encoding="utf-8")
        pinned = BinaryData(name="private", provider="internal", version="1.0.0",
                            download_url="https://internal.example/dl/1.0.0/private")
        write_lock_file(Lock.create([pinned]), lock_path_for(config))

        seen = []

        def _get(session, url, *args, **kwargs):
            seen.append((url, session.auth))
            return response_factory(chunks=[b"private-binary"])

        with patch.object(requests.Session, "get", autospec=True, side_effect=_get):
            assert run(_argv("install", config, tmp_path)) is ExitCodes.SUCCESS
        assert seen == [("https://internal.example/dl/1.0.0/private", BearerAuth("s3cret"))]
        assert (tmp_path / "bin" / "private").read_bytes() == b"private-binary"
