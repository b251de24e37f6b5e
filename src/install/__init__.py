"""Download, extraction and atomic installation of resolved binaries."""

from install.atomic import install_file
from install.download import download
from install.extract import extract
from install.orchestrator import install_binaries, install_binary

__all__ = ["download", "extract", "install_binaries", "install_binary", "install_file"]
