"""Shared fixtures for bundle downloader tests."""

import pytest

from bundle_downloader.application.domain import BundleFetcher
from bundle_downloader.application.service import BundleDownloader

OS_VERSION = "Ubuntu_20.04.3_x64"
K8S_VERSION = "1.22"


class StubFetcher(BundleFetcher):
    """Counts calls and optionally fails with a fixed message."""

    def __init__(self, error: str = None, files=None):
        self.calls = []
        self.error = error
        self.files = files or {}

    async def fetch(self, source_ref, destination):
        self.calls.append((source_ref, destination))
        for name, content in self.files.items():
            (destination / name).write_text(content)
        if self.error is not None:
            raise RuntimeError(self.error)


@pytest.fixture
def download_path(tmp_path):
    return tmp_path / "bundles"


@pytest.fixture
def downloader(download_path):
    return BundleDownloader(repo_addr="", download_path=download_path)
