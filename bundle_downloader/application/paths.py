"""Deterministic on-disk layout of the bundle cache."""

import logging
from pathlib import Path

from .domain import BundleKey


class BundlePathResolver:
    """Maps a BundleKey to its directory under the cache root."""

    def __init__(self, download_path: Path):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.download_path = Path(download_path).expanduser()

    def bundle_dir(self, key: BundleKey) -> Path:
        """Returns the cache directory of a bundle without touching disk."""
        return self.download_path / key.os_version / key.k8s_version

    def resolve(self, key: BundleKey) -> Path:
        """
        Returns the cache directory of a bundle, creating its parents.

        The bundle directory itself is left absent; it only appears once a
        fetch has completed.

        Raises:
            OSError: If the parent directories cannot be created.
        """

        bundle_dir = self.bundle_dir(key)
        bundle_dir.parent.mkdir(parents=True, exist_ok=True)
        return bundle_dir
