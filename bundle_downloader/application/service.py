"""
The core application service, containing the cache-or-fetch logic.

This module defines the BundleDownloader, which resolves where a bundle lives
in the local cache, skips the transfer when it is already there and otherwise
pulls it through a BundleFetcher, reporting failures as stable bundle errors.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from .cache import BundleCache
from .classifier import classify_fetch_error
from .domain import BundleFetcher, BundleKey, as_fetcher
from .exceptions import ConfigurationError
from .paths import BundlePathResolver


class BundleDownloader:
    """Downloads OS/Kubernetes bundles into a local cache directory."""

    def __init__(
        self,
        repo_addr: str,
        download_path: Path,
        fetcher: Optional[BundleFetcher] = None,
        cache: Optional[BundleCache] = None,
    ):
        """Initializes the downloader with its default fetcher."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.repo_addr = repo_addr or ""
        self.paths = BundlePathResolver(download_path)
        self.fetcher = fetcher
        self.cache = cache or BundleCache()

    async def _fetch(
        self, fetcher: BundleFetcher, source_ref: str, destination: Path
    ):
        """Runs the fetcher, replacing any failure with a bundle error."""
        self.logger.info(f"Downloading bundle {source_ref}...")
        await asyncio.to_thread(destination.mkdir, parents=True, exist_ok=True)
        try:
            await fetcher.fetch(source_ref, destination)
        except Exception as e:
            kind = classify_fetch_error(e)
            self.logger.warning(
                f"Fetching {source_ref} failed ({kind.__name__}): {e}"
            )
            raise kind() from None
        self.logger.info(f"Finished downloading bundle {source_ref}")

    def get_bundle_dir(self, os_version: str, k8s_version: str) -> Path:
        """Returns where the bundle for the given versions is cached."""
        return self.paths.bundle_dir(BundleKey(os_version, k8s_version))

    async def download_from_repo(
        self, os_version: str, k8s_version: str, fetcher
    ) -> Path:
        """
        Guarantee the bundle is in the cache, fetching only if necessary.

        The fetcher pulls straight into the cache entry, which is created
        before the pull starts. Whatever it leaves there, even after a failed
        or interrupted pull, is a cache hit for every later call.

        Args:
            os_version: The normalized OS version, e.g. 'Ubuntu_20.04.3_x64'.
            k8s_version: The Kubernetes version, e.g. '1.22'.
            fetcher: A BundleFetcher, or a plain function taking the source
                     reference and destination directory.

        Returns:
            The cache directory holding the bundle.

        Raises:
            BundleKeyError: If either version cannot name a cache entry.
            BundleExtractError: If the pull ran out of disk space.
            BundleDownloadError: If the pull failed for any other reason.
            OSError: If the cache directories cannot be created.
        """

        key = BundleKey(os_version, k8s_version)
        destination = await asyncio.to_thread(self.paths.resolve, key)

        if await asyncio.to_thread(self.cache.exists, destination):
            self.logger.info(
                f"Bundle {destination} already exists. Skipping download."
            )
            return destination

        source_ref = key.source_ref(self.repo_addr)
        await self._fetch(as_fetcher(fetcher), source_ref, destination)
        return destination

    async def download(self, os_version: str, k8s_version: str) -> Path:
        """Same as download_from_repo, using the default fetcher."""
        if self.fetcher is None:
            raise ConfigurationError("BundleDownloader has no default fetcher")
        return await self.download_from_repo(
            os_version, k8s_version, self.fetcher
        )
