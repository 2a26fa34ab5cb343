"""imgpkg implementation of the BundleFetcher port."""

import asyncio
import logging
from pathlib import Path

from ..application.domain import BundleFetcher
from ..application.exceptions import FetchError


class ImgpkgFetcher(BundleFetcher):
    """A fetcher that shells out to `imgpkg pull`."""

    def __init__(self, binary: str = "imgpkg"):
        """Initializes the fetcher with the imgpkg executable to run."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.binary = binary

    def _command(self, source_ref: str, destination: Path):
        return [self.binary, "pull", "-i", source_ref, "-o", str(destination)]

    async def fetch(self, source_ref: str, destination: Path):
        """
        Pulls an image into destination.

        Raises:
            FetchError: If imgpkg exits with a non-zero status. The message
                        is imgpkg's own error output.
            FileNotFoundError: If the imgpkg executable cannot be found.
        """

        command = self._command(source_ref, destination)
        self.logger.debug(f"Running {' '.join(command)}")

        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()

        if process.returncode != 0:
            output = (stderr or stdout).decode(errors="replace").strip()
            raise FetchError(
                output or f"{self.binary} exited with {process.returncode}"
            )
