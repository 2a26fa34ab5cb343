"""
This module defines the core domain models for the application.

These classes represent the pure, technology-agnostic entities and data
structures that the application's business logic operates on.
"""

import dataclasses
import inspect
from pathlib import Path

from abc import ABC, abstractmethod
from typing import Callable

from .exceptions import BundleKeyError


# --- Domain Models ---

@dataclasses.dataclass(frozen=True)
class BundleKey:
    """
    Identifies a single cached bundle by its OS and Kubernetes versions.

    Both parts become directory names, so each must be one non-empty path
    segment.
    """

    os_version: str
    k8s_version: str

    def __post_init__(self):
        for field, value in (
            ("os_version", self.os_version),
            ("k8s_version", self.k8s_version),
        ):
            if not value or value in (".", "..") or "/" in value or "\\" in value:
                raise BundleKeyError(f"Invalid {field}: {value!r}")

    def source_ref(self, repo_addr: str) -> str:
        """Builds the remote reference of this bundle in a repository."""
        return f"{repo_addr}/{self.os_version}:{self.k8s_version}"


# --- Ports (Interfaces) ---

class BundleFetcher(ABC):
    """A port for anything that can pull a bundle into a directory."""

    @abstractmethod
    async def fetch(self, source_ref: str, destination: Path):
        """
        Pulls the bundle named by source_ref into the destination directory.
        Raises on any failure.
        """
        pass


class CallableFetcher(BundleFetcher):
    """Adapts a plain function, sync or async, to the BundleFetcher port."""

    def __init__(self, func: Callable):
        self.func = func

    async def fetch(self, source_ref: str, destination: Path):
        result = self.func(source_ref, destination)
        if inspect.isawaitable(result):
            await result


def as_fetcher(fetcher) -> BundleFetcher:
    """Returns fetcher itself if it is a BundleFetcher, else wraps it."""
    if isinstance(fetcher, BundleFetcher):
        return fetcher
    if callable(fetcher):
        return CallableFetcher(fetcher)
    raise TypeError(f"Not a bundle fetcher: {fetcher!r}")
