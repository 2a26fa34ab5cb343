"""Cache hit detection for downloaded bundles."""

from pathlib import Path


class BundleCache:
    """
    Decides whether a bundle is already on disk.

    Presence of an entry at the bundle path is the only signal: its contents
    are neither hashed nor checked for completeness.
    """

    def exists(self, path: Path) -> bool:
        return path.exists()
