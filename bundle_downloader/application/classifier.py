"""
Classification of raw fetch failures into stable bundle error kinds.

Fetchers report failures in their own words (an external tool's stderr, an
HTTP library's exception text). The table below maps those words onto the
small set of errors the downloader exposes. Patterns are matched as
case-sensitive substrings, in order, and the first match wins; anything
unmatched is a download error.
"""

import errno
from typing import Tuple, Type

from .exceptions import BundleDownloadError, BundleError, BundleExtractError

FETCH_ERROR_PATTERNS: Tuple[Tuple[str, Type[BundleError]], ...] = (
    ("no space left on device", BundleExtractError),
    ("No space left on device", BundleExtractError),
)

DEFAULT_ERROR_KIND: Type[BundleError] = BundleDownloadError


def classify_fetch_error(error: BaseException) -> Type[BundleError]:
    """Returns the bundle error kind a raw fetch failure belongs to."""

    if isinstance(error, OSError) and error.errno == errno.ENOSPC:
        return BundleExtractError

    text = str(error)
    for pattern, kind in FETCH_ERROR_PATTERNS:
        if pattern in text:
            return kind

    return DEFAULT_ERROR_KIND
