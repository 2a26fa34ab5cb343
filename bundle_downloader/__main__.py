"""
Entry point for the bundle_downloader component.
"""

import argparse
import asyncio
import logging
import sys

from tqdm.contrib.logging import logging_redirect_tqdm

from .application.exceptions import BundleDownloaderError
from .infrastructure.containers import Container
from .settings import settings

logger = logging.getLogger(__name__)

_OVERRIDES = {
    "repo_addr": "bundle.repo_addr",
    "download_path": "bundle.download_path",
    "fetcher": "bundle.fetcher",
}


def setup_logging(level: str):
    """Applies basic logging configuration."""
    logging.basicConfig(level=level)


def apply_overrides(args: argparse.Namespace):
    """Lets command line flags take precedence over the settings files."""
    for arg_name, setting in _OVERRIDES.items():
        value = getattr(args, arg_name)
        if value is not None:
            settings.set(setting, value)


async def run_application(args: argparse.Namespace) -> int:
    """Wires and runs the application using the DI container."""

    apply_overrides(args)
    container = Container()
    setup_logging(level=container.config().logging.level)

    try:
        downloader = container.bundle_downloader()
        with logging_redirect_tqdm():
            path = await downloader.download(args.os_version, args.k8s_version)
    except BundleDownloaderError as e:
        logger.error(f"An application error occurred: {e}")
        return 1
    finally:
        await container.http_client().aclose()

    print(path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Defines the command line flags of the downloader."""
    parser = argparse.ArgumentParser(description="Bundle Downloader Component")

    parser.add_argument(
        "--os-version",
        required=True,
        help="Normalized OS version of the bundle, e.g. Ubuntu_20.04.3_x64",
    )

    parser.add_argument(
        "--k8s-version",
        required=True,
        help="Kubernetes version of the bundle, e.g. 1.22",
    )

    parser.add_argument(
        "--repo-addr",
        help="Repository to pull from, overriding bundle.repo_addr.",
    )

    parser.add_argument(
        "--download-path",
        help="Local cache directory, overriding bundle.download_path.",
    )

    parser.add_argument(
        "--fetcher",
        choices=["imgpkg", "registry"],
        help="How to pull bundles, overriding bundle.fetcher.",
    )

    return parser


def main(argv=None):
    """Parses the command line, downloads one bundle and exits."""
    cli_args = build_parser().parse_args(argv)
    sys.exit(asyncio.run(run_application(cli_args)))


if __name__ == "__main__":
    main()
