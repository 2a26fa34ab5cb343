"""
Dependency Injection container for the bundle_downloader component.

This container uses the `dependency-injector` library to wire together the
downloader service and the fetcher adapter selected by the application's
configuration. The default fetcher is built once here and handed to the
service explicitly.
"""

from dependency_injector import containers, providers
import httpx

from ..application.service import BundleDownloader
from ..settings import settings

from .imgpkg import ImgpkgFetcher
from .registry_client import RegistryFetcher


class Container(containers.DeclarativeContainer):
    """DI container for wiring the application components."""

    config = providers.Object(settings)

    http_client = providers.Singleton(httpx.AsyncClient, follow_redirects=True)

    imgpkg_fetcher = providers.Factory(
        ImgpkgFetcher,
        binary=config.provided.bundle.imgpkg.binary,
    )

    registry_fetcher = providers.Factory(
        RegistryFetcher,
        client=http_client,
        token=config.provided.bundle.registry.token,
        scheme=config.provided.bundle.registry.scheme,
        timeout=config.provided.bundle.registry.timeout,
        chunk_size=config.provided.bundle.registry.chunk_size,
    )

    fetcher = providers.Selector(
        config.provided.bundle.fetcher,
        imgpkg=imgpkg_fetcher,
        registry=registry_fetcher,
    )

    bundle_downloader = providers.Factory(
        BundleDownloader,
        repo_addr=config.provided.bundle.repo_addr,
        download_path=config.provided.bundle.download_path,
        fetcher=fetcher,
    )
